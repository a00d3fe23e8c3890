"""hearts_cfr/cli.py - Typer-based CLI for the Hearts Deep CFR sample generator."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

app = typer.Typer(
    name="hearts-cfr",
    help="Hearts Deep CFR training-data generator",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

CONFIG_OPTION = typer.Option(
    "config.yaml",
    "--config",
    "-c",
    help="Path to configuration YAML file",
)


def _load(config: Path, run_name: Optional[str] = None):
    """Loads and validates the configuration, then installs logging."""
    from .config import load_config
    from .log_setup import setup_logging

    cfg = load_config(str(config))
    try:
        cfg.validate()
    except ValueError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        raise typer.Exit(1)
    setup_logging(cfg.logging, run_name)
    return cfg


@app.command("generate", help="Generate advantage samples for one iteration")
def generate(
    iteration: int = typer.Option(..., "--iteration", "-i", min=1, help="1-based iteration number"),
    model: Optional[Path] = typer.Option(
        None,
        "--model",
        "-m",
        help="Advantage model to sample strategies from (default: uniform)",
        exists=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Sample store path (default: <model_dir>/AdvantageSamples<iter>.bin)",
    ),
    config: Path = CONFIG_OPTION,
):
    """Generate one iteration of samples into a new sample store."""
    from .cfr.exceptions import HeartsCfrError
    from .cfr.generator import generate_samples
    from .cfr.inference import ModelStrategyProvider, UniformStrategyProvider
    from .cfr.trainer import samples_path
    from .networks import load_advantage_network, resolve_device
    from .sample_store import AdvantageSampleStore

    cfg = _load(config, f"generate{iteration:03d}")
    path = output or Path(samples_path(cfg.persistence.model_dir, iteration))
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        if model is None:
            provider = UniformStrategyProvider()
        else:
            device = resolve_device(cfg.model.device)
            network = load_advantage_network(model, cfg.model, device)
            provider = ModelStrategyProvider(network, device, cfg.generation.inference_batch_size)
        with AdvantageSampleStore.create(path, iteration) as store:
            num_samples = generate_samples(cfg, iteration, provider, store)
    except HeartsCfrError as e:
        logger.error("Generation failed: %s", e)
        raise typer.Exit(1)
    typer.echo(f"Wrote {num_samples} samples to {path}")


@app.command("train-model", help="Train an advantage network from sample stores")
def train_model(
    stores: List[Path] = typer.Argument(..., help="Sample store files", exists=True),
    output: Path = typer.Option(
        "AdvantageModel.pt", "--output", "-o", help="Where to save the trained model"
    ),
    config: Path = CONFIG_OPTION,
):
    """Train an advantage network on the union of the given sample stores."""
    from .cfr.exceptions import HeartsCfrError
    from .cfr.trainer import train_advantage_network
    from .networks import resolve_device
    from .persistence import save_model_checkpoint
    from .sample_store import AdvantageSampleStoreGroup

    cfg = _load(config, "train_model")
    device = resolve_device(cfg.model.device)
    try:
        with AdvantageSampleStoreGroup.open_read(stores) as group:
            iteration = group.iteration
            features, targets, weights = group.to_arrays()
        network, losses = train_advantage_network(features, targets, weights, cfg, device)
        save_model_checkpoint(network, iteration, str(output), {"losses": losses})
    except HeartsCfrError as e:
        logger.error("Model training failed: %s", e)
        raise typer.Exit(1)
    typer.echo(f"Trained on {len(features)} samples; saved model to {output}")


@app.command("train", help="Run the full Deep CFR training loop")
def train(
    iterations: Optional[int] = typer.Option(
        None,
        "--iterations",
        "-n",
        min=1,
        help="Number of iterations to run (overrides config)",
    ),
    resume_from: Optional[int] = typer.Option(
        None,
        "--resume-from",
        min=1,
        help="Resume after this completed iteration using its saved model and reservoir",
    ),
    config: Path = CONFIG_OPTION,
):
    """Generate, train, save and evaluate for each iteration."""
    from .cfr.exceptions import HeartsCfrError
    from .cfr.trainer import HeartsTrainer

    cfg = _load(config)
    try:
        if resume_from is None:
            trainer = HeartsTrainer(cfg)
            start = 1
        else:
            trainer = HeartsTrainer.resume(cfg, resume_from)
            start = resume_from + 1
        trainer.run(start_iteration=start, num_iterations=iterations)
    except (HeartsCfrError, OSError) as e:
        print(f"FATAL: Error during training: {e}", file=sys.stderr)
        raise typer.Exit(1)


@app.command("inspect", help="Display sample store metadata")
def inspect(
    store: Path = typer.Argument(..., help="Path to sample store file", exists=True),
    show: int = typer.Option(0, "--show", "-s", min=0, help="Print the first N samples"),
):
    """Display sample store metadata and, optionally, some of its samples."""
    from rich.console import Console
    from rich.table import Table

    from .cfr.exceptions import SampleStoreError
    from .encoding import HAND_OFFSET
    from .game import ALL_CARDS, cards_to_string
    from .sample_store import AdvantageSampleStore

    console = Console()
    try:
        sample_store = AdvantageSampleStore.open_read(store)
    except SampleStoreError as e:
        console.print(f"[red]Error reading sample store:[/red] {e}")
        raise typer.Exit(1)

    with sample_store:
        table = Table(title=f"Advantage Samples: {store.name}")
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Iteration", str(sample_store.iteration))
        table.add_row("Weight", f"{sample_store.weight:.4f}")
        table.add_row("Samples", str(sample_store.count))
        table.add_row("File Size", f"{store.stat().st_size:,} bytes")
        console.print(table)

        if show:
            samples_table = Table(title="Samples")
            samples_table.add_column("#", justify="right")
            samples_table.add_column("Hand")
            samples_table.add_column("Regrets")
            for i in range(min(show, sample_store.count)):
                sample = sample_store[i]
                hand = [c for c in ALL_CARDS if sample.encoding[HAND_OFFSET + c.to_index()]]
                regrets = ", ".join(
                    f"{card}: {sample.regrets[card.to_index()]:+.3f}"
                    for card in ALL_CARDS
                    if sample.regrets[card.to_index()] != 0.0
                )
                samples_table.add_row(str(i), cards_to_string(hand), regrets)
            console.print(samples_table)


@app.command("evaluate", help="Play a trained model against random players")
def evaluate(
    model: Path = typer.Argument(..., help="Path to advantage model", exists=True),
    deals: Optional[int] = typer.Option(
        None, "--deals", "-n", min=1, help="Number of deals (overrides config)"
    ),
    seed: int = typer.Option(0, "--seed", help="Random seed for the tournament deals"),
    config: Path = CONFIG_OPTION,
):
    """Run a tournament with the model in the South seat against three random players."""
    from rich.console import Console
    from rich.table import Table

    from .cfr.exceptions import CheckpointLoadError
    from .evaluate_agents import evaluate_model
    from .networks import load_advantage_network, resolve_device

    cfg = _load(config, "evaluate")
    device = resolve_device(cfg.model.device)
    num_deals = deals or cfg.training.num_evaluation_deals or 1
    try:
        network = load_advantage_network(model, cfg.model, device)
    except CheckpointLoadError as e:
        logger.error("%s", e)
        raise typer.Exit(1)

    payoff = evaluate_model(network, num_deals, device, seed=seed)

    console = Console()
    table = Table(title=f"Evaluation: {model.name}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Deals", str(num_deals))
    table.add_row("Average Payoff", f"{payoff:+.4f}")
    console.print(table)


if __name__ == "__main__":
    app()
