"""
hearts_cfr/cfr/trainer.py

Deep CFR training loop for Hearts.

Each iteration:
1. Choose a strategy provider: uniform for the first iteration, otherwise the
   previous iteration's advantage network
2. Generate samples into AdvantageSamples{iter:03d}.bin and the reservoir
3. Train a new advantage network from scratch on the reservoir with weighted
   MSE loss: MSE(w * prediction, w * target), w = sqrt(iteration)
4. Save AdvantageModel{iter:03d}.pt and a reservoir snapshot atomically
5. Evaluate the new network against random players
"""

import logging
import os
import time
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import torch
import torch.nn.functional as F
import torch.optim as optim

from ..config import Config
from ..evaluate_agents import evaluate_model
from ..networks import (
    AdvantageNetwork,
    build_advantage_network,
    load_advantage_network,
    resolve_device,
)
from ..persistence import save_model_checkpoint, save_reservoir_snapshot
from ..reservoir import Reservoir
from ..sample_store import AdvantageSampleStore
from .exceptions import HeartsCfrError
from .generator import generate_samples
from .inference import ModelStrategyProvider, StrategyProvider, UniformStrategyProvider

logger = logging.getLogger(__name__)

RESERVOIR_FILENAME = "Reservoir.npz"


def samples_path(model_dir: str, iteration: int) -> str:
    return os.path.join(model_dir, f"AdvantageSamples{iteration:03d}.bin")


def model_path(model_dir: str, iteration: int) -> str:
    return os.path.join(model_dir, f"AdvantageModel{iteration:03d}.pt")


def train_advantage_network(
    features: np.ndarray,
    targets: np.ndarray,
    weights: np.ndarray,
    cfg: Config,
    device: torch.device,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[AdvantageNetwork, List[float]]:
    """
    Trains a new advantage network on the given samples.

    Each batch is split into sub-batches whose gradients are accumulated
    before a single optimizer step.

    Args:
        features: (N, INPUT_DIM) float32 encoded information sets.
        targets: (N, NUM_ACTIONS) float32 wide regrets.
        weights: (N,) float32 per-sample weights.

    Returns:
        The trained network and its mean loss per epoch.
    """
    train_cfg = cfg.training
    rng = rng or np.random.default_rng(cfg.generation.seed)
    network = build_advantage_network(cfg.model).to(device)
    n = len(features)
    if n == 0:
        logger.warning("No samples to train on; returning an untrained network.")
        network.eval()
        return network, []

    optimizer = optim.Adam(network.parameters(), lr=train_cfg.learning_rate)
    losses: List[float] = []
    start_time = time.time()
    network.train()
    for epoch in range(train_cfg.num_epochs):
        order = rng.permutation(n)
        total_loss = 0.0
        num_batches = 0
        for start in range(0, n, train_cfg.batch_size):
            batch = order[start : start + train_cfg.batch_size]
            optimizer.zero_grad()
            batch_loss = 0.0
            for sub_start in range(0, len(batch), train_cfg.sub_batch_size):
                sub = batch[sub_start : sub_start + train_cfg.sub_batch_size]
                features_t = torch.from_numpy(features[sub]).float().to(device)
                targets_t = torch.from_numpy(targets[sub]).float().to(device)
                weights_t = torch.from_numpy(weights[sub]).float().to(device).unsqueeze(1)

                predictions = network(features_t)
                loss = F.mse_loss(weights_t * predictions, weights_t * targets_t)
                # scale so accumulated gradients match the full batch mean
                loss = loss * (len(sub) / len(batch))
                loss.backward()
                batch_loss += loss.item()
            optimizer.step()
            total_loss += batch_loss
            num_batches += 1

        avg_loss = total_loss / max(num_batches, 1)
        losses.append(avg_loss)
        logger.debug("Epoch %d/%d: loss %.6f", epoch + 1, train_cfg.num_epochs, avg_loss)

    network.eval()
    logger.info(
        "Advantage training: %d samples, %d epochs in %.1fs, final loss: %.6f",
        n,
        train_cfg.num_epochs,
        time.time() - start_time,
        losses[-1],
    )
    return network, losses


@dataclass
class IterationResult:
    """Outcome of one training iteration."""

    iteration: int
    num_samples: int
    reservoir_size: int
    losses: List[float] = field(default_factory=list)
    tournament_payoff: Optional[float] = None


class HeartsTrainer:
    """Orchestrates generate / train / save / evaluate iterations."""

    def __init__(
        self,
        config: Config,
        network: Optional[AdvantageNetwork] = None,
        reservoir: Optional[Reservoir] = None,
    ):
        self.config = config
        self.device = resolve_device(config.model.device)
        logger.info("Hearts trainer using device: %s", self.device)
        self.model_dir = config.persistence.model_dir
        os.makedirs(self.model_dir, exist_ok=True)

        self.network = network
        self.reservoir = reservoir or Reservoir(
            config.training.reservoir_capacity,
            np.random.default_rng(config.generation.seed),
        )
        self.rng = np.random.default_rng(config.generation.seed)
        self.results: List[IterationResult] = []

    @classmethod
    def resume(cls, config: Config, iteration: int) -> "HeartsTrainer":
        """Restores the network and reservoir saved after the given iteration."""
        device = resolve_device(config.model.device)
        network = load_advantage_network(
            model_path(config.persistence.model_dir, iteration), config.model, device
        )
        reservoir = Reservoir.load(
            os.path.join(config.persistence.model_dir, RESERVOIR_FILENAME),
            np.random.default_rng([config.generation.seed, iteration]),
            capacity=config.training.reservoir_capacity,
        )
        return cls(config, network=network, reservoir=reservoir)

    def _provider(self) -> StrategyProvider:
        if self.network is None:
            return UniformStrategyProvider()
        return ModelStrategyProvider(
            self.network, self.device, self.config.generation.inference_batch_size
        )

    def run_iteration(self, iteration: int) -> IterationResult:
        """Runs a single 1-based iteration."""
        logger.info("*** Iteration %d ***", iteration)

        with AdvantageSampleStore.create(samples_path(self.model_dir, iteration), iteration) as store:
            num_samples = generate_samples(
                self.config, iteration, self._provider(), store, self.reservoir
            )

        features, targets, weights = self.reservoir.to_arrays()
        network, losses = train_advantage_network(
            features, targets, weights, self.config, self.device, rng=self.rng
        )
        save_model_checkpoint(
            network,
            iteration,
            model_path(self.model_dir, iteration),
            {"losses": losses, "model_config": asdict(self.config.model)},
        )
        save_reservoir_snapshot(
            self.reservoir, os.path.join(self.model_dir, RESERVOIR_FILENAME)
        )
        self.network = network

        payoff = None
        if self.config.training.num_evaluation_deals > 0:
            payoff = evaluate_model(
                network, self.config.training.num_evaluation_deals, self.device
            )

        result = IterationResult(
            iteration=iteration,
            num_samples=num_samples,
            reservoir_size=len(self.reservoir),
            losses=losses,
            tournament_payoff=payoff,
        )
        self.results.append(result)
        return result

    def run(self, start_iteration: int = 1, num_iterations: Optional[int] = None) -> List[IterationResult]:
        """
        Runs the configured number of iterations.

        Raises:
            HeartsCfrError, OSError: If an iteration fails; it is logged and
                training stops.
        """
        num_iterations = num_iterations or self.config.training.num_iterations
        last = start_iteration + num_iterations - 1
        logger.info("Starting training from iteration %d to %d.", start_iteration, last)
        results = []
        for iteration in range(start_iteration, last + 1):
            try:
                results.append(self.run_iteration(iteration))
            except (HeartsCfrError, OSError) as e:
                logger.error("Iteration %d aborted: %s", iteration, e)
                raise
        logger.info("Training finished after iteration %d.", last)
        return results
