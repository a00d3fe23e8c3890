"""
tests/test_cli.py

Smoke tests for the Typer command-line interface.
"""

import logging

import pytest
import yaml
from typer.testing import CliRunner

from hearts_cfr.cli import app
from hearts_cfr.sample_store import AdvantageSampleStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """Commands install their own logging handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    data = {
        "generation": {"num_deals_per_iteration": 3, "deal_batch_size": 2, "sample_decay": 0.05},
        "model": {"hidden_size": 16, "num_hidden_layers": 1, "device": "cpu"},
        "training": {"num_epochs": 1, "batch_size": 32, "sub_batch_size": 8, "num_evaluation_deals": 2},
        "persistence": {"model_dir": str(tmp_path / "models")},
        "logging": {"log_dir": str(tmp_path / "logs"), "log_level_console": "WARNING"},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(data))
    return path


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("generate", "train-model", "train", "inspect", "evaluate"):
        assert command in result.output


def test_generate_inspect_train_evaluate(config_file, tmp_path):
    store_path = tmp_path / "models" / "AdvantageSamples001.bin"

    result = runner.invoke(app, ["generate", "--iteration", "1", "--config", str(config_file)])
    assert result.exit_code == 0, result.output
    with AdvantageSampleStore.open_read(store_path) as store:
        assert store.count > 0

    result = runner.invoke(app, ["inspect", str(store_path), "--show", "2"])
    assert result.exit_code == 0, result.output
    assert "Iteration" in result.output

    model_file = tmp_path / "model.pt"
    result = runner.invoke(
        app,
        ["train-model", str(store_path), "--output", str(model_file), "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    assert model_file.exists()

    result = runner.invoke(
        app, ["evaluate", str(model_file), "--deals", "2", "--config", str(config_file)]
    )
    assert result.exit_code == 0, result.output
    assert "Average Payoff" in result.output


def test_generate_refuses_existing_store(config_file, tmp_path):
    args = ["generate", "--iteration", "2", "--config", str(config_file)]
    assert runner.invoke(app, args).exit_code == 0
    assert runner.invoke(app, args).exit_code == 1


def test_inspect_rejects_corrupt_store(tmp_path):
    path = tmp_path / "bad.bin"
    path.write_bytes(b"garbage!")
    result = runner.invoke(app, ["inspect", str(path)])
    assert result.exit_code == 1
