"""
tests/conftest.py

Shared fixtures for all tests.
"""

import os
import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure project root is on sys.path when running without an installed package
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from hearts_cfr.config import (  # noqa: E402
    Config,
    GenerationConfig,
    LoggingConfig,
    ModelConfig,
    PersistenceConfig,
    TrainingConfig,
)
from hearts_cfr.constants import Seat  # noqa: E402
from hearts_cfr.game import OpenDeal, deal_random  # noqa: E402


# ---------------------------------------------------------------------------
# Random sources and deals
# ---------------------------------------------------------------------------


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


@pytest.fixture
def deal(rng) -> OpenDeal:
    """A freshly dealt deal, waiting for the two of clubs."""
    return deal_random(rng, Seat.NORTH)


def play_randomly(deal: OpenDeal, rng: np.random.Generator, num_plays: int) -> OpenDeal:
    """Advances a deal by the given number of random legal plays."""
    for _ in range(num_plays):
        legal = deal.current_info_set().legal_actions
        deal = deal.add_play(legal[int(rng.integers(len(legal)))])
    return deal


@pytest.fixture
def late_deal(rng) -> OpenDeal:
    """A deal with two tricks left to play, at the start of a trick."""
    return play_randomly(deal_random(rng, Seat.WEST), rng, 11 * 4)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def small_config(tmp_path) -> Config:
    """A configuration small enough to run whole iterations in a unit test."""
    return Config(
        generation=GenerationConfig(
            num_deals_per_iteration=5,
            deal_batch_size=2,
            inference_batch_size=64,
            sample_decay=0.05,
            num_threads=1,
            seed=7,
        ),
        model=ModelConfig(hidden_size=32, num_hidden_layers=1, dropout=0.0, device="cpu"),
        training=TrainingConfig(
            num_iterations=2,
            learning_rate=1e-3,
            num_epochs=2,
            batch_size=64,
            sub_batch_size=16,
            reservoir_capacity=500,
            num_evaluation_deals=2,
        ),
        persistence=PersistenceConfig(model_dir=str(tmp_path / "models")),
        logging=LoggingConfig(log_dir=str(tmp_path / "logs")),
    )


# ---------------------------------------------------------------------------
# Deterministic seeds fixture
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def deterministic_seeds():
    """Fix global random seeds when HEARTS_CFR_DETERMINISTIC=1 env var is set.

    Activate with: HEARTS_CFR_DETERMINISTIC=1 pytest tests/
    """
    if os.environ.get("HEARTS_CFR_DETERMINISTIC") == "1":
        import random as _random

        import torch as _torch

        _torch.manual_seed(42)
        np.random.seed(42)
        _random.seed(42)
    yield
