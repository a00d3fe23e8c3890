"""
hearts_cfr/strategy.py

Regret matching and conversions between "narrow" vectors (indexed by legal
action) and "wide" vectors (indexed by card across the whole deck).
"""

from typing import Sequence

import numpy as np

from .constants import NUM_ACTIONS
from .game import Card


def regret_match(values: np.ndarray) -> np.ndarray:
    """
    Convert per-action values into an action-probability distribution.

    If any value is positive, negative values are clamped to zero and the
    result is normalized. Otherwise the distribution is one-hot on the first
    maximal value.

    Args:
        values: (n,) per-action values, one per legal action.

    Returns:
        (n,) float32 probabilities summing to 1.
    """
    values = np.asarray(values, dtype=np.float32)
    if values.ndim != 1 or values.size == 0:
        raise ValueError(f"Expected a non-empty vector, got shape {values.shape}")

    idx = int(np.argmax(values))
    if values[idx] > 0.0:
        clamped = np.maximum(values, np.float32(0.0))
        # sequential float32 sum; ndarray.sum is pairwise from 8 elements
        return clamped / clamped.cumsum(dtype=np.float32)[-1]

    strategy = np.zeros(values.size, dtype=np.float32)
    strategy[idx] = 1.0
    return strategy


def uniform(n: int) -> np.ndarray:
    """Uniform distribution over n actions."""
    if n <= 0:
        raise ValueError(f"Number of actions must be positive, got {n}")
    return np.full(n, 1.0 / n, dtype=np.float32)


def to_narrow(legal_actions: Sequence[Card], wide: np.ndarray) -> np.ndarray:
    """Selects the entries of a deck-sized vector that correspond to legal actions."""
    wide = np.asarray(wide)
    if wide.shape != (NUM_ACTIONS,):
        raise ValueError(f"Wide vector must have shape ({NUM_ACTIONS},), got {wide.shape}")
    indices = [card.to_index() for card in legal_actions]
    return wide[indices].astype(np.float32)


def to_wide(legal_actions: Sequence[Card], narrow: np.ndarray) -> np.ndarray:
    """Scatters a per-legal-action vector into a deck-sized vector (zero elsewhere)."""
    narrow = np.asarray(narrow, dtype=np.float32)
    if narrow.shape != (len(legal_actions),):
        raise ValueError(
            f"Narrow vector length {narrow.shape} does not match "
            f"{len(legal_actions)} legal actions"
        )
    wide = np.zeros(NUM_ACTIONS, dtype=np.float32)
    for card, value in zip(legal_actions, narrow):
        wide[card.to_index()] = value
    return wide


def sample_action(rng: np.random.Generator, strategy: np.ndarray) -> int:
    """Draws an action index from the given distribution."""
    strategy = np.asarray(strategy, dtype=np.float64)
    cumulative = np.cumsum(strategy)
    # guard against float round-off leaving the total just below 1
    u = rng.random() * cumulative[-1]
    return min(int(np.searchsorted(cumulative, u, side="right")), len(strategy) - 1)
