"""
hearts_cfr/sample.py

Advantage samples: an encoded information set paired with the acting player's
observed regret for each card, weighted by training iteration.
"""

import math
from dataclasses import dataclass

import numpy as np

from .cfr.exceptions import EncodingError
from .constants import NUM_ACTIONS
from .encoding import INPUT_DIM, encode
from .game import InformationSet


def iteration_weight(iteration: int) -> float:
    """Linear-CFR style weight: the square root of a 1-based iteration number."""
    if iteration < 1:
        raise ValueError(f"Iteration must be 1-based, got {iteration}")
    return math.sqrt(iteration)


@dataclass(frozen=True, eq=False)
class AdvantageSample:
    """A single training example for the advantage network."""

    encoding: np.ndarray  # (INPUT_DIM,) bool
    regrets: np.ndarray  # (NUM_ACTIONS,) float32, zero for illegal cards
    weight: float

    def __post_init__(self):
        if self.encoding.shape != (INPUT_DIM,):
            raise EncodingError(
                f"Encoding must have shape ({INPUT_DIM},), got {self.encoding.shape}"
            )
        if self.regrets.shape != (NUM_ACTIONS,):
            raise EncodingError(
                f"Regrets must have shape ({NUM_ACTIONS},), got {self.regrets.shape}"
            )

    @classmethod
    def from_encoding(
        cls, encoding: np.ndarray, regrets: np.ndarray, iteration: int
    ) -> "AdvantageSample":
        return cls(
            encoding=np.asarray(encoding, dtype=bool),
            regrets=np.asarray(regrets, dtype=np.float32),
            weight=iteration_weight(iteration),
        )

    @classmethod
    def create(
        cls, info_set: InformationSet, regrets: np.ndarray, iteration: int
    ) -> "AdvantageSample":
        """Creates a sample for the given information set and wide regret vector."""
        return cls.from_encoding(encode(info_set), regrets, iteration)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AdvantageSample):
            return NotImplemented
        return (
            np.array_equal(self.encoding, other.encoding)
            and np.array_equal(self.regrets, other.regrets)
            and self.weight == other.weight
        )
