"""
hearts_cfr/reservoir.py

Reservoir sampling buffer for Deep CFR training.

Uses Vitter's Algorithm R to maintain a fixed-capacity uniform random sample
of all advantage samples ever generated: after ``seen_count`` samples have
been added, each one is present with probability
``min(1, capacity / seen_count)``.

The buffer is mutated only by the single-threaded ingestion step that follows
each generation batch. Readers take a snapshot via ``items`` or
``to_arrays()`` between generation rounds.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from .cfr.exceptions import ReservoirIOError
from .constants import NUM_ACTIONS
from .encoding import INPUT_DIM
from .sample import AdvantageSample

logger = logging.getLogger(__name__)


class Reservoir:
    """
    Fixed-capacity reservoir of advantage samples.

    Guarantees a uniform random sample over all items ever added,
    regardless of how many items have been seen.
    """

    def __init__(self, capacity: int, rng: np.random.Generator):
        if capacity <= 0:
            raise ValueError(f"Reservoir capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.rng = rng
        self.seen_count: int = 0
        self._items: List[AdvantageSample] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[AdvantageSample]:
        """Snapshot of the current contents."""
        return list(self._items)

    def add_one(self, sample: AdvantageSample):
        """
        Add a sample to the buffer using reservoir sampling.

        If the buffer is not full, the sample is appended directly.
        Once full, the new sample replaces a uniformly chosen existing sample
        with probability capacity / (seen_count + 1), and is discarded otherwise.
        """
        if self.seen_count < self.capacity:
            self._items.append(sample)
        else:
            idx = int(self.rng.integers(0, self.seen_count + 1))
            if idx < self.capacity:
                self._items[idx] = sample
        self.seen_count += 1

    def add_many(self, samples: Iterable[AdvantageSample]):
        """Adds the given samples in order."""
        for sample in samples:
            self.add_one(sample)

    def sample_batch(self, batch_size: int) -> List[AdvantageSample]:
        """
        Sample a random batch from the buffer.

        Args:
            batch_size: Number of samples to draw (without replacement).

        Returns:
            len() == min(batch_size, buffer size) samples.
        """
        actual_size = min(batch_size, len(self._items))
        if actual_size == 0:
            return []
        indices = self.rng.choice(len(self._items), actual_size, replace=False)
        return [self._items[i] for i in indices]

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Stack the buffer into arrays suitable for conversion to PyTorch tensors.

        Returns:
            Tuple of (features, targets, weights):
              - features: (N, INPUT_DIM) float32
              - targets: (N, NUM_ACTIONS) float32
              - weights: (N,) float32
        """
        return samples_to_arrays(self._items)

    def save(self, path: Union[str, Path]):
        """
        Save the buffer to disk as a compressed numpy archive.

        Encodings are stored bit-packed; seen_count and capacity are stored
        as scalar metadata.

        Raises:
            ReservoirIOError: If file I/O operations fail.
        """
        try:
            filepath = Path(path)
            filepath.parent.mkdir(parents=True, exist_ok=True)

            n = len(self._items)
            if n:
                encodings = np.stack([s.encoding for s in self._items])
                regrets = np.stack([s.regrets for s in self._items])
            else:
                encodings = np.empty((0, INPUT_DIM), dtype=bool)
                regrets = np.empty((0, NUM_ACTIONS), dtype=np.float32)
            np.savez_compressed(
                str(filepath),
                encodings=np.packbits(encodings, axis=1, bitorder="little"),
                regrets=regrets,
                weights=np.array([s.weight for s in self._items], dtype=np.float64),
                meta=np.array([self.seen_count, self.capacity], dtype=np.int64),
            )
            logger.info(
                "Saved reservoir (%d samples, %d seen) to %s",
                n,
                self.seen_count,
                filepath,
            )
        except OSError as e:
            logger.error("Failed to save reservoir to %s: %s", path, e)
            raise ReservoirIOError(f"Failed to save reservoir to {path}: {e}") from e

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        rng: np.random.Generator,
        capacity: Optional[int] = None,
    ) -> "Reservoir":
        """
        Load a buffer from a numpy archive saved by save().

        If ``capacity`` is given and smaller than the number of stored
        samples, the contents are randomly subsampled down to it.

        Raises:
            ReservoirIOError: If the file is missing, unreadable or corrupted.
        """
        filepath = Path(path)
        if filepath.suffix != ".npz":
            filepath = Path(str(path) + ".npz")
        try:
            with np.load(str(filepath)) as data:
                seen_count, saved_capacity = (int(x) for x in data["meta"])
                encodings = np.unpackbits(
                    data["encodings"], axis=1, count=INPUT_DIM, bitorder="little"
                ).astype(bool)
                regrets = data["regrets"].astype(np.float32)
                weights = data["weights"]
        except FileNotFoundError as e:
            logger.error("Reservoir file not found: %s", filepath)
            raise ReservoirIOError(f"Reservoir file not found: {filepath}") from e
        except OSError as e:
            logger.error("Failed to load reservoir from %s: %s", filepath, e)
            raise ReservoirIOError(f"Failed to load reservoir from {filepath}: {e}") from e
        except (KeyError, ValueError) as e:
            logger.error("Corrupted reservoir file %s: %s", filepath, e)
            raise ReservoirIOError(f"Corrupted reservoir file {filepath}: {e}") from e

        n = len(encodings)
        if not (len(regrets) == len(weights) == n):
            raise ReservoirIOError(f"Corrupted reservoir file {filepath}: column lengths differ")

        capacity = capacity or saved_capacity
        indices: Iterable[int] = range(n)
        if n > capacity:
            logger.info(
                "Loaded reservoir had %d samples, truncating to capacity %d",
                n,
                capacity,
            )
            indices = sorted(rng.choice(n, capacity, replace=False))

        reservoir = cls(capacity, rng)
        reservoir.seen_count = seen_count
        reservoir._items = [
            AdvantageSample(encodings[i], regrets[i], float(weights[i])) for i in indices
        ]
        logger.info(
            "Loaded reservoir: %d samples, %d seen, capacity %d from %s",
            len(reservoir),
            reservoir.seen_count,
            reservoir.capacity,
            filepath,
        )
        return reservoir


def samples_to_arrays(
    samples: List[AdvantageSample],
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Convert a list of AdvantageSamples into batched numpy arrays.

    Returns:
        Tuple of (features, targets, weights):
          - features: (N, INPUT_DIM) float32
          - targets: (N, NUM_ACTIONS) float32
          - weights: (N,) float32
    """
    if not samples:
        return (
            np.empty((0, INPUT_DIM), dtype=np.float32),
            np.empty((0, NUM_ACTIONS), dtype=np.float32),
            np.empty(0, dtype=np.float32),
        )

    features = np.stack([s.encoding for s in samples]).astype(np.float32)
    targets = np.stack([s.regrets for s in samples])
    weights = np.array([s.weight for s in samples], dtype=np.float32)

    return features, targets, weights
