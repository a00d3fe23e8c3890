"""
hearts_cfr/sample_store.py

Append-only binary file of advantage samples.

File layout (all integers little-endian):
  - Header (8 bytes): magic b"Hrts", int32 iteration (>= 0).
  - Zero or more fixed-size records (100 bytes each):
      * 35 bytes: encoding bits packed LSB-first (bit i lives in byte i // 8)
      * 13 slots of (uint8 card index, float32 regret). Only non-zero regrets
        are written; unused slots hold index 0xFF and regret 0.0.

The file size must always equal header size plus a whole number of records.
This is checked on open and after every append; a store that fails the check
refuses further writes.
"""

import logging
import math
import os
import struct
import sys
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Sequence, Tuple, Union

import numpy as np

from .cfr.exceptions import SampleStoreError
from .constants import MAX_ACTIONS, NUM_ACTIONS
from .encoding import INPUT_DIM
from .sample import AdvantageSample

if sys.platform != "win32":
    import fcntl

logger = logging.getLogger(__name__)

MAGIC = b"Hrts"
HEADER = struct.Struct("<4si")
HEADER_SIZE = HEADER.size  # 8

UNUSED_SLOT = 0xFF
PACKED_ENCODING_SIZE = (INPUT_DIM + 7) // 8  # 35

RECORD_DTYPE = np.dtype(
    [
        ("encoding", np.uint8, (PACKED_ENCODING_SIZE,)),
        ("slots", [("index", np.uint8), ("regret", "<f4")], (MAX_ACTIONS,)),
    ]
)
RECORD_SIZE = RECORD_DTYPE.itemsize  # 35 + 13 * 5 = 100

PathLike = Union[str, Path]


def pack_samples(samples: Sequence[AdvantageSample]) -> np.ndarray:
    """Converts samples into an array of on-disk records."""
    records = np.zeros(len(samples), dtype=RECORD_DTYPE)
    records["slots"]["index"] = UNUSED_SLOT
    for i, sample in enumerate(samples):
        records["encoding"][i] = np.packbits(sample.encoding, bitorder="little")
        (nonzero,) = np.nonzero(sample.regrets)
        if len(nonzero) > MAX_ACTIONS:
            raise SampleStoreError(
                f"Sample has {len(nonzero)} non-zero regrets, at most {MAX_ACTIONS} allowed"
            )
        n = len(nonzero)
        records["slots"]["index"][i, :n] = nonzero
        records["slots"]["regret"][i, :n] = sample.regrets[nonzero]
    return records


def unpack_records(records: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Converts on-disk records into dense arrays.

    Returns:
        Tuple of (encodings, regrets):
          - encodings: (N, INPUT_DIM) bool
          - regrets: (N, NUM_ACTIONS) float32
    """
    n = len(records)
    encodings = np.unpackbits(
        records["encoding"], axis=1, count=INPUT_DIM, bitorder="little"
    ).astype(bool)
    regrets = np.zeros((n, NUM_ACTIONS), dtype=np.float32)
    indices = records["slots"]["index"]
    values = records["slots"]["regret"]
    rows, cols = np.nonzero(indices != UNUSED_SLOT)
    card_indices = indices[rows, cols]
    if card_indices.size and int(card_indices.max()) >= NUM_ACTIONS:
        raise SampleStoreError(f"Invalid card index in record: {int(card_indices.max())}")
    regrets[rows, card_indices] = values[rows, cols]
    return encodings, regrets


class AdvantageSampleStore:
    """
    A sample file opened either for appending (``create``) or reading
    (``open_read``). Use as a context manager to close the file.
    """

    def __init__(self, stream: BinaryIO, path: Path, iteration: int, writable: bool):
        self._stream = stream
        self.path = path
        self.iteration = iteration
        self.writable = writable
        self._invalid = False

    # --- Construction ---

    @classmethod
    def create(cls, path: PathLike, iteration: int) -> "AdvantageSampleStore":
        """
        Creates a new store file with an exclusive lock.

        Raises:
            SampleStoreError: If the file already exists, is locked by another
                process, or the iteration is negative.
        """
        if iteration < 0:
            raise SampleStoreError(f"Iteration must be non-negative, got {iteration}")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            stream = open(path, "x+b")
        except FileExistsError as e:
            raise SampleStoreError(f"Sample store already exists: {path}") from e

        try:
            if sys.platform != "win32":
                fcntl.flock(stream.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            stream.write(HEADER.pack(MAGIC, iteration))
            stream.flush()
        except BlockingIOError as e:
            stream.close()
            raise SampleStoreError(f"Sample store is locked by another writer: {path}") from e
        except OSError:
            stream.close()
            raise

        logger.info("Created sample store %s for iteration %d", path, iteration)
        store = cls(stream, path, iteration, writable=True)
        store._check_size()
        return store

    @classmethod
    def open_read(cls, path: PathLike) -> "AdvantageSampleStore":
        """
        Opens an existing store for reading.

        Raises:
            SampleStoreError: If the header or file size is invalid.
        """
        path = Path(path)
        stream = open(path, "rb")
        try:
            header = stream.read(HEADER_SIZE)
            if len(header) != HEADER_SIZE:
                raise SampleStoreError(f"Truncated header in {path}")
            magic, iteration = HEADER.unpack(header)
            if magic != MAGIC:
                raise SampleStoreError(f"Invalid magic {magic!r} in {path}")
            if iteration < 0:
                raise SampleStoreError(f"Invalid iteration {iteration} in {path}")
            store = cls(stream, path, iteration, writable=False)
            store._check_size()
        except Exception:
            stream.close()
            raise
        logger.debug("Opened sample store %s: %d samples", path, store.count)
        return store

    # --- Size invariant ---

    def _file_size(self) -> int:
        return os.fstat(self._stream.fileno()).st_size

    def _check_size(self):
        size = self._file_size()
        if size < HEADER_SIZE or (size - HEADER_SIZE) % RECORD_SIZE != 0:
            self._invalid = True
            raise SampleStoreError(
                f"Invalid sample store size {size} for {self.path}: "
                f"expected {HEADER_SIZE} + k * {RECORD_SIZE}"
            )

    # --- Reading ---

    @property
    def count(self) -> int:
        return (self._file_size() - HEADER_SIZE) // RECORD_SIZE

    def __len__(self) -> int:
        return self.count

    def _read_records(self, start: int, n: int) -> np.ndarray:
        self._stream.seek(HEADER_SIZE + start * RECORD_SIZE)
        data = self._stream.read(n * RECORD_SIZE)
        if len(data) != n * RECORD_SIZE:
            raise SampleStoreError(f"Short read from {self.path}")
        return np.frombuffer(data, dtype=RECORD_DTYPE)

    @property
    def weight(self) -> float:
        return math.sqrt(self.iteration)

    def read_sample(self, index: int) -> AdvantageSample:
        count = self.count
        if not 0 <= index < count:
            raise IndexError(f"Sample index {index} out of range for {count} samples")
        encodings, regrets = unpack_records(self._read_records(index, 1))
        return AdvantageSample(encodings[0], regrets[0], self.weight)

    def __getitem__(self, index: int) -> AdvantageSample:
        if index < 0:
            index += self.count
        return self.read_sample(index)

    def __iter__(self) -> Iterator[AdvantageSample]:
        for index in range(self.count):
            yield self.read_sample(index)

    def read_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """All samples as dense (encodings, regrets) arrays."""
        return unpack_records(self._read_records(0, self.count))

    # --- Writing ---

    def append_samples(self, samples: Iterable[AdvantageSample]):
        """
        Appends the given samples at the end of the file.

        Raises:
            SampleStoreError: If the store is read-only or failed a size check.
        """
        if not self.writable:
            raise SampleStoreError(f"Sample store {self.path} is open read-only")
        if self._invalid:
            raise SampleStoreError(f"Sample store {self.path} failed a size check")

        samples = list(samples)
        records = pack_samples(samples)
        self._check_size()
        try:
            self._stream.seek(0, os.SEEK_END)
            self._stream.write(records.tobytes())
            self._stream.flush()
        except BaseException:
            # a partial record may have reached the file
            self._invalid = True
            raise
        self._check_size()
        logger.debug("Appended %d samples to %s", len(samples), self.path)

    # --- Lifetime ---

    def close(self):
        if not self._stream.closed:
            # closing the descriptor also releases the lock
            self._stream.close()

    def __enter__(self) -> "AdvantageSampleStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        mode = "w" if self.writable else "r"
        return f"AdvantageSampleStore({str(self.path)!r}, iteration={self.iteration}, mode={mode!r})"


class AdvantageSampleStoreGroup:
    """Several sample stores read as one collection, typically one per iteration."""

    def __init__(self, stores: Sequence[AdvantageSampleStore]):
        if not stores:
            raise SampleStoreError("A store group needs at least one store")
        self.stores: List[AdvantageSampleStore] = list(stores)

    @classmethod
    def open_read(cls, paths: Iterable[PathLike]) -> "AdvantageSampleStoreGroup":
        stores: List[AdvantageSampleStore] = []
        try:
            for path in paths:
                stores.append(AdvantageSampleStore.open_read(path))
        except Exception:
            for store in stores:
                store.close()
            raise
        return cls(stores)

    @property
    def iteration(self) -> int:
        return max(store.iteration for store in self.stores)

    @property
    def num_samples(self) -> int:
        return sum(store.count for store in self.stores)

    def __len__(self) -> int:
        return self.num_samples

    def iter_samples(self) -> Iterator[AdvantageSample]:
        for store in self.stores:
            yield from store

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Returns:
            Tuple of (features, targets, weights):
              - features: (N, INPUT_DIM) float32
              - targets: (N, NUM_ACTIONS) float32
              - weights: (N,) float32
        """
        features, targets, weights = [], [], []
        for store in self.stores:
            encodings, regrets = store.read_arrays()
            features.append(encodings.astype(np.float32))
            targets.append(regrets)
            weights.append(np.full(len(regrets), store.weight, dtype=np.float32))
        return (
            np.concatenate(features),
            np.concatenate(targets),
            np.concatenate(weights),
        )

    def close(self):
        for store in self.stores:
            store.close()

    def __enter__(self) -> "AdvantageSampleStoreGroup":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
