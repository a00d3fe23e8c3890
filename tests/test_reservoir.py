"""
tests/test_reservoir.py

Tests for the reservoir sampling buffer and its npz snapshots.
"""

import os

import numpy as np
import pytest

from hearts_cfr.cfr.exceptions import ReservoirIOError
from hearts_cfr.encoding import INPUT_DIM
from hearts_cfr.persistence import save_reservoir_snapshot
from hearts_cfr.reservoir import Reservoir
from hearts_cfr.sample import AdvantageSample


def make_sample(rng: np.random.Generator, iteration: int = 1) -> AdvantageSample:
    encoding = rng.random(INPUT_DIM) < 0.3
    regrets = np.zeros(52, dtype=np.float32)
    idx = rng.choice(52, size=int(rng.integers(2, 14)), replace=False)
    regrets[idx] = rng.normal(size=len(idx))
    return AdvantageSample.from_encoding(encoding, regrets, iteration)


def tagged_sample(i: int) -> AdvantageSample:
    """A sample whose first regret identifies it."""
    regrets = np.zeros(52, dtype=np.float32)
    regrets[0] = float(i + 1)
    return AdvantageSample.from_encoding(np.zeros(INPUT_DIM, dtype=bool), regrets, 1)


class TestAddSamples:
    def test_fills_until_capacity(self, rng):
        reservoir = Reservoir(10, rng)
        reservoir.add_many(make_sample(rng) for _ in range(7))
        assert len(reservoir) == 7
        assert reservoir.seen_count == 7

    def test_size_never_exceeds_capacity(self, rng):
        reservoir = Reservoir(10, rng)
        for i in range(100):
            reservoir.add_one(tagged_sample(i))
            assert len(reservoir) == min(i + 1, 10)
        assert reservoir.seen_count == 100

    def test_invalid_capacity(self, rng):
        with pytest.raises(ValueError):
            Reservoir(0, rng)

    def test_deterministic_for_same_seed(self):
        a = Reservoir(5, np.random.default_rng(9))
        b = Reservoir(5, np.random.default_rng(9))
        for i in range(50):
            a.add_one(tagged_sample(i))
            b.add_one(tagged_sample(i))
        assert [s.regrets[0] for s in a.items] == [s.regrets[0] for s in b.items]

    def test_uniform_inclusion(self):
        """Each of 20 items should be kept about capacity / seen of the time."""
        counts = np.zeros(20)
        for seed in range(2000):
            reservoir = Reservoir(5, np.random.default_rng(seed))
            reservoir.add_many(tagged_sample(i) for i in range(20))
            for sample in reservoir.items:
                counts[int(sample.regrets[0]) - 1] += 1
        freq = counts / 2000
        assert np.all(np.abs(freq - 0.25) < 0.05)

    def test_items_is_snapshot(self, rng):
        reservoir = Reservoir(3, rng)
        reservoir.add_one(make_sample(rng))
        snapshot = reservoir.items
        reservoir.add_one(make_sample(rng))
        assert len(snapshot) == 1


class TestBatches:
    def test_sample_batch(self, rng):
        reservoir = Reservoir(50, rng)
        reservoir.add_many(tagged_sample(i) for i in range(30))
        batch = reservoir.sample_batch(10)
        assert len(batch) == 10
        assert len({float(s.regrets[0]) for s in batch}) == 10
        assert len(reservoir.sample_batch(100)) == 30

    def test_sample_batch_empty(self, rng):
        assert Reservoir(5, rng).sample_batch(3) == []

    def test_to_arrays(self, rng):
        reservoir = Reservoir(10, rng)
        reservoir.add_many(make_sample(rng, iteration=4) for _ in range(3))
        features, targets, weights = reservoir.to_arrays()
        assert features.shape == (3, INPUT_DIM)
        assert features.dtype == np.float32
        assert targets.shape == (3, 52)
        np.testing.assert_allclose(weights, [2.0, 2.0, 2.0])

    def test_to_arrays_empty(self, rng):
        features, targets, weights = Reservoir(4, rng).to_arrays()
        assert features.shape == (0, INPUT_DIM)
        assert targets.shape == (0, 52)
        assert weights.shape == (0,)


class TestPersistence:
    def test_save_load_round_trip(self, rng, tmp_path):
        reservoir = Reservoir(8, rng)
        reservoir.add_many(make_sample(rng, iteration=2) for _ in range(12))
        path = str(tmp_path / "reservoir")
        reservoir.save(path)

        loaded = Reservoir.load(path, np.random.default_rng(0))
        assert loaded.capacity == 8
        assert loaded.seen_count == 12
        assert loaded.items == reservoir.items

    def test_load_truncates_to_smaller_capacity(self, rng, tmp_path):
        reservoir = Reservoir(10, rng)
        reservoir.add_many(make_sample(rng) for _ in range(10))
        path = str(tmp_path / "reservoir.npz")
        reservoir.save(path)

        loaded = Reservoir.load(path, np.random.default_rng(0), capacity=4)
        assert loaded.capacity == 4
        assert len(loaded) == 4
        assert all(sample in reservoir.items for sample in loaded.items)

    def test_load_missing_file(self, rng, tmp_path):
        with pytest.raises(ReservoirIOError):
            Reservoir.load(str(tmp_path / "missing.npz"), rng)

    def test_load_corrupted_file(self, rng, tmp_path):
        path = str(tmp_path / "bad.npz")
        np.savez(path, something=np.zeros(3))
        with pytest.raises(ReservoirIOError):
            Reservoir.load(path, rng)

    def test_atomic_save(self, rng, tmp_path):
        reservoir = Reservoir(4, rng)
        reservoir.add_one(make_sample(rng))
        path = save_reservoir_snapshot(reservoir, str(tmp_path / "Reservoir"))
        assert path == str(tmp_path / "Reservoir.npz")
        assert os.listdir(tmp_path) == ["Reservoir.npz"]
        assert len(Reservoir.load(path, rng)) == 1
