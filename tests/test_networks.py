"""
tests/test_networks.py

Tests for the advantage network, device resolution and model checkpoints.
"""

import os
from unittest.mock import patch

import pytest
import torch

from hearts_cfr.cfr.exceptions import CheckpointLoadError, CheckpointSaveError
from hearts_cfr.config import ModelConfig
from hearts_cfr.encoding import INPUT_DIM
from hearts_cfr.networks import (
    AdvantageNetwork,
    build_advantage_network,
    load_advantage_network,
    resolve_device,
)
from hearts_cfr.persistence import save_model_checkpoint


SMALL = ModelConfig(hidden_size=24, num_hidden_layers=2, dropout=0.0, device="cpu")


class TestAdvantageNetwork:
    def test_output_shape(self):
        network = build_advantage_network(SMALL)
        out = network(torch.zeros(5, INPUT_DIM))
        assert out.shape == (5, 52)
        assert network.input_dim == INPUT_DIM
        assert network.output_dim == 52

    def test_rejects_bad_input_shape(self):
        network = build_advantage_network(SMALL)
        with pytest.raises(ValueError):
            network(torch.zeros(5, INPUT_DIM + 1))
        with pytest.raises(ValueError):
            network(torch.zeros(INPUT_DIM))

    def test_hidden_layer_count(self):
        assert len(build_advantage_network(SMALL).res_blocks) == 2
        assert len(AdvantageNetwork(hidden_dim=8, num_hidden_layers=0).res_blocks) == 0

    def test_can_overfit_single_batch(self):
        torch.manual_seed(0)
        network = build_advantage_network(SMALL)
        x = (torch.rand(16, INPUT_DIM) < 0.3).float()
        y = torch.randn(16, 52)
        optimizer = torch.optim.Adam(network.parameters(), lr=1e-2)
        first = None
        for _ in range(300):
            optimizer.zero_grad()
            loss = torch.nn.functional.mse_loss(network(x), y)
            loss.backward()
            optimizer.step()
            first = first if first is not None else loss.item()
        assert loss.item() < first * 0.2


class TestDevice:
    def test_cpu(self):
        assert resolve_device("cpu") == torch.device("cpu")

    def test_auto(self):
        with patch("torch.cuda.is_available", return_value=False):
            assert resolve_device("auto") == torch.device("cpu")

    def test_cuda_falls_back_to_cpu(self):
        with patch("torch.cuda.is_available", return_value=False):
            assert resolve_device("cuda") == torch.device("cpu")


class TestCheckpoints:
    def test_save_and_load(self, tmp_path):
        network = build_advantage_network(SMALL)
        path = str(tmp_path / "AdvantageModel001.pt")
        save_model_checkpoint(network, 1, path, {"losses": [0.5, 0.25]})

        checkpoint = torch.load(path, map_location="cpu", weights_only=True)
        assert checkpoint["iteration"] == 1
        assert checkpoint["losses"] == [0.5, 0.25]

        loaded = load_advantage_network(path, SMALL)
        x = torch.rand(3, INPUT_DIM)
        network.eval()
        assert torch.allclose(loaded(x), network(x))
        assert not loaded.training

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(CheckpointLoadError):
            load_advantage_network(str(tmp_path / "missing.pt"), SMALL)

    def test_load_architecture_mismatch(self, tmp_path):
        path = str(tmp_path / "model.pt")
        save_model_checkpoint(build_advantage_network(SMALL), 1, path, {})
        other = ModelConfig(hidden_size=32, num_hidden_layers=1, device="cpu")
        with pytest.raises(CheckpointLoadError):
            load_advantage_network(path, other)

    def test_save_failure(self, tmp_path):
        network = build_advantage_network(SMALL)
        with patch("torch.save", side_effect=OSError("disk full")):
            with pytest.raises(CheckpointSaveError):
                save_model_checkpoint(network, 1, str(tmp_path / "m.pt"), {})
        assert os.listdir(tmp_path) == []


class TestAtomicCheckpoint:
    def test_failed_save_keeps_previous_checkpoint(self, tmp_path):
        path = str(tmp_path / "checkpoint.pt")
        save_model_checkpoint(build_advantage_network(SMALL), 1, path, {})
        with patch("torch.save", side_effect=OSError("disk full")):
            with pytest.raises(CheckpointSaveError, match="disk full"):
                save_model_checkpoint(build_advantage_network(SMALL), 2, path, {})
        assert os.listdir(tmp_path) == ["checkpoint.pt"]
        loaded = torch.load(path, map_location="cpu", weights_only=True)
        assert loaded["iteration"] == 1

    def test_overwrites_existing_file(self, tmp_path):
        path = str(tmp_path / "checkpoint.pt")
        save_model_checkpoint(build_advantage_network(SMALL), 1, path, {})
        save_model_checkpoint(build_advantage_network(SMALL), 2, path, {})
        loaded = torch.load(path, map_location="cpu", weights_only=True)
        assert loaded["iteration"] == 2
