"""
hearts_cfr/networks.py

PyTorch neural network modules for Deep CFR.

AdvantageNetwork: Predicts per-card advantage/regret values.

Architecture:
  Input(276) -> Linear(hidden) -> ReLU -> Dropout
             -> [Linear(hidden) -> ReLU -> Dropout + skip] x num_hidden_layers
             -> Linear(52)

The output is "wide": one advantage per card in the deck. Callers narrow it
to the legal cards of each information set.
"""

import logging
from pathlib import Path
from typing import Union

import torch
import torch.nn as nn

from .cfr.exceptions import CheckpointLoadError
from .config import ModelConfig
from .constants import NUM_ACTIONS
from .encoding import INPUT_DIM

logger = logging.getLogger(__name__)


class _SkipBlock(nn.Module):
    """Residual block: Linear -> ReLU -> Dropout, plus skip connection."""

    def __init__(self, dim: int, dropout: float = 0.1):
        super().__init__()
        self.net = nn.Sequential(
            nn.Linear(dim, dim),
            nn.ReLU(),
            nn.Dropout(dropout),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x + self.net(x)


class AdvantageNetwork(nn.Module):
    """
    Predicts per-card advantage (regret) values for a given information set.

    One network serves every seat, since information sets are encoded from
    the acting seat's perspective.
    """

    def __init__(
        self,
        input_dim: int = INPUT_DIM,
        hidden_dim: int = INPUT_DIM * 2,
        num_hidden_layers: int = 4,
        output_dim: int = NUM_ACTIONS,
        dropout: float = 0.1,
    ):
        super().__init__()
        self._input_dim = input_dim
        self._output_dim = output_dim

        self.input_proj = nn.Sequential(
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Dropout(dropout),
        )
        self.res_blocks = nn.ModuleList(
            [_SkipBlock(hidden_dim, dropout) for _ in range(num_hidden_layers)]
        )
        self.output_head = nn.Linear(hidden_dim, output_dim)
        self._init_weights()

    def _init_weights(self):
        for module in self.modules():
            if isinstance(module, nn.Linear):
                nn.init.kaiming_normal_(module.weight, nonlinearity="relu")
                nn.init.zeros_(module.bias)

    @property
    def input_dim(self) -> int:
        return self._input_dim

    @property
    def output_dim(self) -> int:
        return self._output_dim

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        """
        Args:
            features: (batch, input_dim) float tensor of encoded infoset features.

        Returns:
            (batch, output_dim) float tensor of advantage values.

        Raises:
            ValueError: If input shape is incorrect.
        """
        if features.dim() != 2 or features.shape[1] != self._input_dim:
            raise ValueError(
                f"Invalid features shape: expected (batch, {self._input_dim}), got {tuple(features.shape)}"
            )
        x = self.input_proj(features)
        for block in self.res_blocks:
            x = block(x)
        return self.output_head(x)


def resolve_device(device: str) -> torch.device:
    """Maps a configured device name to a torch device ("auto" = cuda if available)."""
    if device == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    if device == "cuda" and not torch.cuda.is_available():
        logger.warning("CUDA requested but not available; falling back to CPU")
        return torch.device("cpu")
    return torch.device(device)


def build_advantage_network(model_config: ModelConfig) -> AdvantageNetwork:
    """Factory: creates an untrained network from the model configuration."""
    return AdvantageNetwork(
        input_dim=INPUT_DIM,
        hidden_dim=model_config.hidden_size,
        num_hidden_layers=model_config.num_hidden_layers,
        output_dim=NUM_ACTIONS,
        dropout=model_config.dropout,
    )


def load_advantage_network(
    path: Union[str, Path],
    model_config: ModelConfig,
    device: torch.device = torch.device("cpu"),
) -> AdvantageNetwork:
    """
    Loads a network saved by the trainer.

    Raises:
        CheckpointLoadError: If the file cannot be read or does not match the
            configured architecture.
    """
    try:
        checkpoint = torch.load(path, map_location=device, weights_only=True)
    except FileNotFoundError as e:
        raise CheckpointLoadError(f"Model file not found: {path}") from e
    except (OSError, RuntimeError) as e:
        raise CheckpointLoadError(f"Failed to load model from {path}: {e}") from e

    state_dict = checkpoint.get("model_state_dict", checkpoint) if isinstance(checkpoint, dict) else None
    if state_dict is None:
        raise CheckpointLoadError(f"Model file {path} does not contain a state dict")

    network = build_advantage_network(model_config)
    try:
        network.load_state_dict(state_dict)
    except RuntimeError as e:
        raise CheckpointLoadError(
            f"Model file {path} does not match the configured architecture: {e}"
        ) from e
    network.to(device)
    network.eval()
    logger.info("Loaded advantage network from %s", path)
    return network
