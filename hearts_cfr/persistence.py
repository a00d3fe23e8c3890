# hearts_cfr/persistence.py
"""
Checkpoint and snapshot writes for the training loop. Both go through a
temporary file in the destination directory that is renamed over the target,
so a crash never leaves a half-written model or reservoir behind.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator
import os
import logging
import tempfile

import torch

from .cfr.exceptions import CheckpointSaveError

logger = logging.getLogger(__name__)


@contextmanager
def _replace_on_success(path: str, suffix: str) -> Iterator[str]:
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".", suffix=suffix)
    os.close(fd)
    try:
        yield tmp_path
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def save_model_checkpoint(
    network: torch.nn.Module, iteration: int, path: str, metadata: Dict[str, Any]
) -> None:
    """
    Saves a trained advantage network with its iteration and training metadata.

    An existing checkpoint at ``path`` is only replaced once the new one has
    been written completely.

    Raises:
        CheckpointSaveError: If the file cannot be written.
    """
    checkpoint = {
        "iteration": iteration,
        "model_state_dict": network.state_dict(),
        **metadata,
    }
    try:
        with _replace_on_success(path, ".pt.tmp") as tmp_path:
            torch.save(checkpoint, tmp_path)
    except (OSError, RuntimeError) as e:
        logger.error("Failed to save model checkpoint to %s: %s", path, e)
        raise CheckpointSaveError(f"Failed to save model checkpoint to {path}: {e}") from e
    logger.info("Saved model for iteration %d to %s", iteration, path)


def save_reservoir_snapshot(reservoir: Any, path: str) -> str:
    """
    Writes ``reservoir.save`` output to ``path``, replacing any previous
    snapshot in one step. Returns the final path, which always ends in .npz.

    Raises:
        ReservoirIOError: Propagated from the reservoir if the write fails.
    """
    if not path.endswith(".npz"):
        path += ".npz"
    # the temporary name ends in .npz so numpy writes it as given
    with _replace_on_success(path, ".tmp.npz") as tmp_path:
        reservoir.save(tmp_path)
    return path
