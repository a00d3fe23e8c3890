"""
hearts_cfr/cfr/exceptions.py

Exception taxonomy for traversal, inference, persistence and checkpointing.

Contract violations (GameStateError, EncodingError, TraversalError) indicate a
programming error and are never caught by the library. I/O and inference
failures propagate to the training loop, which aborts the current iteration.
"""


class HeartsCfrError(Exception):
    """Base class for all errors raised by hearts_cfr."""


class GameStateError(HeartsCfrError):
    """Raised when an operation is invalid for the current deal state."""


class EncodingError(HeartsCfrError):
    """Raised when an information set cannot be encoded."""


class TraversalError(HeartsCfrError):
    """Raised when a traversal node is used outside its state contract."""


class InferenceError(HeartsCfrError):
    """Raised when the batched strategy provider fails or misbehaves."""


class SampleStoreError(HeartsCfrError):
    """Raised for malformed or corrupted sample store files."""


class ReservoirIOError(HeartsCfrError):
    """Raised when a reservoir snapshot cannot be saved or loaded."""


class CheckpointSaveError(HeartsCfrError):
    """Raised when a model checkpoint cannot be written."""


class CheckpointLoadError(HeartsCfrError):
    """Raised when a model checkpoint cannot be read."""
