"""Resume checkpoint management."""

from .controller import CHECKPOINT_ID, CheckpointController

__all__ = ["CheckpointController", "CHECKPOINT_ID"]
