# =============================================================================
# errors.py
# Exception types raised by the extraction pipeline.
# =============================================================================


class ModelLoadError(RuntimeError):
    """The detector could not be initialised. Fatal to the whole run."""


class BusyError(RuntimeError):
    """A run was requested while another one is still in flight."""


class FrameProcessingError(RuntimeError):
    """A single frame could not be seeked, read or processed."""

    def __init__(self, frame_time: float, reason: str):
        super().__init__(f"Frame at {frame_time:.2f}s failed: {reason}")
        self.frame_time = frame_time
        self.reason = reason


class EnhancementError(ValueError):
    """The pixel buffer handed to the enhancer was unusable."""
