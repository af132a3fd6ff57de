"""
Error taxonomy for the capture pipeline.

Only PersistenceFailed ever reaches the caller of a capture. Every other
error is absorbed inside the pipeline and turned into a "no data" state.
"""


class PlacelensError(Exception):
    """Base class for all pipeline errors."""


class RecognitionUnavailable(PlacelensError):
    """The text-recognition engine cannot run (missing library, init failure)."""


class PreprocessingFailed(PlacelensError):
    """A filter stage produced no output."""


class SearchFailed(PlacelensError):
    """The nearby-place search errored or timed out."""


class GeocodeFailed(PlacelensError):
    """Reverse geocoding errored or timed out."""


class PersistenceFailed(PlacelensError):
    """
    Saving a capture failed.

    The resolution that was about to be saved is kept on the exception so the
    caller can retry or show it without re-running recognition.
    """

    def __init__(self, message: str, resolution=None):
        super().__init__(message)
        self.resolution = resolution
