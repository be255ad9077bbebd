"""
Exceptions
==========

Error taxonomy for the SignCam pipeline.

Recoverable errors (decode failures) are handled where they occur.
Fatal errors (misconfigured classifier, missing executables, capture
stream termination) propagate to the caller.
"""


class SignCamError(Exception):
    """Base class for all SignCam errors."""
    pass


class ImageDecodeError(SignCamError):
    """Raised when a JPEG frame cannot be decoded."""
    pass


class ClassifierError(SignCamError):
    """Raised when a classifier backend cannot be created or loaded."""
    pass


class CaptureError(SignCamError):
    """Raised when a capture or preview process cannot be started."""
    pass


class SourceTerminatedError(SignCamError):
    """Raised when the capture byte stream ends or fails."""
    pass
