"""
Exception taxonomy for kiosk capture processing.

Every error raised by this package derives from KioskVisionError, so a
caller can tell an explicit failure apart from a successful call that
simply found nothing.
"""


class KioskVisionError(Exception):
    """Base class for all kiosk_vision errors."""


class ImageProcessingError(KioskVisionError):
    """An image could not be read, decoded or transformed."""


class AlignmentError(ImageProcessingError):
    """Feature correspondence was insufficient or degenerate."""


class RectangleOutOfBoundsError(ImageProcessingError):
    """A region does not fit inside the image it refers to."""

    def __init__(self, rectangle, bounds):
        self.rectangle = rectangle
        self.bounds = bounds
        super().__init__(f"Rectangle {rectangle} is out of bounds {bounds}")


class ResourceUnavailableError(KioskVisionError):
    """A precondition resource (library, model, image on disk) is missing."""


class NativeCallError(KioskVisionError):
    """A call across the recognition engine boundary returned non-zero."""

    def __init__(self, function: str, code: int):
        self.function = function
        self.code = code
        super().__init__(f"Native call '{function}' failed with error code: {code}")


class BridgeStateError(KioskVisionError):
    """The recognition bridge was used outside of its READY state."""


class NoListingsError(KioskVisionError):
    """No extraction pipeline produced a submission with listings."""

    def __init__(self, message: str = "No listings found"):
        super().__init__(message)
