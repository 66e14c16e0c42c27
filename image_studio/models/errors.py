"""
Error taxonomy for the editing core.

Every error here is terminal for the action that raised it; callers can rely
on the session state being exactly what it was before the action started.
"""


class ImageStudioError(Exception):
    """Base class for all errors raised by the editing core."""

    # Message that is safe to show to an end user.
    public_message = "Image processing failed"


class InvalidImageError(ImageStudioError):
    """Image has a zero dimension or an unusable pixel layout."""

    public_message = "The image is empty or invalid"


class DecodeError(ImageStudioError):
    """Uploaded bytes are not a supported (JPEG/PNG) or readable image."""

    public_message = "Unsupported or corrupt image file"


class EmptyCropError(ImageStudioError):
    """Crop selection resolves to zero or negative area after clamping."""

    public_message = "The crop selection does not cover the image"


class CropNotOpenError(ImageStudioError):
    """Selection edit or confirmation without an open crop tool."""

    public_message = "Open the crop tool first"


class ProcessingError(ImageStudioError):
    """External processing (background removal) failed."""

    public_message = "Failed to remove background. Please try again with a different image."


class UnknownFilterError(ImageStudioError, ValueError):
    """Filter name or point operation is not recognised."""

    public_message = "Unknown filter"


class SessionBusyError(ImageStudioError):
    """A long-running operation is pending for the current image."""

    public_message = "Image is still processing"


class NoImageLoadedError(ImageStudioError):
    """Action requires an image but none was uploaded."""

    public_message = "Please upload an image first."


class InvalidFilterValueError(ImageStudioError, ValueError):
    """Filter value is not a finite number."""

    public_message = "Filter value must be a finite number"
