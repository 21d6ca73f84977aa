"""Errors raised by the audio-to-summary pipeline."""


class EchoShrinkError(Exception):
    """Base class for pipeline errors.

    ``description`` is the short text shown to the user when the error is
    surfaced as a notification.
    """

    description = "Something went wrong"

    def __init__(self, message: str | None = None, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message or self.description)


class CaptureUnavailable(EchoShrinkError):
    """Raised when the microphone is denied or missing."""

    description = "Could not access microphone"


class InvalidInput(EchoShrinkError):
    """Raised when an uploaded payload is not audio."""

    description = "Please select a valid audio file"

    def __init__(self, media_type: str, cause: Exception | None = None):
        self.media_type = media_type
        super().__init__(f"Not an audio media type: '{media_type}'", cause)


class RecognitionUnsupported(EchoShrinkError):
    """Raised when no speech recognition is available in this environment."""

    description = "Speech recognition is not supported here"


class RecognitionFailed(EchoShrinkError):
    """Raised when the recognizer reports an error while listening."""

    description = "Failed to process audio"
