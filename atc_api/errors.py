"""
Error types raised by the analysis pipeline.

PreprocessingError and TensorShapeError are fatal to a request.
NoDetectionError and InferenceUnavailable are recovered inside the
analyzer and never reach the caller as failures.
"""


class ATCError(Exception):
    """Base class for analysis pipeline errors."""

    fix = None

    def __init__(self, message: str, fix: str = None):
        super().__init__(message)
        if fix is not None:
            self.fix = fix


class PreprocessingError(ATCError):
    """Image bytes could not be decoded or resized."""

    fix = 'Upload a valid JPEG or PNG photo'


class TensorShapeError(ATCError):
    """Model output does not match the expected planar layout."""

    fix = 'Model and pipeline versions do not match, re-export the model'


class NoDetectionError(ATCError):
    """Decode succeeded but no anchor survived confidence filtering."""

    fix = 'Retake the photo with the whole animal in frame'


class InferenceUnavailable(ATCError):
    """Model is not loaded or the inference call raised."""


class ChatError(Exception):
    """Chat request failed; carries the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 500, attempts: int = 0, detail: str = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.attempts = attempts
        self.detail = detail
