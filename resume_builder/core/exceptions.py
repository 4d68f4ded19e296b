"""
Exception hierarchy for the resume builder.

Every error carries the HTTP status it maps to so that ``main.py`` can render
it either as the HTML error page or as a JSON body, depending on the route.
Section validation errors are not exceptions: they come back as data from
``FormWizard.apply_patch``.
"""


class ResumeBuilderError(Exception):
    """Base class for all resume builder errors."""

    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotAuthenticatedError(ResumeBuilderError):
    """Raised when an anonymous caller attempts a mutating operation."""

    status_code = 401
    default_message = "User not authenticated"


class ResumeNotFoundError(ResumeBuilderError):
    """Raised when a resume id is absent or not owned by the caller."""

    status_code = 404
    default_message = "Resume not found!"


class EditorSessionNotFoundError(ResumeBuilderError):
    """Raised when an editor session id is unknown, expired or foreign."""

    status_code = 404
    default_message = "Editor session not found"


class GenerationError(ResumeBuilderError):
    """Raised when the language model returns no content. Safe to retry."""

    status_code = 503
    default_message = "Failed to generate AI response"


class GenerationUnavailableError(ResumeBuilderError):
    """Raised when text generation is not configured."""

    status_code = 503
    default_message = "AI generation is not configured."


class RateLimitedError(ResumeBuilderError):
    """Raised when a caller exceeds the AI generation rate limit."""

    status_code = 429
    default_message = "Too many requests. Please wait a moment and try again."

    def __init__(self, message: str = None, retry_after: int = None):
        super().__init__(message)
        self.retry_after = retry_after
