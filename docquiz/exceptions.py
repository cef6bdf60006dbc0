"""Custom exception classes for the quiz pipeline."""


class DocQuizError(Exception):
    """Base exception for quiz pipeline errors."""

    status_code = 500


class ValidationError(DocQuizError):
    """Raised when caller input is missing or malformed."""

    status_code = 400


class MissingInputError(ValidationError):
    """Raised when a required text, question or quiz is empty."""
    pass


class UnsupportedMediaTypeError(ValidationError):
    """Raised when the document's media type cannot be extracted."""
    pass


class FileSizeExceededError(ValidationError):
    """Raised when file size exceeds the maximum allowed."""
    pass


class DocumentError(DocQuizError):
    """Base exception for documents that cannot be used."""

    status_code = 400


class ExtractionFailedError(DocumentError):
    """Raised when the document parser reports a fatal error."""
    pass


class EmptyDocumentError(DocumentError):
    """Raised when a document has no extractable text."""
    pass


class GenerationFailedError(DocQuizError):
    """Raised when the generation oracle fails or rejects a request."""
    pass


class MissingCredentialError(DocQuizError):
    """Raised when no oracle API key is configured."""
    pass


class SessionStateError(DocQuizError):
    """Base exception for operations the session state does not allow."""

    status_code = 409


class NoQuizContextError(SessionStateError):
    """Raised when a follow-up arrives before a quiz exists."""
    pass


class BusyError(SessionStateError):
    """Raised when a session already has a pipeline run in flight."""
    pass


class QuizAlreadyGeneratedError(SessionStateError):
    """Raised when a document is submitted to a session that has a quiz."""
    pass


class SessionNotFoundError(DocQuizError):
    """Raised when a session id is unknown."""

    status_code = 404
