"""Error types and codes."""
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes."""

    INGESTION_ERROR = "INGESTION_ERROR"
    MODEL_LOAD_ERROR = "MODEL_LOAD_ERROR"
    MODEL_SERVER_ERROR = "MODEL_SERVER_ERROR"
    ACCELERATION_UNAVAILABLE = "ACCELERATION_UNAVAILABLE"
    NOT_READY = "NOT_READY"
    NO_DOCUMENT = "NO_DOCUMENT"


class DocChatError(Exception):
    """Base class for pipeline errors."""

    code = ErrorCode.MODEL_LOAD_ERROR

    def __init__(self, message: str) -> None:
        """Initialize error.

        Args:
            message: Error message
        """
        super().__init__(message)
        self.message = message


class IngestionError(DocChatError):
    """Document has no extractable text, no chunks, or an unsupported format."""

    code = ErrorCode.INGESTION_ERROR


class ModelLoadError(DocChatError):
    """A model backend failed to initialize."""

    code = ErrorCode.MODEL_LOAD_ERROR


class ModelServerError(ModelLoadError):
    """The model server answered with a non-model payload (usually an HTML error page).

    Typically transient, so callers should offer a retry.
    """

    code = ErrorCode.MODEL_SERVER_ERROR


class AccelerationUnavailableError(ModelLoadError):
    """Required GPU acceleration is not available to the generation model."""

    code = ErrorCode.ACCELERATION_UNAVAILABLE


class NotReadyError(DocChatError):
    """A component was used before it finished initializing."""

    code = ErrorCode.NOT_READY


class NoDocumentError(DocChatError):
    """A query was issued with no indexed document."""

    code = ErrorCode.NO_DOCUMENT
