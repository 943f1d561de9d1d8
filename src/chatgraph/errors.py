"""Exception types raised by the conversation-to-graph pipeline."""


class ChatGraphError(Exception):
    """Base class for pipeline errors."""


class FormatError(ChatGraphError):
    """Raised when an export file is not valid JSON or has an unknown shape."""


class NoValidDataError(ChatGraphError):
    """Raised when every conversation was filtered out during normalization."""


class EmbeddingItemError(ChatGraphError):
    """Raised when one conversation's embedding request exhausts its retries."""

    def __init__(self, conversation_id: str, message: str) -> None:
        super().__init__(message)
        self.conversation_id = conversation_id


class EmbeddingBatchFailure(ChatGraphError):
    """Raised when a whole embedding batch fails."""


class EmbeddingGenerationError(ChatGraphError):
    """Raised when no conversation received an embedding."""


class DimensionMismatchError(ChatGraphError, ValueError):
    """Raised when two embeddings of different lengths are compared."""


class ConfigurationError(ChatGraphError):
    """Raised when the remote provider credential is missing or malformed."""
