"""Embedding provider interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from chatgraph.models import Conversation, ConversationEmbedding, EmbeddingMetadata

# Receives (percent complete 0-100, human readable message)
EmbeddingProgressCallback = Callable[[float, str], None]


def make_embedding(conversation: Conversation, vector: Sequence[float]) -> ConversationEmbedding:
    """Wrap a vector with the conversation metadata it was derived from."""
    return ConversationEmbedding(
        conversation_id=conversation.id,
        embedding=[float(value) for value in vector],
        metadata=EmbeddingMetadata(
            word_count=conversation.metadata.word_count,
            topic_keywords=list(conversation.metadata.topics),
            generated_at=datetime.now(timezone.utc),
        ),
    )


class EmbeddingProvider(ABC):
    """Base class for embedding providers.

    Subclasses implement `generate()`, returning at most one embedding per
    input conversation. A failure on one conversation must be logged and
    skipped, never raised.
    """

    name: str

    # Whether raw cosine similarity over this provider's vectors should be
    # mapped from [-1, 1] into [0, 1] before thresholding.
    rescale_similarity: bool = False

    @abstractmethod
    async def generate(
        self,
        conversations: Sequence[Conversation],
        on_progress: EmbeddingProgressCallback | None = None,
    ) -> list[ConversationEmbedding]:
        """Generate embeddings for conversations.

        Args:
            conversations: Normalized conversations
            on_progress: Optional callback receiving (percent, message)

        Returns:
            Embeddings for the conversations that succeeded, in input order
        """

    async def aclose(self) -> None:
        """Release any resources held by the provider."""
