"""Deterministic offline embeddings for demos and tests.

Vectors are a pure function of the conversation id and its topics, so the
same conversation list always produces bit-identical embeddings. A constant
offset on a topic-specific block of dimensions pulls conversations about the
same subject together, which is enough for threshold clustering to group
them.
"""

import math
import zlib
from collections.abc import Sequence

from chatgraph.embeddings.base import EmbeddingProgressCallback, EmbeddingProvider, make_embedding
from chatgraph.logging import get_logger
from chatgraph.models import Conversation, ConversationEmbedding

logger = get_logger("embeddings.offline")

DEFAULT_DIMENSIONS = 768
TOPIC_OFFSET = 1.0

# (keywords, first dimension, end dimension)
TOPIC_BIASES: tuple[tuple[frozenset[str], int, int], ...] = (
    (frozenset({"javascript", "react", "code"}), 0, 128),
    (frozenset({"python", "data"}), 128, 256),
)


def conversation_seed(conversation_id: str) -> int:
    """Stable numeric seed for a conversation id."""
    return zlib.crc32(conversation_id.encode("utf-8")) % 100_000


def pseudo_random_component(seed: int, index: int) -> float:
    """Hash (seed, index) into [-0.5, 0.5) with the fract(sin(x)) trick."""
    value = math.sin(seed * 12.9898 + index * 78.233) * 43758.5453
    return value - math.floor(value) - 0.5


def mock_vector(conversation: Conversation, dimensions: int = DEFAULT_DIMENSIONS) -> list[float]:
    seed = conversation_seed(conversation.id)
    vector = [pseudo_random_component(seed, i) for i in range(dimensions)]

    topics = set(conversation.metadata.topics)
    for keywords, start, end in TOPIC_BIASES:
        if topics & keywords:
            for i in range(start, min(end, dimensions)):
                vector[i] += TOPIC_OFFSET

    return vector


def generate_mock_embeddings(
    conversations: Sequence[Conversation],
    dimensions: int = DEFAULT_DIMENSIONS,
) -> list[ConversationEmbedding]:
    """Generate one deterministic embedding per conversation."""
    return [make_embedding(conv, mock_vector(conv, dimensions)) for conv in conversations]


class OfflineEmbeddingProvider(EmbeddingProvider):
    """Embedding provider that needs no network or credentials."""

    name = "offline"
    rescale_similarity = True

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS) -> None:
        self.dimensions = dimensions

    async def generate(
        self,
        conversations: Sequence[Conversation],
        on_progress: EmbeddingProgressCallback | None = None,
    ) -> list[ConversationEmbedding]:
        embeddings = generate_mock_embeddings(conversations, self.dimensions)
        logger.info("Generated offline embeddings: count=%d dims=%d", len(embeddings), self.dimensions)
        if on_progress is not None:
            on_progress(100.0, "Demo embeddings generated")
        return embeddings
