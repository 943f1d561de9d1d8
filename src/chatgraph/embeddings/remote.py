"""Embedding provider backed by the Google Generative Language API.

Requests go out strictly one batch at a time with a fixed delay between
batches. Each conversation is retried with exponential backoff plus jitter;
a conversation that still fails is skipped, and so is a batch that fails as
a whole.
"""

import asyncio
import random
from collections.abc import Sequence
from typing import Any

import httpx

from chatgraph.config import EmbeddingConfig
from chatgraph.embeddings.base import EmbeddingProgressCallback, EmbeddingProvider, make_embedding
from chatgraph.errors import EmbeddingBatchFailure, EmbeddingItemError
from chatgraph.logging import get_logger
from chatgraph.models import Conversation, ConversationEmbedding

logger = get_logger("embeddings.remote")

TITLE_LIMIT = 100
SUMMARY_LIMIT = 200
KEY_MESSAGE_COUNT = 4
MESSAGE_LIMIT = 300
TEXT_LIMIT = 8000


def validate_api_key(api_key: str | None) -> bool:
    """Check that a value looks like a Google AI API key."""
    return bool(api_key and len(api_key.strip()) > 30 and api_key.startswith("AIza"))


def prepare_text(conversation: Conversation) -> str:
    """Serialize a conversation into a bounded text blob for embedding."""
    title = conversation.title[:TITLE_LIMIT]
    summary = conversation.summary[:SUMMARY_LIMIT]
    key_messages = "\n".join(
        f"{msg.role}: {msg.content[:MESSAGE_LIMIT]}"
        for msg in conversation.messages[:KEY_MESSAGE_COUNT]
    )
    full_text = f"Title: {title}\nSummary: {summary}\nKey Messages:\n{key_messages}"
    return full_text[:TEXT_LIMIT]


def create_batches(items: Sequence[Conversation], batch_size: int) -> list[list[Conversation]]:
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class RemoteEmbeddingProvider(EmbeddingProvider):
    """Embeds conversations through the embedContent REST endpoint."""

    name = "remote"
    rescale_similarity = False

    def __init__(self, config: EmbeddingConfig, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the provider.

        The API key is expected to have been validated by the caller
        (see create_embedding_provider).

        Args:
            config: Embedding settings (key, model, batching and retry budget)
            client: Optional preconfigured HTTP client (used by tests)
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    @property
    def endpoint(self) -> str:
        base_url = self._config.base_url.rstrip("/")
        return f"{base_url}/models/{self._config.model}:embedContent"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(
        self,
        conversations: Sequence[Conversation],
        on_progress: EmbeddingProgressCallback | None = None,
    ) -> list[ConversationEmbedding]:
        embeddings: list[ConversationEmbedding] = []
        batch_size = max(1, self._config.batch_size)
        batches = create_batches(conversations, batch_size)
        total = len(conversations)
        processed = 0

        for i, batch in enumerate(batches):
            try:
                embeddings.extend(await self._process_batch(batch))
            except Exception as e:
                failure = EmbeddingBatchFailure(f"Batch {i + 1} of {len(batches)} failed: {e}")
                logger.error("Skipping embedding batch: %s", failure, exc_info=True)

            processed += len(batch)
            if on_progress is not None:
                on_progress(
                    processed / total * 100,
                    f"Processed batch {i + 1} of {len(batches)}...",
                )

            # Rate limiting
            if i < len(batches) - 1:
                await asyncio.sleep(self._config.rate_limit_delay)

        logger.info("Generated embeddings: success=%d total=%d", len(embeddings), total)
        if on_progress is not None:
            on_progress(100.0, "Embedding generation complete")
        return embeddings

    async def _process_batch(self, batch: Sequence[Conversation]) -> list[ConversationEmbedding]:
        embeddings: list[ConversationEmbedding] = []
        for conversation in batch:
            try:
                vector = await self._embed_with_retry(conversation)
            except EmbeddingItemError as e:
                logger.warning("Skipping conversation embedding: id=%s error=%s", e.conversation_id, e)
                continue
            embeddings.append(make_embedding(conversation, vector))
        return embeddings

    async def _embed_with_retry(self, conversation: Conversation) -> list[float]:
        text = prepare_text(conversation)
        max_retries = max(0, self._config.max_retries)
        last_error: Exception | None = None

        for attempt in range(max_retries + 1):
            try:
                return await self.embed_text(text)
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                if attempt == max_retries:
                    break
                delay = self._config.retry_base_delay * 2**attempt + random.uniform(0, 1)
                logger.info(
                    "Embedding attempt failed: id=%s attempt=%d retry_in=%.2fs",
                    conversation.id,
                    attempt + 1,
                    delay,
                )
                await asyncio.sleep(delay)

        raise EmbeddingItemError(
            conversation.id,
            f"Embedding failed after {max_retries + 1} attempts: {last_error}",
        )

    async def embed_text(self, text: str) -> list[float]:
        """Request a single embedding vector.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
            ValueError: If the response carries no embedding values
        """
        payload: dict[str, Any] = {
            "model": f"models/{self._config.model}",
            "content": {"parts": [{"text": text}]},
        }
        response = await self._client.post(
            self.endpoint,
            json=payload,
            headers={"x-goog-api-key": self._config.api_key},
        )
        response.raise_for_status()

        body = response.json()
        embedding = body.get("embedding") if isinstance(body, dict) else None
        values = embedding.get("values") if isinstance(embedding, dict) else None
        if not isinstance(values, list) or not values:
            raise ValueError("Embedding response contained no values")
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
            raise ValueError("Embedding response contained non-numeric values")
        return [float(v) for v in values]
