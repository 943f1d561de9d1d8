"""Embedding providers for normalized conversations."""

from chatgraph.config import Config
from chatgraph.errors import ConfigurationError

from .base import EmbeddingProgressCallback, EmbeddingProvider, make_embedding
from .offline import OfflineEmbeddingProvider, generate_mock_embeddings
from .remote import RemoteEmbeddingProvider, prepare_text, validate_api_key

__all__ = [
    "EmbeddingProgressCallback",
    "EmbeddingProvider",
    "OfflineEmbeddingProvider",
    "RemoteEmbeddingProvider",
    "create_embedding_provider",
    "generate_mock_embeddings",
    "make_embedding",
    "prepare_text",
    "validate_api_key",
]


def create_embedding_provider(config: Config) -> EmbeddingProvider:
    """Resolve the embedding provider from configuration.

    Demo mode always uses the offline generator. Otherwise the remote API key
    must be present and well formed.

    Raises:
        ConfigurationError: If not in demo mode and the API key is invalid
    """
    if config.demo_mode:
        return OfflineEmbeddingProvider(dimensions=config.embedding.dimensions)

    if not validate_api_key(config.embedding.api_key):
        raise ConfigurationError(
            "Google AI API key is not configured correctly. "
            "Set GOOGLE_AI_API_KEY or embedding.api_key in config.yaml, or enable demo mode."
        )
    return RemoteEmbeddingProvider(config.embedding)
