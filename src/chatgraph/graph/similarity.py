"""Pairwise cosine similarity over conversation embeddings."""

from collections.abc import Sequence

import numpy as np

from chatgraph.errors import DimensionMismatchError
from chatgraph.logging import get_logger
from chatgraph.models import ConversationEmbedding, SimilarityMatrix

logger = get_logger("similarity")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 if either has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(f"Embeddings must have the same length: {len(a)} != {len(b)}")

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / magnitude, -1.0, 1.0))


def build_similarity_matrix(
    embeddings: Sequence[ConversationEmbedding],
    rescale: bool = False,
) -> SimilarityMatrix:
    """Compute the full pairwise similarity table.

    The result is exactly symmetric with a diagonal of 1.0. With rescale=True
    scores are mapped from [-1, 1] into [0, 1] via (sim + 1) / 2; otherwise the
    raw cosine is stored.

    Raises:
        DimensionMismatchError: If the embeddings are not all the same length
    """
    if not embeddings:
        return {}

    dimensions = len(embeddings[0].embedding)
    for emb in embeddings:
        if len(emb.embedding) != dimensions:
            raise DimensionMismatchError(
                f"Embeddings must have the same length: conversation={emb.conversation_id} "
                f"dims={len(emb.embedding)} expected={dimensions}"
            )

    vectors = np.array([emb.embedding for emb in embeddings], dtype=np.float64)
    norms = np.linalg.norm(vectors, axis=1)
    safe_norms = np.where(norms == 0, 1.0, norms)
    unit = vectors / safe_norms[:, np.newaxis]

    scores = unit @ unit.T
    scores = (scores + scores.T) / 2
    scores = np.clip(scores, -1.0, 1.0)
    if rescale:
        scores = np.clip((scores + 1) / 2, 0.0, 1.0)
    np.fill_diagonal(scores, 1.0)

    ids = [emb.conversation_id for emb in embeddings]
    matrix: SimilarityMatrix = {
        source: {target: float(scores[i, j]) for j, target in enumerate(ids)}
        for i, source in enumerate(ids)
    }

    logger.debug("Built similarity matrix: size=%d rescale=%s", len(ids), rescale)
    return matrix
