"""Processing service: runs an export through the full graph pipeline."""

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

from chatgraph.config import Config
from chatgraph.embeddings import EmbeddingProvider, create_embedding_provider
from chatgraph.errors import EmbeddingGenerationError, NoValidDataError
from chatgraph.graph.builder import GraphBuilder, compute_stats
from chatgraph.graph.similarity import build_similarity_matrix
from chatgraph.logging import get_logger
from chatgraph.models import (
    Conversation,
    ConversationEmbedding,
    ConversationGraph,
    ProcessingProgress,
    ProcessingResult,
    ProcessingStats,
    SimilarityMatrix,
    Stage,
    VisualizationControls,
)
from chatgraph.processor.export_parser import parse_export
from chatgraph.processor.normalizer import ConversationNormalizer

logger = get_logger("service")

ProgressCallback = Callable[[ProcessingProgress], None]

# Share of the overall progress bar owned by the embedding stage
EMBEDDING_START = 30.0
EMBEDDING_SPAN = 40.0


class ProcessingService:
    """Sequences parse -> clean -> embed -> similarity -> graph.

    The embedding provider is resolved once, at construction, so credential
    problems surface before any stage runs. After a successful run the
    conversations, embeddings and similarity matrix are cached so the graph
    can be rebuilt for new controls without recomputing embeddings. Callers
    must not run rebuilds concurrently.
    """

    def __init__(
        self,
        config: Config,
        provider: EmbeddingProvider | None = None,
        normalizer: ConversationNormalizer | None = None,
        graph_builder: GraphBuilder | None = None,
    ) -> None:
        self._config = config
        self._provider = provider or create_embedding_provider(config)
        self._normalizer = normalizer or ConversationNormalizer()
        self._graph_builder = graph_builder or GraphBuilder()
        self._cache: ProcessingResult | None = None

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    @property
    def cached(self) -> ProcessingResult | None:
        """Result of the last successful process_file call, if any."""
        return self._cache

    async def process_file(
        self,
        source: Path | bytes | str,
        on_progress: ProgressCallback | None = None,
    ) -> ProcessingResult:
        """Run the full pipeline over an export file.

        Args:
            source: Path to the export, or its raw content
            on_progress: Receives a ProcessingProgress after each step

        Returns:
            The graph together with the data needed to rebuild it

        Raises:
            FormatError: If the export cannot be parsed
            NoValidDataError: If no conversation survives normalization
            EmbeddingGenerationError: If no embedding could be generated
            DimensionMismatchError: If embeddings have inconsistent lengths
        """
        stage: Stage = "parsing"

        def report(progress: float, message: str) -> None:
            if on_progress is not None:
                on_progress(ProcessingProgress(stage=stage, progress=progress, message=message))

        try:
            report(0, "Parsing ChatGPT export file...")
            if isinstance(source, Path):
                data: bytes | str = await asyncio.to_thread(source.read_bytes)
            else:
                data = source
            records = parse_export(data)

            stage = "cleaning"
            report(20, "Cleaning and filtering conversations...")
            conversations = self._normalizer.normalize(records)
            if not conversations:
                raise NoValidDataError("No valid conversations found in the export file.")
            report(30, f"Found {len(conversations)} valid conversations")

            stage = "embedding"
            report(EMBEDDING_START, f"Generating embeddings with {self._provider.name} provider...")
            embeddings = await self._provider.generate(
                conversations,
                lambda percent, message: report(EMBEDDING_START + percent * EMBEDDING_SPAN / 100, message),
            )
            if not embeddings:
                raise EmbeddingGenerationError("Failed to generate embeddings for conversations.")

            stage = "similarity"
            report(70, "Calculating conversation similarities...")
            similarity_matrix = build_similarity_matrix(
                embeddings,
                rescale=self._provider.rescale_similarity,
            )
            report(85, "Similarity matrix complete")

            stage = "graph"
            report(85, "Building 3D graph structure...")
            graph = self._graph_builder.build(
                conversations,
                embeddings,
                similarity_matrix,
                self._config.visualization,
            )

            stage = "complete"
            report(
                100,
                f"Successfully processed {len(conversations)} conversations "
                f"with {len(graph.clusters)} clusters",
            )
        except Exception as e:
            logger.exception("Processing failed: stage=%s", stage)
            if on_progress is not None:
                on_progress(
                    ProcessingProgress(stage=stage, progress=0, message="Processing failed", error=str(e))
                )
            raise

        result = ProcessingResult(
            graph=graph,
            conversations=conversations,
            embeddings=embeddings,
            similarity_matrix=similarity_matrix,
        )
        self._cache = result
        logger.info(
            "Processed export: conversations=%d embeddings=%d edges=%d clusters=%d",
            len(conversations),
            len(embeddings),
            len(graph.edges),
            len(graph.clusters),
        )
        return result

    def rebuild(
        self,
        conversations: Sequence[Conversation],
        embeddings: Sequence[ConversationEmbedding],
        similarity_matrix: SimilarityMatrix,
        controls: VisualizationControls,
    ) -> ConversationGraph:
        """Rebuild only the graph for new visualization controls."""
        return self._graph_builder.build(conversations, embeddings, similarity_matrix, controls)

    def rebuild_cached(self, controls: VisualizationControls) -> ConversationGraph:
        """Rebuild the graph from the last successful run's cached data.

        Raises:
            RuntimeError: If no export has been processed yet
        """
        if self._cache is None:
            raise RuntimeError("No processed export to rebuild from")
        return self.rebuild(
            self._cache.conversations,
            self._cache.embeddings,
            self._cache.similarity_matrix,
            controls,
        )

    def stats(self, graph: ConversationGraph) -> ProcessingStats:
        return compute_stats(graph)

    async def aclose(self) -> None:
        await self._provider.aclose()
