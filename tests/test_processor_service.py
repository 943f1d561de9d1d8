"""Tests for the processing service."""

import json
from collections.abc import Sequence
from pathlib import Path

import pytest

from chatgraph.config import Config, EmbeddingConfig
from chatgraph.demo import build_linear_conversation, generate_demo_export
from chatgraph.embeddings import EmbeddingProgressCallback, EmbeddingProvider, OfflineEmbeddingProvider
from chatgraph.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingGenerationError,
    FormatError,
    NoValidDataError,
)
from chatgraph.models import (
    Conversation,
    ConversationEmbedding,
    ProcessingProgress,
    VisualizationControls,
)
from chatgraph.processor.service import ProcessingService


class EmptyProvider(EmbeddingProvider):
    """Provider whose every request fails."""

    name = "empty"

    async def generate(
        self,
        conversations: Sequence[Conversation],
        on_progress: EmbeddingProgressCallback | None = None,
    ) -> list[ConversationEmbedding]:
        if on_progress is not None:
            on_progress(100.0, "Embedding generation complete")
        return []


class RaggedProvider(OfflineEmbeddingProvider):
    """Offline provider that returns one vector of the wrong length."""

    async def generate(self, conversations, on_progress=None):
        embeddings = await super().generate(conversations, on_progress)
        embeddings[-1].embedding = embeddings[-1].embedding[:10]
        return embeddings


@pytest.fixture
def config() -> Config:
    return Config(demo_mode=True)


@pytest.fixture
def service(config: Config) -> ProcessingService:
    return ProcessingService(config)


@pytest.fixture
def demo_bytes() -> bytes:
    return json.dumps(generate_demo_export()).encode("utf-8")


@pytest.fixture
def updates() -> list[ProcessingProgress]:
    return []


class TestConstruction:
    """Tests for provider resolution."""

    def test_demo_mode_resolves_offline(self, service: ProcessingService) -> None:
        assert isinstance(service.provider, OfflineEmbeddingProvider)

    def test_bad_key_fails_before_processing(self) -> None:
        with pytest.raises(ConfigurationError):
            ProcessingService(Config(embedding=EmbeddingConfig(api_key="")))

    def test_injected_provider(self, config: Config) -> None:
        provider = EmptyProvider()
        assert ProcessingService(config, provider=provider).provider is provider


class TestProcessFile:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_stage_order_and_progress(
        self, service: ProcessingService, demo_bytes: bytes, updates: list[ProcessingProgress]
    ) -> None:
        await service.process_file(demo_bytes, updates.append)

        assert [(u.stage, u.progress) for u in updates] == [
            ("parsing", 0),
            ("cleaning", 20),
            ("cleaning", 30),
            ("embedding", 30),
            ("embedding", 70.0),
            ("similarity", 70),
            ("similarity", 85),
            ("graph", 85),
            ("complete", 100),
        ]
        assert all(u.error is None for u in updates)

    @pytest.mark.asyncio
    async def test_progress_never_decreases(
        self, service: ProcessingService, demo_bytes: bytes, updates: list[ProcessingProgress]
    ) -> None:
        await service.process_file(demo_bytes, updates.append)
        values = [u.progress for u in updates]
        assert values == sorted(values)

    @pytest.mark.asyncio
    async def test_completion_message(
        self, service: ProcessingService, demo_bytes: bytes, updates: list[ProcessingProgress]
    ) -> None:
        result = await service.process_file(demo_bytes, updates.append)
        expected = f"Successfully processed 5 conversations with {len(result.graph.clusters)} clusters"
        assert updates[-1].message == expected
        assert updates[2].message == "Found 5 valid conversations"

    @pytest.mark.asyncio
    async def test_result_contents(self, service: ProcessingService, demo_bytes: bytes) -> None:
        result = await service.process_file(demo_bytes)

        assert len(result.conversations) == 5
        assert len(result.embeddings) == 5
        assert len(result.graph.nodes) == 5
        assert set(result.similarity_matrix) == {c.id for c in result.conversations}
        assert service.cached is result

    @pytest.mark.asyncio
    async def test_reads_path(self, service: ProcessingService, demo_bytes: bytes, tmp_path: Path) -> None:
        path = tmp_path / "conversations.json"
        path.write_bytes(demo_bytes)
        result = await service.process_file(path)
        assert len(result.graph.nodes) == 5

    @pytest.mark.asyncio
    async def test_uses_configured_controls(self, demo_bytes: bytes) -> None:
        config = Config(demo_mode=True, visualization=VisualizationControls(similarity_threshold=1.0))
        result = await ProcessingService(config).process_file(demo_bytes)
        assert result.graph.edges == []


class TestProcessFileFailures:
    """Tests for error reporting."""

    @pytest.mark.asyncio
    async def test_invalid_json(self, service: ProcessingService, updates: list[ProcessingProgress]) -> None:
        with pytest.raises(FormatError, match="Invalid JSON"):
            await service.process_file(b"{not json", updates.append)

        last = updates[-1]
        assert (last.stage, last.progress, last.message) == ("parsing", 0, "Processing failed")
        assert "Invalid JSON" in last.error
        assert service.cached is None

    @pytest.mark.asyncio
    async def test_no_valid_conversations(
        self, service: ProcessingService, updates: list[ProcessingProgress]
    ) -> None:
        record = build_linear_conversation("short", "Short", 1714521600, ["Hi", "Hello"])
        with pytest.raises(NoValidDataError):
            await service.process_file(json.dumps([record]), updates.append)

        assert updates[-1].stage == "cleaning"
        assert updates[-1].error == "No valid conversations found in the export file."

    @pytest.mark.asyncio
    async def test_no_embeddings(
        self, config: Config, demo_bytes: bytes, updates: list[ProcessingProgress]
    ) -> None:
        service = ProcessingService(config, provider=EmptyProvider())
        with pytest.raises(EmbeddingGenerationError):
            await service.process_file(demo_bytes, updates.append)

        assert updates[-1].stage == "embedding"
        assert updates[-1].progress == 0
        assert service.cached is None

    @pytest.mark.asyncio
    async def test_dimension_mismatch(
        self, config: Config, demo_bytes: bytes, updates: list[ProcessingProgress]
    ) -> None:
        service = ProcessingService(config, provider=RaggedProvider())
        with pytest.raises(DimensionMismatchError):
            await service.process_file(demo_bytes, updates.append)
        assert updates[-1].stage == "similarity"

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_cache(
        self, service: ProcessingService, demo_bytes: bytes
    ) -> None:
        first = await service.process_file(demo_bytes)
        with pytest.raises(FormatError):
            await service.process_file(b"[")
        assert service.cached is first


class TestRebuild:
    """Tests for rebuilding the graph with new controls."""

    @pytest.mark.asyncio
    async def test_rebuild_matches_initial_build(self, service: ProcessingService, demo_bytes: bytes) -> None:
        result = await service.process_file(demo_bytes)
        graph = service.rebuild(
            result.conversations, result.embeddings, result.similarity_matrix, VisualizationControls()
        )
        assert [(e.source, e.target) for e in graph.edges] == [
            (e.source, e.target) for e in result.graph.edges
        ]

    @pytest.mark.asyncio
    async def test_rebuild_cached_high_threshold(self, service: ProcessingService, demo_bytes: bytes) -> None:
        await service.process_file(demo_bytes)
        graph = service.rebuild_cached(VisualizationControls(similarity_threshold=1.0))

        assert len(graph.nodes) == 5
        assert graph.edges == []
        assert graph.clusters == []

    @pytest.mark.asyncio
    async def test_rebuild_cached_low_threshold_connects_more(
        self, service: ProcessingService, demo_bytes: bytes
    ) -> None:
        result = await service.process_file(demo_bytes)
        graph = service.rebuild_cached(VisualizationControls(similarity_threshold=0.1))
        assert len(graph.edges) >= len(result.graph.edges)

    def test_rebuild_cached_without_run(self, service: ProcessingService) -> None:
        with pytest.raises(RuntimeError, match="No processed export"):
            service.rebuild_cached(VisualizationControls())

    @pytest.mark.asyncio
    async def test_stats(self, service: ProcessingService, demo_bytes: bytes) -> None:
        result = await service.process_file(demo_bytes)
        stats = service.stats(result.graph)
        assert stats.total_conversations == 5
        assert stats.total_clusters == len(result.graph.clusters)
