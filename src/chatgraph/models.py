"""Data models for the conversation-to-graph pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Role = Literal["user", "assistant"]
Sentiment = Literal["positive", "neutral", "negative"]
Stage = Literal["parsing", "cleaning", "embedding", "similarity", "graph", "complete"]

# conversation id -> conversation id -> similarity score
SimilarityMatrix = dict[str, dict[str, float]]

CLUSTERING_ALGORITHMS = ("similarity", "topic", "chronological")
NODE_SIZE_MODES = ("messageCount", "wordCount", "uniform")
COLOR_SCHEMES = ("cluster", "chronological", "topic")


@dataclass
class RawNode:
    """One entry of an export's message mapping."""

    id: str
    message: dict[str, Any] | None
    parent: str | None
    children: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, node_id: str, data: dict[str, Any]) -> "RawNode":
        return cls(
            id=data.get("id") or node_id,
            message=data.get("message") or None,
            parent=data.get("parent"),
            children=list(data.get("children") or []),
        )


@dataclass
class RawConversation:
    """A conversation record as it appears in a ChatGPT export."""

    id: str
    title: str
    create_time: float
    update_time: float
    mapping: dict[str, RawNode]
    current_node: str | None

    @classmethod
    def from_dict(cls, data: Any) -> "RawConversation":
        """Build a RawConversation from a decoded JSON record.

        Raises:
            ValueError: If the record is not an object or lacks id/mapping
        """
        if not isinstance(data, dict):
            raise ValueError(f"Conversation record is not an object: {type(data).__name__}")

        conversation_id = data.get("id") or data.get("conversation_id")
        if not conversation_id:
            raise ValueError("Conversation record has no id")

        mapping = data.get("mapping")
        if not isinstance(mapping, dict):
            raise ValueError(f"Conversation has no mapping: id={conversation_id}")

        return cls(
            id=str(conversation_id),
            title=data.get("title") or "",
            create_time=data.get("create_time") or 0,
            update_time=data.get("update_time") or data.get("create_time") or 0,
            mapping={
                node_id: RawNode.from_dict(node_id, node)
                for node_id, node in mapping.items()
                if isinstance(node, dict)
            },
            current_node=data.get("current_node"),
        )


@dataclass
class ProcessedMessage:
    role: Role
    content: str
    timestamp: datetime
    word_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "wordCount": self.word_count,
        }


@dataclass
class ConversationMetadata:
    created_at: datetime
    updated_at: datetime
    message_count: int
    word_count: int
    topics: list[str]
    sentiment: Sentiment

    def to_dict(self) -> dict[str, Any]:
        return {
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "messageCount": self.message_count,
            "wordCount": self.word_count,
            "topics": list(self.topics),
            "sentiment": self.sentiment,
        }


@dataclass
class Conversation:
    """A normalized chat thread with derived metadata."""

    id: str
    title: str
    summary: str
    messages: list[ProcessedMessage]
    metadata: ConversationMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "messages": [msg.to_dict() for msg in self.messages],
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class EmbeddingMetadata:
    word_count: int
    topic_keywords: list[str]
    generated_at: datetime


@dataclass
class ConversationEmbedding:
    conversation_id: str
    embedding: list[float]
    metadata: EmbeddingMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "embedding": list(self.embedding),
            "metadata": {
                "wordCount": self.metadata.word_count,
                "topicKeywords": list(self.metadata.topic_keywords),
                "generatedAt": self.metadata.generated_at.isoformat(),
            },
        }


@dataclass
class Position:
    x: float
    y: float
    z: float


@dataclass
class GraphNode:
    id: str
    conversation: Conversation
    position: Position
    size: float
    color: str
    cluster: str | None = None

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "id": self.id,
            "conversation": self.conversation.to_dict(),
            "position": {"x": self.position.x, "y": self.position.y, "z": self.position.z},
            "size": self.size,
            "color": self.color,
        }
        if self.cluster is not None:
            doc["cluster"] = self.cluster
        return doc


@dataclass
class GraphEdge:
    source: str
    target: str
    weight: float
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "weight": self.weight,
            "similarity": self.similarity,
        }


@dataclass
class ConversationCluster:
    """A connected component of the thresholded graph with 2+ members."""

    id: str
    name: str
    description: str
    conversations: list[str]
    centroid: list[float]
    color: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "conversations": list(self.conversations),
            "centroid": list(self.centroid),
            "color": self.color,
            "size": self.size,
        }


@dataclass
class ConversationGraph:
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    clusters: list[ConversationCluster]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "clusters": [cluster.to_dict() for cluster in self.clusters],
        }


@dataclass
class VisualizationControls:
    """User-tunable parameters consumed by the graph builder.

    Only the "similarity" clustering algorithm changes builder behavior;
    "topic" and "chronological" are accepted and currently cluster the same way.
    """

    similarity_threshold: float = 0.7
    clustering_algorithm: str = "similarity"
    node_size: str = "messageCount"
    color_scheme: str = "cluster"
    show_edges: bool = True
    edge_thickness: float = 1.0

    def __post_init__(self) -> None:
        if not 0.1 <= self.similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be between 0.1 and 1.0: {self.similarity_threshold}"
            )
        if not 0.5 <= self.edge_thickness <= 5.0:
            raise ValueError(f"edge_thickness must be between 0.5 and 5.0: {self.edge_thickness}")
        if self.clustering_algorithm not in CLUSTERING_ALGORITHMS:
            raise ValueError(f"Invalid clustering_algorithm: {self.clustering_algorithm}")
        if self.node_size not in NODE_SIZE_MODES:
            raise ValueError(f"Invalid node_size: {self.node_size}")
        if self.color_scheme not in COLOR_SCHEMES:
            raise ValueError(f"Invalid color_scheme: {self.color_scheme}")
        if not isinstance(self.show_edges, bool):
            raise ValueError(f"show_edges must be a boolean: {self.show_edges!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VisualizationControls":
        """Build controls from camelCase wire keys or snake_case keys."""
        defaults = cls()

        def pick(snake: str, camel: str) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, getattr(defaults, snake))

        return cls(
            similarity_threshold=float(pick("similarity_threshold", "similarityThreshold")),
            clustering_algorithm=pick("clustering_algorithm", "clusteringAlgorithm"),
            node_size=pick("node_size", "nodeSize"),
            color_scheme=pick("color_scheme", "colorScheme"),
            show_edges=pick("show_edges", "showEdges"),
            edge_thickness=float(pick("edge_thickness", "edgeThickness")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "similarityThreshold": self.similarity_threshold,
            "clusteringAlgorithm": self.clustering_algorithm,
            "nodeSize": self.node_size,
            "colorScheme": self.color_scheme,
            "showEdges": self.show_edges,
            "edgeThickness": self.edge_thickness,
        }


@dataclass
class ProcessingProgress:
    stage: Stage
    progress: float
    message: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "stage": self.stage,
            "progress": self.progress,
            "message": self.message,
        }
        if self.error is not None:
            doc["error"] = self.error
        return doc


@dataclass
class ProcessingResult:
    """A built graph plus the intermediate data needed to rebuild it."""

    graph: ConversationGraph
    conversations: list[Conversation]
    embeddings: list[ConversationEmbedding]
    similarity_matrix: SimilarityMatrix


@dataclass
class ProcessingStats:
    total_conversations: int
    total_clusters: int
    total_connections: int
    average_cluster_size: int
    largest_cluster: int
    total_messages: int = 0
    total_words: int = 0
    average_messages_per_conversation: int = 0
    average_words_per_conversation: int = 0
    # (topic, number of conversations listing it), most frequent first
    top_topics: list[tuple[str, int]] = field(default_factory=list)
