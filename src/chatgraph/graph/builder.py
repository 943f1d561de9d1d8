"""Build a renderable conversation graph from similarities.

The builder is a pure function of its inputs: conversations become nodes,
similarities at or above the threshold become undirected edges, and connected
components with two or more members become clusters.
"""

import math
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone

import numpy as np

from chatgraph.logging import get_logger
from chatgraph.models import (
    Conversation,
    ConversationCluster,
    ConversationEmbedding,
    ConversationGraph,
    GraphEdge,
    GraphNode,
    Position,
    ProcessingStats,
    SimilarityMatrix,
    VisualizationControls,
)

logger = get_logger("graph")

BASE_NODE_SIZE = 4.0
MAX_NODE_SIZE = 20.0
SPHERE_RADIUS = 100.0

DEFAULT_COLOR = "#6B7280"

CLUSTER_PALETTE = (
    "#3B82F6",  # blue
    "#EF4444",  # red
    "#10B981",  # green
    "#F59E0B",  # yellow
    "#8B5CF6",  # purple
    "#F97316",  # orange
    "#06B6D4",  # cyan
    "#84CC16",  # lime
    "#EC4899",  # pink
    "#6B7280",  # gray
)

# (max age in days, color), checked in order
AGE_COLORS = (
    (30, "#10B981"),
    (90, "#F59E0B"),
    (180, "#F97316"),
)
OLDEST_COLOR = "#EF4444"

TOP_TOPIC_COUNT = 10

# Substring of the first topic -> color, checked in order
TOPIC_COLORS = (
    ("code", "#3B82F6"),
    ("programming", "#3B82F6"),
    ("tech", "#3B82F6"),
    ("help", "#10B981"),
    ("question", "#10B981"),
    ("learn", "#8B5CF6"),
    ("study", "#8B5CF6"),
    ("work", "#F59E0B"),
    ("project", "#F59E0B"),
    ("general", DEFAULT_COLOR),
)


def node_size(conversation: Conversation, mode: str) -> float:
    if mode == "messageCount":
        return min(BASE_NODE_SIZE + conversation.metadata.message_count * 0.5, MAX_NODE_SIZE)
    if mode == "wordCount":
        return min(BASE_NODE_SIZE + conversation.metadata.word_count * 0.01, MAX_NODE_SIZE)
    return BASE_NODE_SIZE


def initial_position(index: int, total: int) -> Position:
    """Place node `index` of `total` on a sphere with the golden-angle spiral."""
    phi = math.acos(1 - 2 * (index + 0.5) / total)
    theta = math.pi * (1 + math.sqrt(5)) * (index + 0.5)
    return Position(
        x=SPHERE_RADIUS * math.sin(phi) * math.cos(theta),
        y=SPHERE_RADIUS * math.sin(phi) * math.sin(theta),
        z=SPHERE_RADIUS * math.cos(phi),
    )


def chronological_color(created_at: datetime, now: datetime) -> str:
    age_days = (now - created_at).total_seconds() / 86400
    for max_days, color in AGE_COLORS:
        if age_days < max_days:
            return color
    return OLDEST_COLOR


def topic_color(topic: str) -> str:
    topic = topic.lower()
    for keyword, color in TOPIC_COLORS:
        if keyword in topic:
            return color
    return DEFAULT_COLOR


def cluster_color(cluster_id: str) -> str:
    """Pick a palette color from the cluster id; stable for a given id."""
    return CLUSTER_PALETTE[sum(ord(char) for char in cluster_id) % len(CLUSTER_PALETTE)]


def initial_color(conversation: Conversation, scheme: str, now: datetime) -> str:
    if scheme == "chronological":
        return chronological_color(conversation.metadata.created_at, now)
    if scheme == "topic":
        topics = conversation.metadata.topics
        return topic_color(topics[0] if topics else "general")
    # "cluster" is resolved after clustering
    return DEFAULT_COLOR


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class GraphBuilder:
    """Builds ConversationGraph values; holds no state between calls."""

    def build(
        self,
        conversations: Sequence[Conversation],
        embeddings: Sequence[ConversationEmbedding],
        similarity_matrix: SimilarityMatrix,
        controls: VisualizationControls,
        now: datetime | None = None,
    ) -> ConversationGraph:
        """Build the graph for one set of visualization controls.

        Args:
            conversations: Normalized conversations, one node each
            embeddings: Embeddings used for cluster centroids
            similarity_matrix: Pairwise similarity scores
            controls: Threshold and visual encoding settings
            now: Reference time for chronological colors (defaults to current UTC time)

        Returns:
            A new graph; the inputs are not modified
        """
        if now is None:
            now = datetime.now(timezone.utc)

        if controls.clustering_algorithm != "similarity":
            logger.debug(
                "Clustering algorithm not differentiated, using similarity: algorithm=%s",
                controls.clustering_algorithm,
            )

        nodes = self.create_nodes(conversations, controls, now)
        node_ids = {node.id for node in nodes}
        edges = self.create_edges(similarity_matrix, controls.similarity_threshold, node_ids)
        clusters = self.identify_clusters(nodes, edges, embeddings)

        if controls.color_scheme == "cluster":
            colors = {cluster.id: cluster.color for cluster in clusters}
            for node in nodes:
                if node.cluster is not None and node.cluster in colors:
                    node.color = colors[node.cluster]

        logger.debug(
            "Built graph: nodes=%d edges=%d clusters=%d threshold=%.2f",
            len(nodes),
            len(edges),
            len(clusters),
            controls.similarity_threshold,
        )
        return ConversationGraph(nodes=nodes, edges=edges, clusters=clusters)

    def create_nodes(
        self,
        conversations: Sequence[Conversation],
        controls: VisualizationControls,
        now: datetime,
    ) -> list[GraphNode]:
        total = len(conversations)
        return [
            GraphNode(
                id=conversation.id,
                conversation=conversation,
                position=initial_position(index, total),
                size=node_size(conversation, controls.node_size),
                color=initial_color(conversation, controls.color_scheme, now),
            )
            for index, conversation in enumerate(conversations)
        ]

    def create_edges(
        self,
        similarity_matrix: SimilarityMatrix,
        threshold: float,
        node_ids: set[str],
    ) -> list[GraphEdge]:
        """Emit one edge per unordered pair at or above the threshold.

        Pairs are visited in matrix order; the source is the earlier id.
        """
        ids = [conv_id for conv_id in similarity_matrix if conv_id in node_ids]
        edges: list[GraphEdge] = []

        for i, source in enumerate(ids):
            row = similarity_matrix[source]
            for target in ids[i + 1:]:
                similarity = row.get(target)
                if similarity is None or similarity < threshold:
                    continue
                edges.append(
                    GraphEdge(source=source, target=target, weight=similarity, similarity=similarity)
                )

        return edges

    def identify_clusters(
        self,
        nodes: list[GraphNode],
        edges: Sequence[GraphEdge],
        embeddings: Sequence[ConversationEmbedding],
    ) -> list[ConversationCluster]:
        """Find connected components and assign cluster ids to their nodes."""
        adjacency: dict[str, list[str]] = {}
        for edge in edges:
            adjacency.setdefault(edge.source, []).append(edge.target)
            adjacency.setdefault(edge.target, []).append(edge.source)

        nodes_by_id = {node.id: node for node in nodes}
        embeddings_by_id = {emb.conversation_id: emb for emb in embeddings}
        visited: set[str] = set()
        clusters: list[ConversationCluster] = []

        for node in nodes:
            if node.id in visited:
                continue

            component = self.find_connected_component(node.id, adjacency, visited)
            if len(component) < 2:
                continue

            members = [nodes_by_id[node_id] for node_id in component]
            member_embeddings = [
                embeddings_by_id[node_id] for node_id in component if node_id in embeddings_by_id
            ]
            cluster = self.create_cluster(f"cluster-{len(clusters)}", members, member_embeddings)
            clusters.append(cluster)

            for member in members:
                member.cluster = cluster.id

        return clusters

    @staticmethod
    def find_connected_component(
        start_id: str,
        adjacency: dict[str, list[str]],
        visited: set[str],
    ) -> list[str]:
        component: list[str] = []
        stack = [start_id]

        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            component.append(node_id)

            for neighbor in adjacency.get(node_id, []):
                if neighbor not in visited:
                    stack.append(neighbor)

        return component

    def create_cluster(
        self,
        cluster_id: str,
        members: Sequence[GraphNode],
        member_embeddings: Sequence[ConversationEmbedding],
    ) -> ConversationCluster:
        return ConversationCluster(
            id=cluster_id,
            name=self.cluster_name(members),
            description=self.cluster_description(members),
            conversations=[member.id for member in members],
            centroid=self.centroid(member_embeddings),
            color=cluster_color(cluster_id),
            size=len(members),
        )

    @staticmethod
    def centroid(embeddings: Sequence[ConversationEmbedding]) -> list[float]:
        if not embeddings:
            return []
        vectors = np.array([emb.embedding for emb in embeddings], dtype=np.float64)
        return [float(value) for value in vectors.mean(axis=0)]

    @staticmethod
    def cluster_name(members: Sequence[GraphNode]) -> str:
        """Name a cluster after its two most frequent topics."""
        counts = Counter(
            topic for member in members for topic in member.conversation.metadata.topics
        )
        top_topics = [topic for topic, _ in counts.most_common(2)]
        if top_topics:
            return " & ".join(top_topics)
        return f"Cluster ({len(members)} conversations)"

    @staticmethod
    def cluster_description(members: Sequence[GraphNode]) -> str:
        total_messages = sum(member.conversation.metadata.message_count for member in members)
        average = round_half_up(total_messages / len(members))
        return f"{len(members)} conversations with an average of {average} messages each"


def compute_stats(graph: ConversationGraph) -> ProcessingStats:
    """Summarize a graph's size, content and cluster structure."""
    cluster_sizes = [cluster.size for cluster in graph.clusters]
    metadata = [node.conversation.metadata for node in graph.nodes]
    total_messages = sum(meta.message_count for meta in metadata)
    total_words = sum(meta.word_count for meta in metadata)
    topic_counts = Counter(topic for meta in metadata for topic in meta.topics)
    return ProcessingStats(
        total_conversations=len(graph.nodes),
        total_clusters=len(cluster_sizes),
        total_connections=len(graph.edges),
        average_cluster_size=round_half_up(sum(cluster_sizes) / len(cluster_sizes)) if cluster_sizes else 0,
        largest_cluster=max(cluster_sizes, default=0),
        total_messages=total_messages,
        total_words=total_words,
        average_messages_per_conversation=round_half_up(total_messages / len(metadata)) if metadata else 0,
        average_words_per_conversation=round_half_up(total_words / len(metadata)) if metadata else 0,
        top_topics=topic_counts.most_common(TOP_TOPIC_COUNT),
    )
