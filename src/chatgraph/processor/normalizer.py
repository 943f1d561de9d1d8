"""Normalize raw export conversations into linear message histories.

A ChatGPT export stores each conversation as a tree of nodes keyed by id:

    mapping: {
        "<node-id>": {
            "message": {"author": {"role": ...}, "content": {"parts": [...]}, "create_time": ...},
            "parent": "<node-id>" | null,
            "children": ["<node-id>", ...]
        }
    }

The mapping is treated as an arena: root finding and traversal are iterative
with visited sets, since real exports can be deep and may contain cycles.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from chatgraph.logging import get_logger
from chatgraph.models import (
    Conversation,
    ConversationMetadata,
    ProcessedMessage,
    RawConversation,
    RawNode,
)
from chatgraph.processor.features import (
    SentimentAnalyzer,
    TopicExtractor,
    analyze_sentiment,
    count_words,
    extract_topics,
    generate_summary,
)

logger = get_logger("normalizer")

MIN_MESSAGES = 2
MIN_WORDS = 20
KEPT_ROLES = ("user", "assistant")


def to_datetime(ts: float | None) -> datetime:
    """Convert a Unix timestamp (seconds) to an aware UTC datetime."""
    try:
        return datetime.fromtimestamp(float(ts or 0), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return datetime.fromtimestamp(0, tz=timezone.utc)


def find_root(mapping: dict[str, RawNode], start_id: str) -> str:
    """Follow parent links from start_id up to the tree root.

    Stops at a node without a parent, at a dangling parent reference (the last
    node present wins), or when a cycle is detected (the last reached node wins).
    """
    visited: set[str] = set()
    current = start_id

    while current not in visited:
        visited.add(current)
        node = mapping.get(current)
        if node is None or not node.parent or node.parent not in mapping:
            break
        current = node.parent

    return current


def build_message_chain(mapping: dict[str, RawNode], current_node: str | None) -> list[str]:
    """Return ids of message-bearing nodes in depth-first order from the root.

    Children are visited in array order, so a branched tree yields every
    branch one after another rather than a single strictly chronological path.
    """
    if not current_node or current_node not in mapping:
        return []

    chain: list[str] = []
    visited: set[str] = set()
    stack = [find_root(mapping, current_node)]

    while stack:
        node_id = stack.pop()
        if node_id in visited:
            continue
        visited.add(node_id)

        node = mapping.get(node_id)
        if node is None:
            continue

        if node.message:
            chain.append(node_id)

        # Reversed so the first child is popped first
        for child_id in reversed(node.children):
            if child_id not in visited:
                stack.append(child_id)

    return chain


def extract_text(content: Any) -> str:
    """Join the text parts of a message content block."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content.strip()
    if not isinstance(content, dict):
        return ""

    parts = content.get("parts")
    if isinstance(parts, list):
        texts: list[str] = []
        for part in parts:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])
        return " ".join(texts).strip()

    text = content.get("text")
    if isinstance(text, str):
        return text.strip()
    return ""


class ConversationNormalizer:
    """Turns raw export records into Conversation objects.

    Records that fail to parse or are too short are skipped and logged; a
    single bad record never aborts the batch.
    """

    def __init__(
        self,
        topic_extractor: TopicExtractor = extract_topics,
        sentiment_analyzer: SentimentAnalyzer = analyze_sentiment,
        min_messages: int = MIN_MESSAGES,
        min_words: int = MIN_WORDS,
    ) -> None:
        self._extract_topics = topic_extractor
        self._analyze_sentiment = sentiment_analyzer
        self._min_messages = min_messages
        self._min_words = min_words

    def normalize(self, records: Iterable[Any]) -> list[Conversation]:
        """Normalize every record, dropping the ones that fail or are too short."""
        conversations: list[Conversation] = []
        skipped = 0

        for record in records:
            try:
                conversation = self.normalize_one(RawConversation.from_dict(record))
            except Exception:
                record_id = record.get("id") if isinstance(record, dict) else None
                logger.warning("Failed to process conversation: id=%s", record_id, exc_info=True)
                skipped += 1
                continue

            if conversation is None:
                skipped += 1
                continue
            conversations.append(conversation)

        logger.info("Normalized conversations: kept=%d skipped=%d", len(conversations), skipped)
        return conversations

    def normalize_one(self, raw: RawConversation) -> Conversation | None:
        """Normalize a single conversation, or return None if it is too short."""
        messages = self.extract_messages(raw)
        if len(messages) < self._min_messages:
            logger.debug("Skipping conversation: id=%s messages=%d", raw.id, len(messages))
            return None

        word_count = sum(msg.word_count for msg in messages)
        if word_count < self._min_words:
            logger.debug("Skipping conversation: id=%s words=%d", raw.id, word_count)
            return None

        return Conversation(
            id=raw.id,
            title=raw.title or "Untitled Conversation",
            summary=generate_summary(messages),
            messages=messages,
            metadata=ConversationMetadata(
                created_at=to_datetime(raw.create_time),
                updated_at=to_datetime(raw.update_time),
                message_count=len(messages),
                word_count=word_count,
                topics=self._extract_topics(messages),
                sentiment=self._analyze_sentiment(messages),
            ),
        )

    def extract_messages(self, raw: RawConversation) -> list[ProcessedMessage]:
        """Walk the message tree and keep non-empty user/assistant messages."""
        messages: list[ProcessedMessage] = []

        for node_id in build_message_chain(raw.mapping, raw.current_node):
            message = raw.mapping[node_id].message or {}

            role = (message.get("author") or {}).get("role")
            if role not in KEPT_ROLES:
                continue

            content = extract_text(message.get("content"))
            if not content:
                continue

            messages.append(
                ProcessedMessage(
                    role=role,
                    content=content,
                    timestamp=to_datetime(message.get("create_time") or raw.create_time),
                    word_count=count_words(content),
                )
            )

        return messages
