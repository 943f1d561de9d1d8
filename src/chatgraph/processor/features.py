"""Lightweight per-conversation features: summary, topics and sentiment.

These are naive keyword heuristics. Each is a pure function of the processed
messages and can be replaced through ConversationNormalizer's constructor.
"""

import re
from collections import Counter
from collections.abc import Callable, Sequence

from chatgraph.models import ProcessedMessage, Sentiment

TopicExtractor = Callable[[Sequence[ProcessedMessage]], list[str]]
SentimentAnalyzer = Callable[[Sequence[ProcessedMessage]], Sentiment]

SUMMARY_LENGTH = 150
TOPIC_COUNT = 5

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "can", "this", "that", "these", "those", "i", "you", "he", "she", "it", "we",
    "they", "me", "him", "her", "us", "them",
})

POSITIVE_WORDS = (
    "good", "great", "excellent", "amazing", "wonderful", "fantastic", "love",
    "like", "enjoy", "happy", "pleased", "satisfied",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "horrible", "hate", "dislike", "angry",
    "frustrated", "disappointed", "sad", "upset",
)

_TOPIC_WORD_RE = re.compile(r"\b\w{4,}\b")
_POSITIVE_RES = [re.compile(rf"\b{word}\b") for word in POSITIVE_WORDS]
_NEGATIVE_RES = [re.compile(rf"\b{word}\b") for word in NEGATIVE_WORDS]


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(text.split())


def _joined_lower(messages: Sequence[ProcessedMessage]) -> str:
    return " ".join(msg.content for msg in messages).lower()


def generate_summary(messages: Sequence[ProcessedMessage]) -> str:
    """Use the first user message, truncated, as the conversation summary."""
    if not messages:
        return "Empty conversation"

    for msg in messages:
        if msg.role == "user":
            summary = msg.content[:SUMMARY_LENGTH]
            if len(msg.content) > SUMMARY_LENGTH:
                summary += "..."
            return summary

    return "Conversation summary unavailable"


def extract_topics(messages: Sequence[ProcessedMessage]) -> list[str]:
    """Return the most frequent non-stopword words of four or more letters.

    Ties keep first-seen order.
    """
    words = _TOPIC_WORD_RE.findall(_joined_lower(messages))
    counts = Counter(word for word in words if word not in STOPWORDS)
    return [word for word, _ in counts.most_common(TOPIC_COUNT)]


def analyze_sentiment(messages: Sequence[ProcessedMessage]) -> Sentiment:
    """Classify by counting positive and negative lexicon hits."""
    text = _joined_lower(messages)
    positive = sum(len(pattern.findall(text)) for pattern in _POSITIVE_RES)
    negative = sum(len(pattern.findall(text)) for pattern in _NEGATIVE_RES)

    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"
