"""Tests for the conversation normalizer."""

from datetime import datetime, timezone
from typing import Any

import pytest

from chatgraph.demo import build_linear_conversation
from chatgraph.models import RawConversation, RawNode
from chatgraph.processor.normalizer import (
    ConversationNormalizer,
    build_message_chain,
    extract_text,
    find_root,
)

LONG_TURNS = [
    "Can you explain how Python generators work and when I should use them?",
    "Generators produce values lazily with yield, so they are useful for large or infinite "
    "sequences where building a full list would waste memory.",
    "Can you show a generator that reads a file line by line?",
    "Open the file in a with block and yield each stripped line inside a for loop.",
]


def node(node_id: str, parent: str | None, children: list[str], role: str | None = None, text: str = "") -> dict:
    message = None
    if role is not None:
        message = {
            "author": {"role": role},
            "content": {"content_type": "text", "parts": [text]},
            "create_time": 1700000000,
        }
    return {"id": node_id, "message": message, "parent": parent, "children": children}


def raw_mapping(nodes: list[dict]) -> dict[str, RawNode]:
    return {n["id"]: RawNode.from_dict(n["id"], n) for n in nodes}


@pytest.fixture
def normalizer() -> ConversationNormalizer:
    return ConversationNormalizer()


class TestFindRoot:
    """Tests for root finding over the node arena."""

    def test_walks_to_parentless_node(self) -> None:
        mapping = raw_mapping([node("a", None, ["b"]), node("b", "a", ["c"]), node("c", "b", [])])
        assert find_root(mapping, "c") == "a"

    def test_start_is_root(self) -> None:
        mapping = raw_mapping([node("a", None, [])])
        assert find_root(mapping, "a") == "a"

    def test_stops_on_cycle(self) -> None:
        """A parent cycle should terminate instead of looping forever."""
        mapping = raw_mapping([node("a", "b", ["b"]), node("b", "a", ["a"])])
        assert find_root(mapping, "a") in {"a", "b"}

    def test_dangling_parent_stops_at_last_present_node(self) -> None:
        mapping = raw_mapping([node("b", "missing", ["c"]), node("c", "b", [])])
        assert find_root(mapping, "c") == "b"

    def test_deep_chain_does_not_recurse(self) -> None:
        """Very deep trees should not hit the recursion limit."""
        depth = 5000
        nodes = [node("n0", None, ["n1"])]
        nodes += [node(f"n{i}", f"n{i - 1}", [f"n{i + 1}"]) for i in range(1, depth)]
        nodes.append(node(f"n{depth}", f"n{depth - 1}", []))
        mapping = raw_mapping(nodes)
        assert find_root(mapping, f"n{depth}") == "n0"


class TestBuildMessageChain:
    """Tests for depth-first chain reconstruction."""

    def test_linear_path_in_order(self) -> None:
        mapping = raw_mapping([
            node("root", None, ["a"]),
            node("a", "root", ["b"], "user", "hi"),
            node("b", "a", ["c"], "assistant", "hello"),
            node("c", "b", [], "user", "bye"),
        ])
        assert build_message_chain(mapping, "c") == ["a", "b", "c"]

    def test_branches_visited_in_children_order(self) -> None:
        """Every branch is collected, first child subtree before the second."""
        mapping = raw_mapping([
            node("root", None, ["a"]),
            node("a", "root", ["b1", "b2"], "user", "q"),
            node("b1", "a", ["c1"], "assistant", "first"),
            node("c1", "b1", [], "user", "follow"),
            node("b2", "a", [], "assistant", "second"),
        ])
        assert build_message_chain(mapping, "b2") == ["a", "b1", "c1", "b2"]

    def test_missing_current_node(self) -> None:
        mapping = raw_mapping([node("a", None, [], "user", "hi")])
        assert build_message_chain(mapping, "zzz") == []
        assert build_message_chain(mapping, None) == []

    def test_child_cycle_is_guarded(self) -> None:
        mapping = raw_mapping([
            node("a", None, ["b"], "user", "x"),
            node("b", "a", ["a"], "assistant", "y"),
        ])
        assert build_message_chain(mapping, "b") == ["a", "b"]

    def test_unknown_child_ids_are_ignored(self) -> None:
        mapping = raw_mapping([node("a", None, ["ghost"], "user", "x")])
        assert build_message_chain(mapping, "a") == ["a"]


class TestExtractText:
    """Tests for message content extraction."""

    def test_joins_string_parts(self) -> None:
        assert extract_text({"parts": ["Hello", "world "]}) == "Hello world"

    def test_dict_parts_with_text(self) -> None:
        content = {"parts": [{"content_type": "image_asset_pointer"}, {"text": "caption"}, "body"]}
        assert extract_text(content) == "caption body"

    def test_text_field_fallback(self) -> None:
        assert extract_text({"content_type": "code", "text": "print(1)"}) == "print(1)"

    def test_none_and_unknown(self) -> None:
        assert extract_text(None) == ""
        assert extract_text(42) == ""
        assert extract_text({"parts": []}) == ""


class TestNormalizeMessages:
    """Tests for per-message filtering."""

    def test_preserves_order_and_content_for_linear_tree(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        [conversation] = normalizer.normalize([record])

        assert [m.content for m in conversation.messages] == LONG_TURNS
        assert [m.role for m in conversation.messages] == ["user", "assistant", "user", "assistant"]

    def test_drops_system_messages(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        [conversation] = normalizer.normalize([record])
        assert all(m.role != "system" for m in conversation.messages)

    def test_drops_tool_and_blank_messages(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        tail = record["current_node"]
        record["mapping"]["tool"] = node("tool", tail, ["blank"], "tool", "search results")
        record["mapping"]["blank"] = node("blank", "tool", [], "assistant", "   ")
        record["mapping"][tail]["children"] = ["tool"]
        record["current_node"] = "blank"

        [conversation] = normalizer.normalize([record])
        assert len(conversation.messages) == 4

    def test_word_counts(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        [conversation] = normalizer.normalize([record])

        expected = [len(turn.split()) for turn in LONG_TURNS]
        assert [m.word_count for m in conversation.messages] == expected
        assert conversation.metadata.word_count == sum(expected)

    def test_message_timestamp_falls_back_to_conversation(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        for entry in record["mapping"].values():
            if entry["message"]:
                entry["message"]["create_time"] = None

        [conversation] = normalizer.normalize([record])
        expected = datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert all(m.timestamp == expected for m in conversation.messages)


class TestNormalizeConversations:
    """Tests for conversation-level filtering and derived fields."""

    def test_metadata(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        [conversation] = normalizer.normalize([record])

        assert conversation.id == "conv-1"
        assert conversation.title == "Generators"
        assert conversation.summary == LONG_TURNS[0]
        assert conversation.metadata.message_count == 4
        assert conversation.metadata.created_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert "generators" in conversation.metadata.topics
        assert conversation.metadata.sentiment == "neutral"

    def test_missing_title_gets_default(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "", 1700000000, LONG_TURNS)
        [conversation] = normalizer.normalize([record])
        assert conversation.title == "Untitled Conversation"

    def test_drops_single_message_conversation(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-1", "One", 1700000000, [" ".join(["word"] * 50)])
        assert normalizer.normalize([record]) == []

    def test_drops_short_conversation(self, normalizer: ConversationNormalizer) -> None:
        """Fewer than 20 words in total should be dropped."""
        record = build_linear_conversation("conv-1", "Short", 1700000000, ["Hi there", "Hello, how can I help?"])
        assert normalizer.normalize([record]) == []

    def test_exactly_20_words_kept(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation(
            "conv-1", "Edge", 1700000000, [" ".join(["alpha"] * 10), " ".join(["beta"] * 10)]
        )
        [conversation] = normalizer.normalize([record])
        assert conversation.metadata.word_count == 20

    def test_system_only_conversation_dropped(self, normalizer: ConversationNormalizer) -> None:
        record = build_linear_conversation("conv-sys", "System", 1700000000, [])
        assert normalizer.normalize([record]) == []

    def test_bad_records_do_not_abort_batch(self, normalizer: ConversationNormalizer) -> None:
        """Malformed records should be skipped while valid ones survive."""
        good = build_linear_conversation("conv-ok", "Good", 1700000000, LONG_TURNS)
        bad: list[Any] = ["not a dict", {"title": "no id"}, {"id": "no-mapping"}]
        result = normalizer.normalize([bad[0], good, bad[1], bad[2]])
        assert [c.id for c in result] == ["conv-ok"]

    def test_extractor_failure_skips_conversation(self) -> None:
        def broken_topics(messages: Any) -> list[str]:
            raise RuntimeError("boom")

        normalizer = ConversationNormalizer(topic_extractor=broken_topics)
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        assert normalizer.normalize([record]) == []

    def test_pluggable_feature_functions(self) -> None:
        normalizer = ConversationNormalizer(
            topic_extractor=lambda messages: ["custom"],
            sentiment_analyzer=lambda messages: "positive",
        )
        record = build_linear_conversation("conv-1", "Generators", 1700000000, LONG_TURNS)
        [conversation] = normalizer.normalize([record])
        assert conversation.metadata.topics == ["custom"]
        assert conversation.metadata.sentiment == "positive"

    def test_never_emits_degenerate_conversations(self, normalizer: ConversationNormalizer) -> None:
        records = [
            build_linear_conversation(f"conv-{n}", "T", 1700000000, LONG_TURNS[:n]) for n in range(5)
        ]
        for conversation in normalizer.normalize(records):
            assert len(conversation.messages) >= 2
            assert conversation.metadata.word_count >= 20


class TestRawConversationFromDict:
    """Tests for building RawConversation records."""

    def test_rejects_non_dict(self) -> None:
        with pytest.raises(ValueError):
            RawConversation.from_dict(["x"])

    def test_accepts_conversation_id_alias(self) -> None:
        raw = RawConversation.from_dict({"conversation_id": "abc", "mapping": {}})
        assert raw.id == "abc"
        assert raw.current_node is None
