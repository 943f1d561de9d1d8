"""Parser for ChatGPT data export files.

The export's conversations.json is either a bare array of conversation
records or an object wrapping them:

    [{"id": ..., "title": ..., "mapping": {...}, "current_node": ...}, ...]
    {"conversations": [...], "metadata": {...}}
"""

import json
from pathlib import Path
from typing import Any

from chatgraph.errors import FormatError
from chatgraph.logging import get_logger

logger = get_logger("parser")

INVALID_JSON_MESSAGE = "Invalid JSON file. Please ensure you uploaded a valid ChatGPT export."
INVALID_SHAPE_MESSAGE = "Invalid ChatGPT export format. Expected conversations array."


def parse_export(data: bytes | str) -> list[Any]:
    """Parse raw export content into a list of conversation records.

    Args:
        data: File content as bytes (UTF-8, optional BOM) or text

    Returns:
        Conversation records in file order

    Raises:
        FormatError: If the content is not JSON or has an unrecognized shape
    """
    try:
        text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise FormatError(INVALID_JSON_MESSAGE) from e

    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, dict) and isinstance(payload.get("conversations"), list):
        records = payload["conversations"]
    else:
        raise FormatError(INVALID_SHAPE_MESSAGE)

    logger.debug("Parsed export: records=%d", len(records))
    return records


def read_export(path: Path) -> list[Any]:
    """Read and parse an export file from disk."""
    return parse_export(path.read_bytes())
