# another_i/importers/chatgpt.py
"""
ChatGPT export import.

Input: the ``conversations.json`` array from ChatGPT's data export. Each
record carries a ``mapping`` of node-id -> {message?, parent?, children}.

The node graph is NOT walked. Nodes with content are sorted by their
message's ``create_time`` and filtered, which flattens the tree into one
linear transcript. Branches (regenerated replies, edited prompts) therefore
all end up interleaved by time; this lossy behavior is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from another_i.config import strings
from another_i.config.settings import IMPORT_ASSISTANT_PREVIEW_CHARS
from another_i.core.document import synthesize
from another_i.core.models import Conversation, Message, Role, new_id, utcnow
from another_i.utils.logging import get_logger

logger = get_logger(__name__)

IMPORTED_ID_PREFIX = "imported-"


class ImportFormatError(ValueError):
    """The input as a whole is not a ChatGPT export; nothing was imported."""


@dataclass
class ImportResult:
    conversations: List[Conversation] = field(default_factory=list)
    imported_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)


def _text_parts(message: Optional[Dict[str, Any]]) -> List[str]:
    if not message:
        return []
    content = message.get("content") or {}
    parts = content.get("parts") or []
    return [p for p in parts if isinstance(p, str)]


def _has_content(node: Dict[str, Any]) -> bool:
    return any(p.strip() for p in _text_parts(node.get("message")))


def _from_epoch(value: Any, default: datetime) -> datetime:
    if value is None:
        return default
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def parse_conversation(raw: Dict[str, Any], now: Optional[datetime] = None) -> Optional[Conversation]:
    """
    Convert one export record. Returns None when no user/assistant text
    survives filtering. Structural problems raise (KeyError, TypeError,
    ValueError, AttributeError).
    """
    now = now or utcnow()
    convo_id = str(raw["id"])
    mapping: Dict[str, Any] = raw["mapping"]
    if not isinstance(mapping, dict):
        raise TypeError(f"mapping is {type(mapping).__name__}, expected object")

    nodes = [node for node in mapping.values() if _has_content(node)]
    # sorted() is stable: equal timestamps keep mapping order
    nodes = sorted(nodes, key=lambda n: float(n["message"].get("create_time") or 0))

    messages: List[Message] = []
    for node in nodes:
        msg = node["message"]
        role = msg["author"]["role"]
        if role not in (Role.USER.value, Role.ASSISTANT.value):
            continue
        content = "\n".join(_text_parts(msg)).strip()
        if not content:
            continue
        messages.append(
            Message(
                id=str(msg.get("id") or new_id("msg")),
                role=Role(role),
                content=content,
                timestamp=_from_epoch(msg.get("create_time"), now),
            )
        )

    if not messages:
        return None

    title = str(raw.get("title") or "").strip() or strings.UNTITLED_IMPORT_TITLE
    return Conversation(
        id=f"{IMPORTED_ID_PREFIX}{convo_id}",
        title=title,
        messages=tuple(messages),
        document_content=synthesize(
            messages,
            title,
            now=now,
            assistant_label=strings.IMPORTED_ASSISTANT_LABEL,
            assistant_preview_chars=IMPORT_ASSISTANT_PREVIEW_CHARS,
            timestamp_label=strings.DOCUMENT_IMPORTED_AT,
        ),
        created_at=_from_epoch(raw.get("create_time"), messages[0].timestamp),
        updated_at=_from_epoch(raw.get("update_time"), messages[-1].timestamp),
    )


def parse_export(data: Any, now: Optional[datetime] = None) -> ImportResult:
    """
    Parse a whole export. Individual broken records are skipped and
    reported in ``errors``; a non-array input raises ImportFormatError.
    """
    if not isinstance(data, list):
        raise ImportFormatError(strings.IMPORT_NOT_CHATGPT_FORMAT)

    result = ImportResult()
    for index, raw in enumerate(data):
        label = raw.get("id", f"#{index}") if isinstance(raw, dict) else f"#{index}"
        try:
            conv = parse_conversation(raw, now=now)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Skipping malformed export conversation %s: %r", label, e)
            result.errors.append(f"{label}: {e!r}")
            continue
        if conv is not None:
            result.conversations.append(conv)

    result.imported_count = len(result.conversations)
    result.skipped_count = len(data) - result.imported_count
    logger.info(
        "ChatGPT import parsed: imported=%d skipped=%d errors=%d",
        result.imported_count,
        result.skipped_count,
        len(result.errors),
    )
    return result


def load_export_file(path: Union[str, Path], now: Optional[datetime] = None) -> ImportResult:
    fp = Path(path)
    if fp.suffix.lower() != ".json":
        raise ImportFormatError(strings.IMPORT_NOT_JSON_FILE)
    try:
        data = json.loads(fp.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read export file %s: %s", fp, e)
        raise ImportFormatError(strings.IMPORT_PARSE_FAILED) from e
    return parse_export(data, now=now)
