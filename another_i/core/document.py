# another_i/core/document.py
"""
Thought document synthesis.

Local mode is a pure Markdown template over the transcript. Remote mode asks
the summarization capability for a note and only ever overwrites the stored
document on success.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from another_i.config import strings
from another_i.config.settings import KEY_POINT_PREVIEW_CHARS
from another_i.core.models import AISettings, Message, utcnow
from another_i.utils.logging import get_logger

logger = get_logger(__name__)

MessageLike = Union[Message, Mapping[str, Any]]


def _role_content(msg: MessageLike) -> Tuple[str, str]:
    if isinstance(msg, Message):
        return msg.role.value, msg.content
    return str(msg.get("role", "")), str(msg.get("content") or "")


def to_wire(messages: Sequence[Message]) -> List[Dict[str, str]]:
    """Strip messages down to the {role, content} shape vendors accept."""
    return [{"role": m.role.value, "content": m.content} for m in messages]


def cap_messages(messages: Sequence[Any], limit: int) -> List[Any]:
    """Keep the most recent ``limit`` messages."""
    items = list(messages)
    if limit <= 0 or len(items) <= limit:
        return items
    return items[-limit:]


def format_timestamp(dt: datetime) -> str:
    return f"{dt.year}年{dt.month}月{dt.day}日 {dt:%H:%M}"


def _preview(text: str, limit: Optional[int]) -> str:
    if limit is None or len(text) <= limit:
        return text
    return text[:limit] + "..."


def synthesize(
    messages: Sequence[MessageLike],
    title: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    assistant_label: str = strings.ASSISTANT_LABEL,
    assistant_preview_chars: Optional[int] = None,
    timestamp_label: Optional[str] = None,
) -> str:
    """
    Build the Markdown thought document for a transcript.

    Deterministic for a fixed ``now``. An empty transcript yields "".
    """
    pairs = [_role_content(m) for m in messages]
    if not pairs:
        return ""

    stamp = format_timestamp(now or utcnow())
    if timestamp_label:
        stamp = f"{timestamp_label}: {stamp}"

    lines: List[str] = [
        f"# {title or strings.DOCUMENT_DEFAULT_HEADING}",
        "",
        f"📅 {stamp}",
        "",
        "---",
        "",
        f"## {strings.DOCUMENT_TRANSCRIPT_HEADING}",
        "",
    ]

    user_contents = [content for role, content in pairs if role == "user"]
    assistant_count = sum(1 for role, _ in pairs if role == "assistant")

    turn = 0
    for role, content in pairs:
        if role == "user":
            turn += 1
            lines += [f"### {strings.DOCUMENT_USER_BLOCK.format(index=turn)}", "", content, ""]
        elif role == "assistant":
            lines += [f"> 🤖 **{assistant_label}**: {_preview(content, assistant_preview_chars)}", ""]

    if user_contents:
        lines += [
            "---",
            "",
            f"## {strings.DOCUMENT_SUMMARY_HEADING}",
            "",
            f"- {strings.DOCUMENT_USER_COUNT.format(count=len(user_contents))}",
            f"- {strings.DOCUMENT_ASSISTANT_COUNT.format(count=assistant_count)}",
            "",
            f"### {strings.DOCUMENT_KEY_POINTS_HEADING}",
            "",
        ]
        for i, content in enumerate(user_contents[:3], start=1):
            lines.append(f"{i}. {_preview(content, KEY_POINT_PREVIEW_CHARS)}")

    return "\n".join(lines) + "\n"


class DocumentSynthesizer:
    """
    Remote-mode synthesis bound to a summarization capability.

    ``client`` needs ``summarize(messages, settings) -> str``.
    """

    def __init__(self, client: Any, max_summary_messages: int = 30) -> None:
        self.client = client
        self.max_summary_messages = max_summary_messages

    async def summarize(self, messages: Sequence[Message], ai_settings: Optional[AISettings]) -> Optional[str]:
        payload = to_wire(cap_messages(messages, self.max_summary_messages))
        try:
            text = await asyncio.to_thread(self.client.summarize, payload, ai_settings)
        except Exception as e:
            logger.warning("Summarization failed; keeping existing document. err=%s", e)
            return None
        text = (text or "").strip()
        if not text:
            logger.warning("Summarization returned empty text; keeping existing document.")
            return None
        return text

    async def refresh(
        self,
        store: Any,
        conversation_id: str,
        messages: Sequence[Message],
        ai_settings: Optional[AISettings],
    ) -> bool:
        """
        Summarize ``messages`` and merge the note into ``conversation_id``.
        Returns True only when the document was replaced.
        """
        text = await self.summarize(messages, ai_settings)
        if text is None:
            return False
        return store.set_document_content(conversation_id, text)
