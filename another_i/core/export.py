# another_i/core/export.py

from datetime import datetime
from enum import Enum
import json
import re
from typing import Optional, Sequence, Tuple

from another_i.config import strings
from another_i.core.models import Conversation, Folder, Role, folders_to_list, utcnow


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"


class ExportScope(str, Enum):
    CURRENT = "current"
    ALL = "all"


MIME_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.MARKDOWN: "text/markdown",
}

_EXTENSIONS = {ExportFormat.JSON: "json", ExportFormat.MARKDOWN: "md"}


def format_local(dt: datetime) -> str:
    return f"{dt.year}/{dt.month}/{dt.day} {dt:%H:%M:%S}"


def conversation_markdown(conv: Conversation) -> str:
    parts = [
        f"# {conv.title}\n\n",
        f"{strings.EXPORT_CREATED}: {format_local(conv.created_at)}\n",
        f"{strings.EXPORT_UPDATED}: {format_local(conv.updated_at)}\n\n",
        "---\n\n",
    ]
    for msg in conv.messages:
        heading = strings.EXPORT_USER_HEADING if msg.role is Role.USER else strings.EXPORT_ASSISTANT_HEADING
        parts.append(f"## {heading}\n\n{msg.content}\n\n")
    return "".join(parts)


def folders_markdown(folders: Sequence[Folder]) -> str:
    return "\n\n---\n\n".join(
        f"# {folder.name}\n\n" + "\n\n---\n\n".join(conversation_markdown(c) for c in folder.conversations)
        for folder in folders
    )


def safe_filename_stem(title: str) -> str:
    return re.sub(r"[^\w\s]", "", title)


def export(
    folders: Sequence[Folder],
    active: Optional[Conversation],
    fmt: ExportFormat = ExportFormat.MARKDOWN,
    scope: ExportScope = ExportScope.CURRENT,
    now: Optional[datetime] = None,
) -> Tuple[str, str, str]:
    """
    Render an export. Returns (content, filename, mime type).
    Scope CURRENT without an active conversation exports everything.
    """
    fmt = ExportFormat(fmt)
    scope = ExportScope(scope)
    stamp = int((now or utcnow()).timestamp() * 1000)
    ext = _EXTENSIONS[fmt]

    if scope is ExportScope.CURRENT and active is not None:
        if fmt is ExportFormat.JSON:
            content = json.dumps(active.to_dict(), ensure_ascii=False, indent=2)
        else:
            content = conversation_markdown(active)
        filename = f"{safe_filename_stem(active.title)}_{stamp}.{ext}"
    else:
        if fmt is ExportFormat.JSON:
            content = json.dumps(folders_to_list(tuple(folders)), ensure_ascii=False, indent=2)
        else:
            content = folders_markdown(folders)
        filename = f"another-i-export_{stamp}.{ext}"

    return content, filename, MIME_TYPES[fmt]
