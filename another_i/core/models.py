# another_i/core/models.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import time
from typing import Any, Dict, List, Optional, Tuple
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """
    Serialize a datetime the way the browser wrote it: UTC, millisecond
    precision, trailing 'Z'.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Any) -> datetime:
    """
    Parse a persisted date field back into an aware datetime.
    Accepts ISO-8601 text (with or without 'Z') or an existing datetime.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"not an ISO-8601 date: {value!r}")
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TagColor(str, Enum):
    GRAY = "gray"
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PURPLE = "purple"
    PINK = "pink"

    @classmethod
    def coerce(cls, value: Any) -> "TagColor":
        """Unknown colors fall back to blue, the picker's default."""
        try:
            return cls(value)
        except ValueError:
            return cls.BLUE


class AIProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class LayoutMode(str, Enum):
    EDITOR_FIRST = "editor-first"
    CHAT_FIRST = "chat-first"


@dataclass(frozen=True)
class Message:
    id: str
    role: Role
    content: str
    timestamp: datetime

    @classmethod
    def create(cls, role: Role, content: str, now: Optional[datetime] = None) -> "Message":
        return cls(id=new_id("msg"), role=Role(role), content=content, timestamp=now or utcnow())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": to_iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            id=str(data["id"]),
            role=Role(data["role"]),
            content=str(data.get("content") or ""),
            timestamp=parse_iso(data["timestamp"]),
        )


@dataclass(frozen=True)
class ConversationTag:
    id: str
    name: str
    color: TagColor = TagColor.BLUE

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTag":
        return cls(id=str(data["id"]), name=str(data.get("name") or ""), color=TagColor.coerce(data.get("color")))


@dataclass(frozen=True)
class Conversation:
    id: str
    title: str
    messages: Tuple[Message, ...] = ()
    document_content: str = ""
    tags: Tuple[ConversationTag, ...] = ()
    is_pinned: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "documentContent": self.document_content,
            "tags": [t.to_dict() for t in self.tags],
            "isPinned": self.is_pinned,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        # Records written before tagging/pinning existed lack these fields.
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            messages=tuple(Message.from_dict(m) for m in data.get("messages") or []),
            document_content=str(data.get("documentContent") or ""),
            tags=tuple(ConversationTag.from_dict(t) for t in data.get("tags") or [] if t),
            is_pinned=bool(data.get("isPinned") or False),
            created_at=parse_iso(data["createdAt"]),
            updated_at=parse_iso(data["updatedAt"]),
        )


@dataclass(frozen=True)
class Folder:
    id: str
    name: str
    conversations: Tuple[Conversation, ...] = ()
    is_expanded: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "conversations": [c.to_dict() for c in self.conversations],
            "isExpanded": self.is_expanded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            conversations=tuple(Conversation.from_dict(c) for c in data.get("conversations") or []),
            is_expanded=bool(data.get("isExpanded", True)),
        )


def folders_to_list(folders: Tuple[Folder, ...]) -> List[Dict[str, Any]]:
    return [f.to_dict() for f in folders]


def folders_from_list(data: Any) -> Tuple[Folder, ...]:
    if not isinstance(data, list):
        raise ValueError("persisted folder collection is not a list")
    return tuple(Folder.from_dict(f) for f in data)


@dataclass(frozen=True)
class AISettings:
    provider: AIProvider
    api_key: str
    model: str

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {"provider": self.provider.value, "apiKey": self.api_key, "model": self.model}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AISettings":
        return cls(
            provider=AIProvider(data["provider"]),
            api_key=str(data.get("apiKey") or ""),
            model=str(data.get("model") or ""),
        )


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}


def is_configured(settings: Optional[AISettings]) -> bool:
    return settings is not None and settings.is_configured
