# another_i/core/store.py
"""
Conversation store.

The module-level functions are pure: each takes the folder collection and
returns a new one, never mutating its input. When an operation does not
apply (unknown id, guard rejection) the *same* collection object is returned,
so callers can detect a no-op with ``is``.

``ConversationStore`` owns the one live collection plus the active selection
and funnels every mutation through ``_update`` so there is a single writer.
"""

from dataclasses import replace
from datetime import datetime
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from another_i.config.strings import (
    DEFAULT_FOLDER_ID,
    DEFAULT_FOLDER_NAME,
    NEW_CONVERSATION_TITLE,
    NEW_FOLDER_NAME,
)
from another_i.core import tags as tag_registry
from another_i.core.models import Conversation, ConversationTag, Folder, Message, Role, new_id, utcnow
from another_i.utils.logging import get_logger

logger = get_logger(__name__)

Folders = Tuple[Folder, ...]


def default_folders() -> Folders:
    return (Folder(id=DEFAULT_FOLDER_ID, name=DEFAULT_FOLDER_NAME),)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def all_conversations(folders: Folders) -> List[Conversation]:
    return [c for f in folders for c in f.conversations]


def find_conversation(folders: Folders, conversation_id: Optional[str]) -> Optional[Conversation]:
    if conversation_id is None:
        return None
    for folder in folders:
        for conv in folder.conversations:
            if conv.id == conversation_id:
                return conv
    return None


def find_folder_of(folders: Folders, conversation_id: str) -> Optional[Folder]:
    for folder in folders:
        if any(c.id == conversation_id for c in folder.conversations):
            return folder
    return None


def most_recent_conversation_id(folders: Folders) -> Optional[str]:
    convs = all_conversations(folders)
    if not convs:
        return None
    return max(convs, key=lambda c: c.updated_at).id


def _map_conversation(
    folders: Folders,
    conversation_id: str,
    fn: Callable[[Conversation], Conversation],
) -> Folders:
    changed = False
    updated = []
    for folder in folders:
        convs = []
        touched = False
        for conv in folder.conversations:
            if conv.id == conversation_id:
                new_conv = fn(conv)
                if new_conv is not conv:
                    touched = True
                convs.append(new_conv)
            else:
                convs.append(conv)
        if touched:
            changed = True
            updated.append(replace(folder, conversations=tuple(convs)))
        else:
            updated.append(folder)
    return tuple(updated) if changed else folders


# ---------------------------------------------------------------------------
# Folder operations
# ---------------------------------------------------------------------------

def create_folder(folders: Folders, name: str = NEW_FOLDER_NAME, folder_id: Optional[str] = None) -> Tuple[Folders, str]:
    folder_id = folder_id or new_id("folder")
    if any(f.id == folder_id for f in folders):
        return folders, folder_id
    return folders + (Folder(id=folder_id, name=name),), folder_id


def rename_folder(folders: Folders, folder_id: str, name: str) -> Folders:
    name = (name or "").strip()
    if not name or not any(f.id == folder_id for f in folders):
        return folders
    return tuple(replace(f, name=name) if f.id == folder_id else f for f in folders)


def set_folder_expanded(folders: Folders, folder_id: str, expanded: bool) -> Folders:
    if not any(f.id == folder_id and f.is_expanded != expanded for f in folders):
        return folders
    return tuple(replace(f, is_expanded=expanded) if f.id == folder_id else f for f in folders)


def delete_folder(folders: Folders, folder_id: str) -> Folders:
    # At least one folder must always exist.
    if len(folders) <= 1 or not any(f.id == folder_id for f in folders):
        return folders
    return tuple(f for f in folders if f.id != folder_id)


# ---------------------------------------------------------------------------
# Conversation operations
# ---------------------------------------------------------------------------

def create_conversation(folders: Folders, folder_id: Optional[str], seed: Conversation) -> Folders:
    """
    Prepend ``seed`` to the target folder (first folder when ``folder_id`` is
    None). A seed whose id already exists anywhere is rejected; this guards
    against a double-submitted "new conversation".
    """
    if find_conversation(folders, seed.id) is not None:
        logger.info("Rejected duplicate conversation id=%s", seed.id)
        return folders
    target = folder_id if folder_id is not None else folders[0].id
    if not any(f.id == target for f in folders):
        return folders
    return tuple(
        replace(f, conversations=(seed,) + f.conversations) if f.id == target else f
        for f in folders
    )


def delete_conversation(folders: Folders, conversation_id: str) -> Folders:
    if find_conversation(folders, conversation_id) is None:
        return folders
    return tuple(
        replace(f, conversations=tuple(c for c in f.conversations if c.id != conversation_id))
        if any(c.id == conversation_id for c in f.conversations)
        else f
        for f in folders
    )


def move_conversation(folders: Folders, conversation_id: str, target_folder_id: str) -> Folders:
    """Transfer ownership: removed from its folder, prepended to the target."""
    source = find_folder_of(folders, conversation_id)
    if source is None or source.id == target_folder_id:
        return folders
    if not any(f.id == target_folder_id for f in folders):
        return folders
    conv = find_conversation(folders, conversation_id)
    updated = []
    for f in folders:
        if f.id == source.id:
            updated.append(replace(f, conversations=tuple(c for c in f.conversations if c.id != conversation_id)))
        elif f.id == target_folder_id:
            updated.append(replace(f, conversations=(conv,) + f.conversations))
        else:
            updated.append(f)
    return tuple(updated)


def import_conversations(folders: Folders, conversations: Sequence[Conversation], folder_id: str) -> Folders:
    """Prepend imported conversations to a folder, skipping ids already in use."""
    if not any(f.id == folder_id for f in folders):
        return folders
    seen = {c.id for c in all_conversations(folders)}
    fresh = []
    for conv in conversations:
        if conv.id in seen:
            continue
        seen.add(conv.id)
        fresh.append(conv)
    if not fresh:
        return folders
    return tuple(
        replace(f, conversations=tuple(fresh) + f.conversations) if f.id == folder_id else f
        for f in folders
    )


def set_pinned(folders: Folders, conversation_id: str, pinned: bool, now: Optional[datetime] = None) -> Folders:
    return _map_conversation(
        folders,
        conversation_id,
        lambda c: c if c.is_pinned == pinned else replace(c, is_pinned=pinned, updated_at=now or utcnow()),
    )


def add_tag(folders: Folders, conversation_id: str, tag: ConversationTag, now: Optional[datetime] = None) -> Folders:
    return _map_conversation(folders, conversation_id, lambda c: tag_registry.attach(c, tag, now))


def remove_tag(folders: Folders, conversation_id: str, tag_id: str, now: Optional[datetime] = None) -> Folders:
    return _map_conversation(folders, conversation_id, lambda c: tag_registry.detach(c, tag_id, now))


def append_messages(
    folders: Folders,
    conversation_id: str,
    messages: Sequence[Message],
    now: Optional[datetime] = None,
) -> Folders:
    if not messages:
        return folders
    return _map_conversation(
        folders,
        conversation_id,
        lambda c: replace(c, messages=c.messages + tuple(messages), updated_at=now or utcnow()),
    )


def set_document_content(folders: Folders, conversation_id: str, text: str, now: Optional[datetime] = None) -> Folders:
    return _map_conversation(
        folders,
        conversation_id,
        lambda c: replace(c, document_content=text, updated_at=now or utcnow()),
    )


def set_title(folders: Folders, conversation_id: str, title: str, now: Optional[datetime] = None) -> Folders:
    return _map_conversation(
        folders,
        conversation_id,
        lambda c: replace(c, title=title, updated_at=now or utcnow()),
    )


def edit_message(
    folders: Folders,
    conversation_id: str,
    message_id: str,
    content: str,
    now: Optional[datetime] = None,
) -> Folders:
    """
    Replace a user message's content and discard every message after it.
    Unknown ids and assistant messages are left alone.
    """
    def _edit(conv: Conversation) -> Conversation:
        for index, msg in enumerate(conv.messages):
            if msg.id != message_id:
                continue
            if msg.role is not Role.USER:
                return conv
            edited = replace(msg, content=content, timestamp=now or utcnow())
            return replace(conv, messages=conv.messages[:index] + (edited,), updated_at=now or utcnow())
        return conv

    return _map_conversation(folders, conversation_id, _edit)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def list_sorted(conversations: Iterable[Conversation]) -> List[Conversation]:
    """
    Pinned first, original order kept within each group; duplicate ids keep
    their first occurrence.
    """
    seen = set()
    unique = []
    for conv in conversations:
        if conv.id in seen:
            continue
        seen.add(conv.id)
        unique.append(conv)
    return sorted(unique, key=lambda c: not c.is_pinned)


def title_preview(content: str, limit: int) -> str:
    return content[:limit] + "..." if len(content) > limit else content


# ---------------------------------------------------------------------------
# Owning container
# ---------------------------------------------------------------------------

class ConversationStore:
    """
    Holds the live folder collection and the active conversation id.

    Every mutation replaces the whole collection under a lock; listeners
    (e.g. persistence) are notified with the new snapshot.
    """

    def __init__(self, folders: Optional[Folders] = None, active_conversation_id: Optional[str] = None) -> None:
        self._lock = threading.RLock()
        self._folders: Folders = tuple(folders) if folders else default_folders()
        self.active_conversation_id = active_conversation_id
        self._listeners: List[Callable[[Folders], None]] = []

    @property
    def folders(self) -> Folders:
        return self._folders

    @property
    def active_conversation(self) -> Optional[Conversation]:
        return find_conversation(self._folders, self.active_conversation_id)

    def get(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        return find_conversation(self._folders, conversation_id)

    def subscribe(self, listener: Callable[[Folders], None]) -> None:
        self._listeners.append(listener)

    def _update(self, fn: Callable[[Folders], Folders]) -> bool:
        with self._lock:
            new = fn(self._folders)
            if new is self._folders:
                return False
            self._folders = new
            for listener in list(self._listeners):
                try:
                    listener(new)
                except Exception as e:
                    logger.error("Store listener failed: %s", e)
            return True

    # ----- selection -----

    def select(self, conversation_id: str) -> bool:
        if self.get(conversation_id) is None:
            return False
        self.active_conversation_id = conversation_id
        return True

    def clear_selection(self) -> None:
        self.active_conversation_id = None

    def select_most_recent(self) -> Optional[str]:
        self.active_conversation_id = most_recent_conversation_id(self._folders)
        return self.active_conversation_id

    # ----- folders -----

    def create_folder(self, name: str = NEW_FOLDER_NAME) -> str:
        created = {}

        def _create(folders: Folders) -> Folders:
            new, folder_id = create_folder(folders, name)
            created["id"] = folder_id
            return new

        self._update(_create)
        return created["id"]

    def rename_folder(self, folder_id: str, name: str) -> bool:
        return self._update(lambda f: rename_folder(f, folder_id, name))

    def set_folder_expanded(self, folder_id: str, expanded: bool) -> bool:
        return self._update(lambda f: set_folder_expanded(f, folder_id, expanded))

    def delete_folder(self, folder_id: str) -> bool:
        with self._lock:
            doomed = next((f for f in self._folders if f.id == folder_id), None)
            deleted = self._update(lambda f: delete_folder(f, folder_id))
            if deleted and doomed is not None and any(c.id == self.active_conversation_id for c in doomed.conversations):
                self.active_conversation_id = None
            return deleted

    # ----- conversations -----

    def create_conversation(self, folder_id: Optional[str], seed: Conversation) -> Optional[str]:
        if self._update(lambda f: create_conversation(f, folder_id, seed)):
            return seed.id
        return None

    def new_conversation(self, now: Optional[datetime] = None) -> str:
        """Empty placeholder conversation in the first folder, made active."""
        now = now or utcnow()
        seed = Conversation(id=new_id("conv"), title=NEW_CONVERSATION_TITLE, created_at=now, updated_at=now)
        self.create_conversation(None, seed)
        self.active_conversation_id = seed.id
        return seed.id

    def delete_conversation(self, conversation_id: str) -> bool:
        with self._lock:
            if conversation_id == self.active_conversation_id:
                self.active_conversation_id = None
            return self._update(lambda f: delete_conversation(f, conversation_id))

    def move_conversation(self, conversation_id: str, target_folder_id: str) -> bool:
        return self._update(lambda f: move_conversation(f, conversation_id, target_folder_id))

    def import_conversations(self, conversations: Sequence[Conversation], folder_id: str) -> bool:
        with self._lock:
            imported = self._update(lambda f: import_conversations(f, conversations, folder_id))
            if imported and conversations:
                self.select(conversations[0].id)
            return imported

    def set_pinned(self, conversation_id: str, pinned: bool) -> bool:
        return self._update(lambda f: set_pinned(f, conversation_id, pinned))

    def toggle_pinned(self, conversation_id: str) -> bool:
        with self._lock:
            conv = self.get(conversation_id)
            if conv is None:
                return False
            return self.set_pinned(conversation_id, not conv.is_pinned)

    def add_tag(self, conversation_id: str, tag: ConversationTag) -> bool:
        return self._update(lambda f: add_tag(f, conversation_id, tag))

    def remove_tag(self, conversation_id: str, tag_id: str) -> bool:
        return self._update(lambda f: remove_tag(f, conversation_id, tag_id))

    def all_tags(self) -> List[ConversationTag]:
        return tag_registry.all_tags(self._folders)

    def append_messages(self, conversation_id: str, messages: Sequence[Message]) -> bool:
        return self._update(lambda f: append_messages(f, conversation_id, messages))

    def set_document_content(self, conversation_id: str, text: str) -> bool:
        return self._update(lambda f: set_document_content(f, conversation_id, text))

    def set_title(self, conversation_id: str, title: str) -> bool:
        return self._update(lambda f: set_title(f, conversation_id, title))

    def edit_message(self, conversation_id: str, message_id: str, content: str) -> bool:
        return self._update(lambda f: edit_message(f, conversation_id, message_id, content))

    def list_sorted(self, folder_id: str) -> List[Conversation]:
        folder = next((f for f in self._folders if f.id == folder_id), None)
        return list_sorted(folder.conversations) if folder else []
