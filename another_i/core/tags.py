# another_i/core/tags.py
"""
Tag registry.

There is no independent tag table: the set of known tags is whatever is
attached to conversations right now. Two tags are the same tag iff their
ids match.
"""

from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Set

from another_i.core.models import Conversation, ConversationTag, Folder, TagColor, new_id, utcnow


def create_tag(name: str, color: TagColor = TagColor.BLUE, existing_ids: Iterable[str] = ()) -> ConversationTag:
    """
    Create a tag with a fresh id that does not collide with ``existing_ids``.
    """
    taken: Set[str] = set(existing_ids)
    tag_id = new_id("tag")
    while tag_id in taken:
        tag_id = new_id("tag")
    return ConversationTag(id=tag_id, name=name.strip(), color=TagColor.coerce(color))


def attach(conversation: Conversation, tag: ConversationTag, now: Optional[datetime] = None) -> Conversation:
    """Idempotent: a tag id already present leaves the conversation as-is."""
    if any(t.id == tag.id for t in conversation.tags):
        return conversation
    return replace(conversation, tags=conversation.tags + (tag,), updated_at=now or utcnow())


def detach(conversation: Conversation, tag_id: str, now: Optional[datetime] = None) -> Conversation:
    if not any(t.id == tag_id for t in conversation.tags):
        return conversation
    return replace(
        conversation,
        tags=tuple(t for t in conversation.tags if t.id != tag_id),
        updated_at=now or utcnow(),
    )


def all_tags(folders: Iterable[Folder]) -> List[ConversationTag]:
    """Union of every conversation's tags, deduplicated by id, first-seen order."""
    seen: Set[str] = set()
    result: List[ConversationTag] = []
    for folder in folders:
        for conv in folder.conversations:
            for tag in conv.tags:
                if tag.id in seen:
                    continue
                seen.add(tag.id)
                result.append(tag)
    return result


def unassigned_tags(conversation: Conversation, folders: Iterable[Folder]) -> List[ConversationTag]:
    """Tags a picker can still offer for this conversation."""
    assigned = {t.id for t in conversation.tags}
    return [t for t in all_tags(folders) if t.id not in assigned]
