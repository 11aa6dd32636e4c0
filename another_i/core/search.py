# another_i/core/search.py

from dataclasses import dataclass
import re
from typing import List, Optional, Sequence

from another_i.config.settings import SEARCH_EXCERPT_CONTEXT, SEARCH_RESULT_LIMIT
from another_i.core.models import Folder


@dataclass
class SearchResult:
    type: str  # 'conversation' or 'message'
    conversation_id: str
    conversation_title: str
    folder_name: str
    content: str
    highlight: str
    message_index: Optional[int] = None


def highlight_match(text: str, query: str) -> str:
    return re.sub(f"({re.escape(query)})", r"<mark>\1</mark>", text, flags=re.IGNORECASE)


def get_excerpt(text: str, query: str, context: int = SEARCH_EXCERPT_CONTEXT) -> str:
    index = text.lower().find(query.lower())
    if index == -1:
        return text[: context * 2] + "..."

    start = max(0, index - context)
    end = min(len(text), index + len(query) + context)
    excerpt = text[start:end]
    if start > 0:
        excerpt = "..." + excerpt
    if end < len(text):
        excerpt = excerpt + "..."
    return highlight_match(excerpt, query)


def search(folders: Sequence[Folder], query: str, limit: int = SEARCH_RESULT_LIMIT) -> List[SearchResult]:
    """
    Case-insensitive substring search over titles and message bodies.
    """
    if not query or not query.strip():
        return []

    needle = query.lower()
    results: List[SearchResult] = []
    for folder in folders:
        for conv in folder.conversations:
            if needle in conv.title.lower():
                results.append(
                    SearchResult(
                        type="conversation",
                        conversation_id=conv.id,
                        conversation_title=conv.title,
                        folder_name=folder.name,
                        content=conv.title,
                        highlight=highlight_match(conv.title, query),
                    )
                )
            for index, msg in enumerate(conv.messages):
                if needle in msg.content.lower():
                    results.append(
                        SearchResult(
                            type="message",
                            conversation_id=conv.id,
                            conversation_title=conv.title,
                            folder_name=folder.name,
                            content=msg.content,
                            highlight=get_excerpt(msg.content, query),
                            message_index=index,
                        )
                    )
    return results[:limit]
