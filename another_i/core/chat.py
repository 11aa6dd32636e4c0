# another_i/core/chat.py

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Coroutine, List, Optional, Set

from another_i.clients.llm_client import ProviderError, sanitize_title
from another_i.config.settings import CONVERSATION_TITLE_PREVIEW_CHARS, load_settings
from another_i.config.strings import CONNECTION_APOLOGY, NEW_CONVERSATION_TITLE
from another_i.core.document import DocumentSynthesizer, cap_messages, to_wire
from another_i.core.models import AISettings, Conversation, Message, Role, is_configured, new_id, utcnow
from another_i.core.store import ConversationStore, title_preview
from another_i.utils.logging import get_logger

logger = get_logger(__name__)
_settings = load_settings()


class TurnPhase(str, Enum):
    IDLE = "idle"
    DRAFTING = "drafting"
    AWAITING_COMPLETION = "awaiting_completion"
    ERROR_FALLBACK = "error_fallback"
    SUMMARIZING = "summarizing"


@dataclass
class TurnState:
    """
    One send-message invocation. ``conversation_id`` is fixed at dispatch and
    is the only target any later merge may write to.
    """
    conversation_id: str
    phase: TurnPhase = TurnPhase.IDLE
    user_message: Optional[Message] = None
    assistant_message: Optional[Message] = None
    is_fallback: bool = False
    failed: bool = False
    summarized: bool = False
    title_task: Optional[asyncio.Task] = None


class ConversationOrchestrator:
    """
    Drives the send-message lifecycle against a ConversationStore:

        Drafting -> AwaitingCompletion -> Summarizing -> Idle
                            \\-> ErrorFallback -> Idle

    plus an independent background title task for a conversation's first
    message. ``client`` provides complete / summarize / title_for and is
    called off the event loop; all store writes happen on the loop.
    """

    def __init__(
        self,
        store: ConversationStore,
        client: Any,
        ai_settings: Optional[AISettings] = None,
        synthesizer: Optional[DocumentSynthesizer] = None,
        max_chat_messages: Optional[int] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.ai_settings = ai_settings
        self.synthesizer = synthesizer or DocumentSynthesizer(client, _settings.max_summary_messages)
        self.max_chat_messages = max_chat_messages or _settings.max_chat_messages
        self._background: Set[asyncio.Task] = set()
        self._pending = 0

    @property
    def is_busy(self) -> bool:
        return self._pending > 0

    def set_ai_settings(self, ai_settings: Optional[AISettings]) -> None:
        """Affects turns dispatched from now on; in-flight turns keep theirs."""
        self.ai_settings = ai_settings

    # ---------- drafting ----------

    def _ensure_conversation(self, content: str, conversation_id: Optional[str]) -> str:
        target = conversation_id if conversation_id is not None else self.store.active_conversation_id
        if target is not None and self.store.get(target) is not None:
            return target

        now = utcnow()
        seed = Conversation(
            id=new_id("conv"),
            title=title_preview(content, CONVERSATION_TITLE_PREVIEW_CHARS),
            created_at=now,
            updated_at=now,
        )
        self.store.create_conversation(None, seed)
        self.store.active_conversation_id = seed.id
        logger.info("Created conversation id=%s from first message", seed.id)
        return seed.id

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for background work (title generation) to settle."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ---------- main entry point ----------

    async def send_message(self, content: str, conversation_id: Optional[str] = None) -> TurnState:
        """
        Send ``content`` into ``conversation_id`` (default: the active
        conversation, or a new one). The user message is in the store before
        this coroutine first suspends.
        """
        cleaned = (content or "").strip()
        if not cleaned:
            raise ValueError("No meaningful input text was provided.")

        settings = self.ai_settings
        target_id = self._ensure_conversation(cleaned, conversation_id)
        conv = self.store.get(target_id)
        prior: List[Message] = list(conv.messages)

        turn = TurnState(conversation_id=target_id, phase=TurnPhase.DRAFTING)
        turn.user_message = Message.create(Role.USER, cleaned)
        self.store.append_messages(target_id, [turn.user_message])
        if conv.title == NEW_CONVERSATION_TITLE:
            self.store.set_title(target_id, title_preview(cleaned, CONVERSATION_TITLE_PREVIEW_CHARS))

        if not prior and is_configured(settings):
            turn.title_task = self._spawn(self._generate_title(target_id, cleaned, settings))

        return await self._complete_turn(turn, prior + [turn.user_message], settings)

    async def resend_edited(self, conversation_id: str, message_id: str, content: str) -> Optional[TurnState]:
        """
        Edit a user message, discard everything after it, and run the turn
        again from there. Returns None when the edit does not apply.
        """
        cleaned = (content or "").strip()
        if not cleaned:
            raise ValueError("No meaningful input text was provided.")

        settings = self.ai_settings
        if not self.store.edit_message(conversation_id, message_id, cleaned):
            return None
        conv = self.store.get(conversation_id)
        turn = TurnState(conversation_id=conversation_id, phase=TurnPhase.DRAFTING, user_message=conv.messages[-1])
        return await self._complete_turn(turn, list(conv.messages), settings)

    # ---------- completion + summary ----------

    async def _complete_turn(
        self,
        turn: TurnState,
        history: List[Message],
        settings: Optional[AISettings],
    ) -> TurnState:
        target_id = turn.conversation_id
        payload = to_wire(cap_messages(history, self.max_chat_messages))

        turn.phase = TurnPhase.AWAITING_COMPLETION
        self._pending += 1
        try:
            result = await asyncio.to_thread(self.client.complete, payload, settings)
            text = (result.text or "").strip()
            if not text:
                raise ProviderError("Completion returned empty text", "empty_response")
        except Exception as e:
            logger.error("Completion failed for conversation=%s: %s", target_id, e)
            turn.phase = TurnPhase.ERROR_FALLBACK
            turn.failed = True
            turn.assistant_message = Message.create(Role.ASSISTANT, CONNECTION_APOLOGY)
            self.store.append_messages(target_id, [turn.assistant_message])
            turn.phase = TurnPhase.IDLE
            return turn
        finally:
            self._pending -= 1

        turn.assistant_message = Message.create(Role.ASSISTANT, text)
        turn.is_fallback = bool(result.is_fallback)
        self.store.append_messages(target_id, [turn.assistant_message])

        turn.phase = TurnPhase.SUMMARIZING
        conv = self.store.get(target_id)
        if conv is None:
            logger.info("Conversation %s was deleted mid-turn; skipping summary.", target_id)
        else:
            turn.summarized = await self.synthesizer.refresh(self.store, target_id, conv.messages, settings)

        turn.phase = TurnPhase.IDLE
        return turn

    # ---------- background title ----------

    async def _generate_title(self, conversation_id: str, first_message: str, settings: AISettings) -> Optional[str]:
        try:
            raw = await asyncio.to_thread(self.client.title_for, first_message, settings)
        except Exception as e:
            logger.warning("Title generation failed for conversation=%s: %s", conversation_id, e)
            return None

        title = sanitize_title(raw or "")
        if not title:
            return None
        self.store.set_title(conversation_id, title)
        logger.info("Conversation %s titled %r", conversation_id, title)
        return title
