# another_i/memory/repository.py
#
# Persisted state layout. Keys match what the browser build wrote to
# localStorage so an exported localStorage dump can be loaded as-is.

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
import json
import sqlite3
from typing import Optional

from another_i.core.models import AISettings, LayoutMode, folders_from_list, folders_to_list
from another_i.core.store import Folders, default_folders
from another_i.memory.db import init_db, kv_get, kv_remove, kv_set
from another_i.utils.logging import get_logger

logger = get_logger(__name__)

CONVERSATIONS_KEY = "another-i-conversations"
SETTINGS_KEY = "another-i-settings"
LAYOUT_KEY = "another-i-layout"
SKIP_DELETE_CONFIRMATION_KEY = "skipDeleteConfirmation"
SEEN_WELCOME_GUIDE_KEY = "hasSeenWelcomeGuide"

DEFAULT_LAYOUT = LayoutMode.CHAT_FIRST


class StateRepository:
    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path
        init_db(db_path)

    # ---------- folders ----------

    def load_folders(self) -> Folders:
        """
        Load the folder collection. Missing, unreadable or empty data yields
        the default single-folder collection; startup is never blocked.
        """
        raw = kv_get(CONVERSATIONS_KEY, self.db_path)
        if raw is None:
            return default_folders()
        try:
            folders = folders_from_list(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to parse stored conversations; starting empty. err=%r", e)
            return default_folders()
        return folders or default_folders()

    def save_folders(self, folders: Folders) -> None:
        kv_set(CONVERSATIONS_KEY, json.dumps(folders_to_list(folders), ensure_ascii=False), self.db_path)

    # ---------- AI settings ----------

    def load_ai_settings(self) -> Optional[AISettings]:
        raw = kv_get(SETTINGS_KEY, self.db_path)
        if raw is None:
            return None
        try:
            return AISettings.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to parse stored settings: %r", e)
            return None

    def save_ai_settings(self, settings: AISettings) -> None:
        kv_set(SETTINGS_KEY, json.dumps(settings.to_dict()), self.db_path)

    def clear_ai_settings(self) -> None:
        kv_remove(SETTINGS_KEY, self.db_path)

    # ---------- layout ----------

    def load_layout(self) -> LayoutMode:
        raw = kv_get(LAYOUT_KEY, self.db_path)
        try:
            return LayoutMode(raw) if raw else DEFAULT_LAYOUT
        except ValueError:
            return DEFAULT_LAYOUT

    def save_layout(self, mode: LayoutMode) -> None:
        kv_set(LAYOUT_KEY, LayoutMode(mode).value, self.db_path)

    # ---------- flags ----------

    def get_flag(self, key: str) -> bool:
        return kv_get(key, self.db_path) == "true"

    def set_flag(self, key: str, value: bool = True) -> None:
        if value:
            kv_set(key, "true", self.db_path)
        else:
            kv_remove(key, self.db_path)

    @property
    def skip_delete_confirmation(self) -> bool:
        return self.get_flag(SKIP_DELETE_CONFIRMATION_KEY)

    @skip_delete_confirmation.setter
    def skip_delete_confirmation(self, value: bool) -> None:
        self.set_flag(SKIP_DELETE_CONFIRMATION_KEY, value)

    @property
    def has_seen_welcome_guide(self) -> bool:
        return self.get_flag(SEEN_WELCOME_GUIDE_KEY)

    @has_seen_welcome_guide.setter
    def has_seen_welcome_guide(self, value: bool) -> None:
        self.set_flag(SEEN_WELCOME_GUIDE_KEY, value)


class FolderWriter:
    """
    Store listener that persists folder snapshots in mutation order.

    Inside a running event loop the sqlite write goes to a single worker
    thread so the loop never blocks; outside one it is written inline.
    """

    def __init__(self, repo: StateRepository) -> None:
        self.repo = repo
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="another-i-save")
        self._last: Optional[Future] = None

    def __call__(self, folders: Folders) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.repo.save_folders(folders)
            return
        self._last = self._executor.submit(self._save, folders)

    def _save(self, folders: Folders) -> None:
        try:
            self.repo.save_folders(folders)
        except sqlite3.Error as e:
            logger.error("Failed to persist conversations: %s", e)

    def flush(self) -> None:
        """Block until every queued snapshot is on disk."""
        # single worker: the last submission finishes after all earlier ones
        if self._last is not None:
            self._last.result()
