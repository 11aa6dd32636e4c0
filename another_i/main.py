# another_i/main.py
"""
Another I CLI entrypoint.

Subcommands:
- chat      : REPL against the active conversation (default)
- import    : load a ChatGPT conversations.json export into a folder
- export    : write the current conversation or everything as Markdown / JSON
- search    : full-text search over titles and messages
- settings  : configure or clear the AI provider (absent = demo mode)
- layout    : show or set the preferred pane layout
- serve     : run the HTTP API routes

State lives in the local sqlite key-value store; every store mutation is
persisted as it happens.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
from pathlib import Path
import sys
from typing import List, Optional, Tuple

import uvicorn

from another_i.clients.llm_client import LLMClient
from another_i.core.chat import ConversationOrchestrator
from another_i.core.export import ExportFormat, ExportScope, export
from another_i.core.models import AIProvider, LayoutMode, is_configured
from another_i.core.search import search
from another_i.core.store import ConversationStore
from another_i.importers.chatgpt import ImportFormatError, load_export_file
from another_i.memory.repository import FolderWriter, StateRepository
from another_i.utils.logging import get_logger

logger = get_logger(__name__)

EXIT_WORDS = {"exit", "quit"}

REPL_HELP = """Commands:
  /new              start a new conversation
  /list             list conversations (pinned first)
  /switch <id>      make a conversation active
  /pin <id>         toggle pinned
  /doc              print the active conversation's thought document
  /edit <msg> <text>  rewrite one of your messages and continue from there
  exit              quit"""


def open_state(db_path: Optional[str] = None) -> Tuple[StateRepository, ConversationStore, FolderWriter]:
    """
    Load persisted state, select the most recently updated conversation and
    subscribe persistence to every later change.
    """
    repo = StateRepository(db_path)
    store = ConversationStore(repo.load_folders())
    store.select_most_recent()
    writer = FolderWriter(repo)
    store.subscribe(writer)
    return repo, store, writer


def _mask(api_key: str) -> str:
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


# -----------------------------
# chat REPL
# -----------------------------

def _print_conversations(store: ConversationStore) -> None:
    for folder in store.folders:
        print(f"[{folder.name}]")
        for conv in store.list_sorted(folder.id):
            marker = "*" if conv.id == store.active_conversation_id else " "
            pin = "📌 " if conv.is_pinned else ""
            print(f" {marker} {conv.id}  {pin}{conv.title}")


async def _read_line(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def run_chat(repo: StateRepository, store: ConversationStore, writer: FolderWriter, client: LLMClient) -> None:
    ai_settings = repo.load_ai_settings()
    orchestrator = ConversationOrchestrator(store, client, ai_settings)

    mode = f"{ai_settings.provider.value} / {ai_settings.model}" if is_configured(ai_settings) else "demo"
    print(f"Another I ({mode}). Type /help for commands, 'exit' to quit.\n")
    active = store.active_conversation
    if active is not None:
        print(f"[Active: {active.title}]\n")

    try:
        while True:
            try:
                line = (await _read_line("You: ")).strip()
            except (EOFError, KeyboardInterrupt):
                print("\n[Session ended]")
                break

            if not line:
                continue
            if line.lower() in EXIT_WORDS:
                print("[Session ended]")
                break

            if line.startswith("/"):
                await _handle_command(line, store, orchestrator)
                continue

            turn = await orchestrator.send_message(line)
            if turn.assistant_message is not None:
                print(f"Another I: {turn.assistant_message.content}\n")
    finally:
        await orchestrator.drain()
        await asyncio.to_thread(writer.flush)


async def _handle_command(line: str, store: ConversationStore, orchestrator: ConversationOrchestrator) -> None:
    cmd, _, rest = line.partition(" ")
    rest = rest.strip()

    if cmd == "/help":
        print(REPL_HELP)
    elif cmd == "/new":
        conv_id = store.new_conversation()
        print(f"[New conversation {conv_id}]")
    elif cmd == "/list":
        _print_conversations(store)
    elif cmd == "/switch":
        if store.select(rest):
            print(f"[Active: {store.active_conversation.title}]")
        else:
            print(f"[No conversation {rest!r}]")
    elif cmd == "/pin":
        target = rest or store.active_conversation_id
        if target and store.toggle_pinned(target):
            print("[Pinned]" if store.get(target).is_pinned else "[Unpinned]")
        else:
            print(f"[No conversation {target!r}]")
    elif cmd == "/doc":
        active = store.active_conversation
        if active is None:
            print("[No active conversation]")
        else:
            print(active.document_content or "(empty)")
    elif cmd == "/edit":
        message_id, _, text = rest.partition(" ")
        active_id = store.active_conversation_id
        if active_id is None or not text.strip():
            print("[Usage: /edit <message id> <new text>]")
            return
        turn = await orchestrator.resend_edited(active_id, message_id, text)
        if turn is None:
            print(f"[Cannot edit {message_id!r}]")
        elif turn.assistant_message is not None:
            print(f"Another I: {turn.assistant_message.content}\n")
    else:
        print(f"[Unknown command {cmd}] Type /help.")


# -----------------------------
# one-shot subcommands
# -----------------------------

def _resolve_folder(store: ConversationStore, name_or_id: Optional[str]) -> str:
    if not name_or_id:
        return store.folders[0].id
    for folder in store.folders:
        if name_or_id in (folder.id, folder.name):
            return folder.id
    return store.create_folder(name_or_id)


def cmd_import(args: argparse.Namespace, repo: StateRepository, store: ConversationStore) -> int:
    try:
        result = load_export_file(args.file)
    except ImportFormatError as e:
        print(f"Import failed: {e}", file=sys.stderr)
        return 1

    if not result.conversations:
        print(f"Nothing to import (skipped {result.skipped_count}).")
        return 0

    folder_id = _resolve_folder(store, args.folder)
    store.import_conversations(result.conversations, folder_id)
    print(f"Imported {result.imported_count} conversation(s), skipped {result.skipped_count}.")
    for err in result.errors:
        print(f"  skipped: {err}")
    return 0


def cmd_export(args: argparse.Namespace, repo: StateRepository, store: ConversationStore) -> int:
    content, filename, _mime = export(
        store.folders,
        store.active_conversation,
        ExportFormat(args.format),
        ExportScope(args.scope),
    )
    out = Path(args.out) if args.out else Path.cwd() / filename
    out.write_text(content, encoding="utf-8")
    print(f"Exported to {out}")
    return 0


def cmd_search(args: argparse.Namespace, repo: StateRepository, store: ConversationStore) -> int:
    results = search(store.folders, args.query)
    if not results:
        print("No results.")
        return 0
    for r in results:
        where = r.conversation_title if r.type == "conversation" else f"{r.conversation_title} #{r.message_index}"
        print(f"[{r.folder_name}] {where} ({r.conversation_id})")
        print(f"    {r.highlight}")
    return 0


def cmd_settings(args: argparse.Namespace, repo: StateRepository, client: LLMClient) -> int:
    if args.clear:
        repo.clear_ai_settings()
        print("AI settings cleared; running in demo mode.")
        return 0

    if args.provider:
        if not args.api_key:
            print("--api-key is required with --provider", file=sys.stderr)
            return 2
        settings = client.configure_provider(AIProvider(args.provider), args.api_key)
        if args.model:
            settings = replace(settings, model=args.model)
        repo.save_ai_settings(settings)
        print(f"Configured {settings.provider.value} / {settings.model}")
        return 0

    current = repo.load_ai_settings()
    if not is_configured(current):
        print("Not configured (demo mode).")
    else:
        print(f"provider={current.provider.value} model={current.model} api_key={_mask(current.api_key)}")
    return 0


def cmd_layout(args: argparse.Namespace, repo: StateRepository) -> int:
    if args.mode:
        repo.save_layout(LayoutMode(args.mode))
    print(repo.load_layout().value)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    uvicorn.run("another_i.api.server:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="another-i", description="Another I: think out loud with an AI partner.")
    p.add_argument("--db", default=None, help="Path to the sqlite state file (default: ANOTHER_I_DB_PATH).")
    sub = p.add_subparsers(dest="command")

    sub.add_parser("chat", help="Interactive chat (default).")

    imp = sub.add_parser("import", help="Import a ChatGPT conversations.json export.")
    imp.add_argument("file", help="Path to conversations.json")
    imp.add_argument("--folder", default=None, help="Target folder id or name (created if missing).")

    exp = sub.add_parser("export", help="Export conversations.")
    exp.add_argument("--format", default=ExportFormat.MARKDOWN.value, choices=[f.value for f in ExportFormat])
    exp.add_argument("--scope", default=ExportScope.CURRENT.value, choices=[s.value for s in ExportScope])
    exp.add_argument("--out", default=None, help="Output file (default: generated name in cwd).")

    srch = sub.add_parser("search", help="Search titles and messages.")
    srch.add_argument("query")

    st = sub.add_parser("settings", help="Configure the AI provider.")
    st.add_argument("--provider", choices=[pr.value for pr in AIProvider])
    st.add_argument("--api-key", default=None)
    st.add_argument("--model", default=None, help="Override the default (first listed) model.")
    st.add_argument("--clear", action="store_true", help="Forget the provider and return to demo mode.")

    srv = sub.add_parser("serve", help="Run the HTTP API (FastAPI via uvicorn).")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    lay = sub.add_parser("layout", help="Show or set the preferred layout.")
    lay.add_argument("mode", nargs="?", choices=[m.value for m in LayoutMode])
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    repo, store, writer = open_state(args.db)
    client = LLMClient()

    command = args.command or "chat"
    logger.info("CLI command=%s", command)

    if command == "chat":
        asyncio.run(run_chat(repo, store, writer, client))
        return 0
    if command == "import":
        return cmd_import(args, repo, store)
    if command == "export":
        return cmd_export(args, repo, store)
    if command == "search":
        return cmd_search(args, repo, store)
    if command == "settings":
        return cmd_settings(args, repo, client)
    if command == "serve":
        return cmd_serve(args)
    return cmd_layout(args, repo)


if __name__ == "__main__":
    sys.exit(main())
