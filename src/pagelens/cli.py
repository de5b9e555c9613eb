"""pagelens command line.

Usage::

    pagelens summarize article.html --html --out highlighted.html
    pagelens ask article.txt "Who wrote this?"
    pagelens history https://example.com/article --limit 5
    pagelens show https://example.com/article
    pagelens mock on|off|status
    pagelens clear
    pagelens serve                  # WebSocket bridge for the extension
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pagelens.bridge.channel import LocalChannel
from pagelens.bridge.protocol import Action, request
from pagelens.bridge.websocket import WebSocketBridge
from pagelens.config import Settings, load_settings
from pagelens.content import ContentAgent, PageWorld
from pagelens.dom.tree import Document, document_from_text, parse_html
from pagelens.errors import PageLensError
from pagelens.events import EventBus
from pagelens.llm.rest import RestModelService
from pagelens.orchestrator import ModelOrchestrator
from pagelens.service import BackgroundService, Tab
from pagelens.storage import JsonFileStore, KeyValueStore, MemoryStore, PageStore

logger = logging.getLogger(__name__)

MEMORY_STORE = ":memory:"
LOCAL_TAB_ID = 1


def _configure_logging(settings: Settings, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _make_store(args: argparse.Namespace, settings: Settings, bus: EventBus) -> PageStore:
    backend: KeyValueStore
    if args.store == MEMORY_STORE:
        backend = MemoryStore(event_bus=bus)
    else:
        path = Path(args.store) if args.store else settings.resolved_store_path
        backend = JsonFileStore(path, event_bus=bus)
    return PageStore(backend)


def _load_document(path: Path, as_html: bool) -> Document:
    text = path.read_text(encoding="utf-8")
    if as_html or path.suffix.lower() in {".html", ".htm"}:
        return parse_html(text)
    return document_from_text(text)


class LocalSession:
    """Wires one document to the background service in-process."""

    def __init__(self, document: Document, url: str, store: PageStore, settings: Settings, bus: EventBus):
        self.document = document
        self.store = store
        self.settings = settings
        on_device = RestModelService(settings.model_url) if settings.model_url else None
        self.agent = ContentAgent(document, url, store, settings)
        self.world = PageWorld(document)
        self.service = BackgroundService(
            ModelOrchestrator(on_device=on_device, settings=settings, event_bus=bus),
            store,
            settings,
            event_bus=bus,
        )
        self.service.register_tab(Tab(
            tab_id=LOCAL_TAB_ID,
            url=url,
            content=LocalChannel(self.agent.dispatch, "content"),
            page=LocalChannel(self.world.dispatch, "page"),
        ))

    async def mock_enabled(self, forced: bool) -> bool:
        if forced or self.settings.force_mock:
            return True
        return await self.store.get_mock_mode()


def _open_session(args: argparse.Namespace, settings: Settings) -> LocalSession:
    path = Path(args.file)
    document = _load_document(path, args.html)
    url = args.url or path.resolve().as_uri()
    bus = EventBus()
    return LocalSession(document, url, _make_store(args, settings, bus), settings, bus)


# =============================================================================
# Commands
# =============================================================================

async def _cmd_summarize(args: argparse.Namespace, settings: Settings) -> int:
    session = _open_session(args, settings)
    mock = await session.mock_enabled(args.mock)
    await session.agent.sync_mock_banner()
    response = await session.service.dispatch(
        request(Action.SUMMARIZE, tabId=LOCAL_TAB_ID, mock=mock)
    )
    if response.get("status") != "ok":
        print(f"Error: {response.get('message')}", file=sys.stderr)
        return 1

    print("Summary:")
    for bullet in response.get("bullets") or []:
        print(f"  - {bullet}")
    highlights = response.get("highlights") or []
    if highlights:
        print("\nHighlights:")
        for sentence in highlights:
            print(f"  * {sentence}")
    print(f"\nSource: {response.get('source')}")

    if args.out:
        Path(args.out).write_text(session.document.to_html(), encoding="utf-8")
        print(f"Highlighted page written to {args.out}")
    return 0


async def _cmd_ask(args: argparse.Namespace, settings: Settings) -> int:
    session = _open_session(args, settings)
    mock = await session.mock_enabled(args.mock)
    response = await session.service.dispatch(
        request(Action.ASK, tabId=LOCAL_TAB_ID, question=args.question, mock=mock)
    )
    if response.get("status") != "ok":
        print(f"Error: {response.get('message')}", file=sys.stderr)
        return 1
    print(response.get("answer"))
    print(f"\nSource: {response.get('source')}")
    return 0


async def _cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    store = _make_store(args, settings, EventBus())
    entries = await store.get_history(args.url, limit=args.limit)
    if not entries:
        print("No questions asked on this page yet.")
        return 0
    for entry in reversed(entries):
        print(f"Q: {entry.question}")
        print(f"A: {entry.answer}  [{entry.source_tier.value}]")
        print()
    return 0


async def _cmd_show(args: argparse.Namespace, settings: Settings) -> int:
    store = _make_store(args, settings, EventBus())
    data = await store.load_summary(args.url)
    if data is None:
        print("No summary stored for this page.")
        return 1
    for bullet in data.summary:
        print(f"  - {bullet}")
    if data.highlights:
        print("\nHighlights:")
        for sentence in data.highlights:
            print(f"  * {sentence}")
    return 0


async def _cmd_clear(args: argparse.Namespace, settings: Settings) -> int:
    store = _make_store(args, settings, EventBus())
    await store.clear()
    print("All stored data cleared.")
    return 0


async def _cmd_mock(args: argparse.Namespace, settings: Settings) -> int:
    store = _make_store(args, settings, EventBus())
    if args.state == "status":
        enabled = await store.get_mock_mode()
    else:
        enabled = args.state == "on"
        await store.set_mock_mode(enabled)
    print(f"Mock mode: {'on' if enabled else 'off'}")
    return 0


async def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    bus = EventBus()
    store = _make_store(args, settings, bus)
    on_device = RestModelService(settings.model_url) if settings.model_url else None
    service = BackgroundService(
        ModelOrchestrator(on_device=on_device, settings=settings, event_bus=bus),
        store,
        settings,
        event_bus=bus,
    )

    def on_connected(tab_id, url, channel):
        # The extension routes content and page actions over one socket.
        service.register_tab(Tab(tab_id=tab_id, url=url, content=channel, page=channel))

    bridge = WebSocketBridge(
        host=args.host or settings.bridge_host,
        port=args.port if args.port is not None else settings.bridge_port,
        command_handler=service.dispatch,
        on_tab_connected=on_connected,
        on_tab_disconnected=service.unregister_tab,
    )
    await bridge.start()
    print(f"pagelens bridge listening on ws://{bridge.host}:{bridge.port} (Ctrl+C to stop)")
    try:
        await asyncio.Event().wait()
    finally:
        await bridge.stop()
    return 0


COMMANDS = {
    "summarize": _cmd_summarize,
    "ask": _cmd_ask,
    "history": _cmd_history,
    "show": _cmd_show,
    "clear": _cmd_clear,
    "mock": _cmd_mock,
    "serve": _cmd_serve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagelens",
        description="Summarize web pages, answer questions about them and highlight key sentences",
    )
    parser.add_argument("--store", default=None, help=f"Store file (default: XDG data dir; {MEMORY_STORE} for none)")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    summarize_p = sub.add_parser("summarize", help="Summarize a page and highlight key sentences")
    summarize_p.add_argument("file", help="Text or HTML file")
    summarize_p.add_argument("--url", default=None, help="Page URL (default: file URI)")
    summarize_p.add_argument("--html", action="store_true", help="Parse the file as HTML")
    summarize_p.add_argument("--mock", action="store_true", help="Return simulated content")
    summarize_p.add_argument("--out", default=None, help="Write the highlighted HTML here")

    ask_p = sub.add_parser("ask", help="Answer a question about a page")
    ask_p.add_argument("file", help="Text or HTML file")
    ask_p.add_argument("question", help="Question to answer")
    ask_p.add_argument("--url", default=None, help="Page URL (default: file URI)")
    ask_p.add_argument("--html", action="store_true", help="Parse the file as HTML")
    ask_p.add_argument("--mock", action="store_true", help="Return a simulated answer")

    history_p = sub.add_parser("history", help="Show recent questions for a page")
    history_p.add_argument("url", help="Page URL")
    history_p.add_argument("--limit", type=int, default=5, help="Entries to show (default: 5)")

    show_p = sub.add_parser("show", help="Show the stored summary for a page")
    show_p.add_argument("url", help="Page URL")

    sub.add_parser("clear", help="Remove all stored data")

    mock_p = sub.add_parser("mock", help="Set or show mock mode")
    mock_p.add_argument("state", choices=["on", "off", "status"], nargs="?", default="status")

    serve_p = sub.add_parser("serve", help="Run the WebSocket bridge for the browser extension")
    serve_p.add_argument("--host", default=None, help="Bind host (default: from config)")
    serve_p.add_argument("--port", type=int, default=None, help="Bind port (default: from config)")

    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(Path(args.config) if args.config else None)
    _configure_logging(settings, args.verbose)

    handler = COMMANDS.get(args.command or "")
    if handler is None:
        parser.print_help()
        return 1

    try:
        return asyncio.run(handler(args, settings))
    except KeyboardInterrupt:
        print()
        return 0
    except (OSError, PageLensError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
