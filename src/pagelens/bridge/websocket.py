"""WebSocket bridge between the background service and browser tabs.

Each tab's extension page connects and introduces itself::

    {"type": "hello", "tabId": 12, "url": "https://example.com/article"}

After that the connection carries two kinds of traffic:

- requests from the service to the tab, ``{"requestId", "action", ...}``,
  answered by ``{"requestId", "status", ...}``
- requests from the tab to the service (popup actions such as
  ``summarize``), ``{"requestId", "action", ...}``, answered the same way
"""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import websockets

from pagelens.bridge.channel import Channel
from pagelens.bridge.protocol import error
from pagelens.errors import ChannelError

logger = logging.getLogger(__name__)

Message = Dict[str, Any]
CommandHandler = Callable[[Message], Awaitable[Message]]
TabCallback = Callable[[int, str, Channel], None]


@dataclass
class TabConnection:
    """One connected tab."""
    tab_id: int
    url: str
    websocket: Any
    pending: Dict[str, asyncio.Future] = field(default_factory=dict)


class WebSocketChannel(Channel):
    """Channel to a single tab over the bridge."""

    def __init__(self, bridge: "WebSocketBridge", tab_id: int):
        self._bridge = bridge
        self.tab_id = tab_id

    async def _send(self, message: Message) -> Message:
        return await self._bridge.send_request(self.tab_id, message)


class WebSocketBridge:
    """WebSocket server for extension tabs."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9876,
        command_handler: Optional[CommandHandler] = None,
        on_tab_connected: Optional[TabCallback] = None,
        on_tab_disconnected: Optional[Callable[[int], None]] = None,
    ):
        self.host = host
        self.port = port
        self.command_handler = command_handler
        self.on_tab_connected = on_tab_connected
        self.on_tab_disconnected = on_tab_disconnected
        self._server = None
        self._tabs: Dict[int, TabConnection] = {}
        self._tasks: Set[asyncio.Task] = set()

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Start listening; ``port=0`` picks a free port."""
        self._server = await websockets.serve(self._handle_client, self.host, self.port)
        sockets = list(getattr(self._server, "sockets", None) or [])
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("[Bridge] WebSocket server started on ws://%s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        for conn in list(self._tabs.values()):
            self._fail_pending(conn, "bridge stopped")
        self._tabs.clear()
        logger.info("[Bridge] WebSocket server stopped")

    @property
    def is_running(self) -> bool:
        return self._server is not None

    # ── Tabs ─────────────────────────────────────────────────────

    def tab_ids(self) -> List[int]:
        return list(self._tabs)

    def has_tab(self, tab_id: int) -> bool:
        return tab_id in self._tabs

    def tab_url(self, tab_id: int) -> Optional[str]:
        conn = self._tabs.get(tab_id)
        return conn.url if conn else None

    def channel_for(self, tab_id: int) -> WebSocketChannel:
        return WebSocketChannel(self, tab_id)

    # ── Requests to tabs ─────────────────────────────────────────

    async def send_request(self, tab_id: int, message: Message) -> Message:
        conn = self._tabs.get(tab_id)
        if conn is None:
            raise ChannelError(f"No connection for tab {tab_id}")

        request_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        conn.pending[request_id] = future
        try:
            await conn.websocket.send(json.dumps({**message, "requestId": request_id}))
            return await future
        finally:
            conn.pending.pop(request_id, None)

    # ── Connection handling ──────────────────────────────────────

    async def _handle_client(self, websocket) -> None:
        conn: Optional[TabConnection] = None
        try:
            async for raw in websocket:
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    await websocket.send(json.dumps(error("Invalid JSON")))
                    continue
                if not isinstance(data, dict):
                    await websocket.send(json.dumps(error("Expected a JSON object")))
                    continue

                if data.get("type") == "hello":
                    conn = self._register(websocket, data)
                    await websocket.send(json.dumps({"type": "welcome", "tabId": conn.tab_id}))
                elif "action" in data:
                    task = asyncio.create_task(self._serve_request(websocket, data))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                elif "requestId" in data and conn is not None:
                    self._resolve(conn, data)
                else:
                    await websocket.send(json.dumps(error("Unexpected message")))
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if conn is not None:
                self._unregister(conn)

    def _register(self, websocket, data: Message) -> TabConnection:
        tab_id = int(data.get("tabId") or 0)
        url = str(data.get("url") or "")
        old = self._tabs.get(tab_id)
        if old is not None:
            self._fail_pending(old, "tab reconnected")
        conn = TabConnection(tab_id=tab_id, url=url, websocket=websocket)
        self._tabs[tab_id] = conn
        logger.info("[Bridge] Tab %s connected (%s)", tab_id, url)
        if self.on_tab_connected is not None:
            self.on_tab_connected(tab_id, url, self.channel_for(tab_id))
        return conn

    def _unregister(self, conn: TabConnection) -> None:
        if self._tabs.get(conn.tab_id) is conn:
            del self._tabs[conn.tab_id]
            if self.on_tab_disconnected is not None:
                self.on_tab_disconnected(conn.tab_id)
        self._fail_pending(conn, "tab disconnected")
        logger.info("[Bridge] Tab %s disconnected", conn.tab_id)

    @staticmethod
    def _resolve(conn: TabConnection, data: Message) -> None:
        request_id = str(data.pop("requestId"))
        future = conn.pending.get(request_id)
        if future is None or future.done():
            logger.debug("[Bridge] Late or unknown response %s", request_id)
            return
        future.set_result(data)

    @staticmethod
    def _fail_pending(conn: TabConnection, reason: str) -> None:
        for future in conn.pending.values():
            if not future.done():
                future.set_exception(ChannelError(reason))
        conn.pending.clear()

    async def _serve_request(self, websocket, data: Message) -> None:
        request_id = data.pop("requestId", None)
        if self.command_handler is None:
            response = error("No command handler")
        else:
            try:
                response = await self.command_handler(data)
            except Exception as e:
                logger.error("[Bridge] Command %s failed: %s", data.get("action"), e)
                response = error(str(e))
        if request_id is not None:
            response = {**response, "requestId": request_id}
        try:
            await websocket.send(json.dumps(response))
        except websockets.exceptions.ConnectionClosed:
            logger.debug("[Bridge] Client gone before response to %s", data.get("action"))
