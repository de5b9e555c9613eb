"""Integration tests for the WebSocket bridge (open a local socket)."""

import asyncio
import json

import pytest
import websockets

from pagelens.bridge.protocol import ok
from pagelens.bridge.websocket import WebSocketBridge
from pagelens.errors import ChannelError

pytestmark = pytest.mark.integration


async def _start_bridge(**kwargs):
    bridge = WebSocketBridge(host="127.0.0.1", port=0, **kwargs)
    await bridge.start()
    return bridge, f"ws://127.0.0.1:{bridge.port}"


async def _hello(ws, tab_id=3, url="https://example.com"):
    await ws.send(json.dumps({"type": "hello", "tabId": tab_id, "url": url}))
    return json.loads(await ws.recv())


class TestWebSocketBridge:

    @pytest.mark.asyncio
    async def test_hello_registers_tab(self):
        connected = []
        bridge, uri = await _start_bridge(on_tab_connected=lambda t, u, c: connected.append((t, u)))
        try:
            async with websockets.connect(uri) as ws:
                welcome = await _hello(ws)
                assert welcome == {"type": "welcome", "tabId": 3}
                assert bridge.has_tab(3)
                assert bridge.tab_url(3) == "https://example.com"
                assert connected == [(3, "https://example.com")]
        finally:
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_request_to_tab(self):
        channels = []
        bridge, uri = await _start_bridge(on_tab_connected=lambda t, u, c: channels.append(c))
        try:
            async with websockets.connect(uri) as ws:
                await _hello(ws)
                pending = asyncio.create_task(channels[0].request({"action": "extract_page"}, timeout=5))

                incoming = json.loads(await ws.recv())
                assert incoming["action"] == "extract_page"
                await ws.send(json.dumps({"requestId": incoming["requestId"], **ok(text="page text")}))

                assert await pending == {"status": "ok", "text": "page text"}
        finally:
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_request_from_tab(self):
        async def handler(message):
            return ok(echo=message["action"])

        bridge, uri = await _start_bridge(command_handler=handler)
        try:
            async with websockets.connect(uri) as ws:
                await _hello(ws)
                await ws.send(json.dumps({"requestId": "r1", "action": "summarize", "tabId": 3}))
                reply = json.loads(await ws.recv())
                assert reply == {"status": "ok", "echo": "summarize", "requestId": "r1"}
        finally:
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_invalid_json_gets_error(self):
        bridge, uri = await _start_bridge()
        try:
            async with websockets.connect(uri) as ws:
                await ws.send("{nope")
                reply = json.loads(await ws.recv())
                assert reply["status"] == "error"
        finally:
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_disconnect_fails_pending_requests(self):
        channels, gone = [], []
        bridge, uri = await _start_bridge(
            on_tab_connected=lambda t, u, c: channels.append(c),
            on_tab_disconnected=gone.append,
        )
        try:
            ws = await websockets.connect(uri)
            await _hello(ws)
            pending = asyncio.create_task(channels[0].request({"action": "extract_page"}))
            await ws.recv()
            await ws.close()

            with pytest.raises(ChannelError):
                await asyncio.wait_for(pending, timeout=5)
            assert gone == [3]
            assert not bridge.has_tab(3)
        finally:
            await bridge.stop()

    @pytest.mark.asyncio
    async def test_unknown_tab(self):
        bridge, _ = await _start_bridge()
        try:
            with pytest.raises(ChannelError):
                await bridge.channel_for(42).request({"action": "extract_page"})
        finally:
            await bridge.stop()
