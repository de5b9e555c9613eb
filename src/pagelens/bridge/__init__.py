"""Cross-context messaging: protocol, channels and the WebSocket bridge."""

from pagelens.bridge.channel import Channel, ClosedChannel, LocalChannel
from pagelens.bridge.protocol import Action, Dispatcher, error, is_ok, ok, request
from pagelens.bridge.websocket import WebSocketBridge, WebSocketChannel

__all__ = [
    "Action",
    "Channel",
    "ClosedChannel",
    "Dispatcher",
    "LocalChannel",
    "WebSocketBridge",
    "WebSocketChannel",
    "error",
    "is_ok",
    "ok",
    "request",
]
