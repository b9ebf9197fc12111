"""
Pytest fixtures dùng chung:
- FakeWebSocketApp / ws_factory: thay websocket.WebSocketApp, kịch bản handshake theo từng instance
- FakeTimer / timers: thay threading.Timer để bắn reconnect bằng tay
- ScriptedConnection: connection giả cho pagination engine, server giả trả lời đồng bộ
"""
import json
from collections import deque

import pytest
from websocket import WebSocketConnectionClosedException

from ws_client.tradingview.dispatcher import EventDispatcher
from ws_client.tradingview.events import ApplicationEvent
from ws_client.tradingview.protocol import frame_wrap

SESSION_FRAME = frame_wrap("~j~" + json.dumps({"session_id": "<0.1.2>_abc", "timestamp": 1700000000}))


def make_bar(ts, price=100.0, i=0, volume=10):
    return {"i": i, "v": [ts, price, price + 1, price - 1, price + 0.5, volume]}


def make_bars(timestamps, price=100.0):
    return [make_bar(ts, price, i) for i, ts in enumerate(timestamps)]


class FakeWebSocketApp:
    def __init__(self, url, header=None, on_open=None, on_message=None, on_error=None,
                 on_close=None, behaviour="handshake"):
        self.url = url
        self.header = header or []
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.behaviour = behaviour
        self.sent = []
        self.closed = False

    def run_forever(self):
        if self.behaviour == "handshake":
            self.on_open(self)
            self.on_message(self, SESSION_FRAME)
        elif self.behaviour == "silent":
            self.on_open(self)
        elif self.behaviour == "refused":
            self.closed = True
            self.on_error(self, ConnectionRefusedError("refused"))
            self.on_close(self, None, None)

    def send(self, data):
        if self.closed:
            raise WebSocketConnectionClosedException("socket is already closed.")
        self.sent.append(data)

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.on_close(self, 1000, "normal")

    # ---- test helpers ----
    def receive(self, raw):
        self.on_message(self, raw)

    def drop(self):
        self.closed = True
        self.on_close(self, 1006, "connection lost")


class WsFactory:
    def __init__(self):
        self.instances = []
        self.behaviours = deque()

    def __call__(self, url, **kwargs):
        behaviour = self.behaviours.popleft() if self.behaviours else "handshake"
        ws = FakeWebSocketApp(url, behaviour=behaviour, **kwargs)
        self.instances.append(ws)
        return ws


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class TimerFactory:
    def __init__(self):
        self.created = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer


class ScriptedConnection:
    """Connection giả: ghi lại lệnh gửi, responder(conn, name, params) đóng vai server."""

    def __init__(self, responder=None):
        self.sent = []
        self.connected = True
        self.responder = responder
        self._events = EventDispatcher()
        self._close = EventDispatcher()
        self._drop = EventDispatcher()

    def subscribe(self, handler):
        return self._events.subscribe(handler)

    def subscribe_close(self, handler):
        return self._close.subscribe(handler)

    def subscribe_drop(self, handler):
        return self._drop.subscribe(handler)

    def is_connected(self):
        return self.connected

    def send(self, name, params):
        if not self.connected:
            return False
        self.sent.append((name, list(params)))
        if self.responder is not None:
            self.responder(self, name, params)
        return True

    def close(self):
        self.connected = False
        self._close.dispatch(self)

    def drop(self):
        """Transport rớt, connection đang chờ reconnect."""
        self.connected = False
        self._drop.dispatch(self)

    # ---- server side ----
    def emit(self, name, params):
        self._events.dispatch(ApplicationEvent(name, params))

    def push(self, cs, bars, series_id="sds_1"):
        self.emit("timescale_update", [cs, {series_id: {"s": bars, "ns": {"d": "", "indexes": []}, "t": "s1"}}])

    def complete(self, cs, series_id="sds_1"):
        self.emit("series_completed", [cs, series_id, "streaming", "s1"])

    def commands(self, name):
        return [p for n, p in self.sent if n == name]

    @property
    def subscriber_count(self):
        return len(self._events)


@pytest.fixture
def ws_factory():
    return WsFactory()


@pytest.fixture
def timers():
    return TimerFactory()


class DiagnosticsLog(list):
    def __call__(self, diag):
        self.append(diag)

    @property
    def kinds(self):
        return [d.kind for d in self]


@pytest.fixture
def diagnostics():
    return DiagnosticsLog()
