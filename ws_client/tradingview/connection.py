# ws_client/tradingview/connection.py
"""
Kết nối WebSocket tới TradingView (1 kết nối vật lý / 1 client):
- open: lấy auth_token (nếu có sessionid), mở WS, chờ frame session_id (tối đa 30s)
- frame session -> gửi set_auth_token, chuyển CONNECTED
- heartbeat ~h~ -> echo ngay
- mất kết nối -> reconnect bằng Timer huỷ được, backoff min(5000 * 1.5^n, 60000) ms
- close: tắt reconnect, đóng WS, chờ xác nhận đóng

Vòng đời:
  DISCONNECTED -> CONNECTING -> AWAITING_SESSION -> CONNECTED
  -> (CLOSING | RECONNECTING) -> DISCONNECTED ; CLOSED chỉ qua close()
"""
from __future__ import annotations

import datetime as dt
import enum
import logging
import threading
from typing import Callable, Optional
from urllib.parse import urlencode

import websocket
from websocket import WebSocketException

from .auth import get_auth_token
from .config import (
    CLOSE_TIMEOUT_S, CONNECT_TIMEOUT_S, CONNECTION_TYPES, DEFAULT_CONNECTION_TYPE,
    DEFAULT_ENDPOINT, HOSTS, RECONNECT_BASE_MS, RECONNECT_FACTOR, RECONNECT_MAX_MS,
    UNAUTHORIZED_TOKEN, WS_HEADERS,
)
from .dispatcher import EventDispatcher, Handler, Unsubscribe
from .errors import (
    ConnectTimeout, DiagnosticSink, TradingViewError, TVConnectionError, report,
)
from .events import ApplicationEvent
from .protocol import FrameKind, decode, encode

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_SESSION = "awaiting_session"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSING = "closing"
    CLOSED = "closed"


def reconnect_delay_ms(attempts: int) -> float:
    return min(RECONNECT_BASE_MS * RECONNECT_FACTOR ** attempts, RECONNECT_MAX_MS)


def prepare_url(endpoint: str = DEFAULT_ENDPOINT, connection_type: str = DEFAULT_CONNECTION_TYPE,
                now: Optional[dt.datetime] = None) -> str:
    if endpoint not in HOSTS:
        raise ValueError(f"Unknown endpoint: {endpoint}")
    if connection_type not in CONNECTION_TYPES:
        raise ValueError(f"Unknown connection type: {connection_type}")
    now = now or dt.datetime.now(dt.timezone.utc)
    query = urlencode({"from": "/chart/", "date": now.strftime("%Y-%m-%d"), "type": connection_type})
    return f"wss://{HOSTS[endpoint]}/socket.io/websocket?{query}"


class TradingViewConnection:
    """
    Handle kết nối dùng chung cho nhiều fetch: subscribe / send / close / is_connected.
    Reconnect trong suốt với người giữ handle; send lúc mất kết nối bị bỏ (log cảnh báo).
    """

    def __init__(self, session_id: Optional[str] = None, endpoint: str = DEFAULT_ENDPOINT,
                 connection_type: str = DEFAULT_CONNECTION_TYPE, auto_reconnect: bool = True,
                 connect_timeout_s: float = CONNECT_TIMEOUT_S,
                 diagnostics: Optional[DiagnosticSink] = None,
                 ws_factory: Optional[Callable[..., websocket.WebSocketApp]] = None,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer):
        prepare_url(endpoint, connection_type)

        self.session_id = session_id
        self.endpoint = endpoint
        self.connection_type = connection_type
        self.auto_reconnect = auto_reconnect
        self.connect_timeout_s = connect_timeout_s
        self.diagnostics = diagnostics
        self.ws_factory = ws_factory or websocket.WebSocketApp
        self.timer_factory = timer_factory

        self.state = ConnectionState.DISCONNECTED
        self.token = UNAUTHORIZED_TOKEN
        self.reconnect_attempts = 0

        self._lock = threading.RLock()
        self._ws = None
        self._thread: Optional[threading.Thread] = None
        self._reconnect_timer = None
        self._manual_close = False
        self._handshake: Optional[threading.Event] = None
        self._connect_error: Optional[BaseException] = None
        self._transport_closed = threading.Event()
        self._transport_closed.set()
        self._close_notified = False

        self._events = EventDispatcher(diagnostics)
        self._close_listeners = EventDispatcher(diagnostics)
        self._drop_listeners = EventDispatcher(diagnostics)

    # ---- public ----
    def open(self) -> "TradingViewConnection":
        with self._lock:
            if self.state is ConnectionState.CLOSED:
                raise TVConnectionError("Connection already closed")
            if self._handshake is not None:
                raise TradingViewError("Handshake already in flight")
            if self.state is ConnectionState.CONNECTED:
                return self
            handshake = self._handshake = threading.Event()
            self._connect_error = None
            self._close_notified = False

        try:
            self._resolve_token()
            self._start_transport()
            if not handshake.wait(self.connect_timeout_s):
                raise ConnectTimeout(f"Timeout connecting to TradingView after {self.connect_timeout_s}s")
            err = self._connect_error
            if err is not None:
                cause = err if isinstance(err, BaseException) else None
                raise TVConnectionError(f"Failed to connect to TradingView: {err}") from cause
        except TradingViewError:
            with self._lock:
                self._handshake = None
            self.close()
            raise
        with self._lock:
            self._handshake = None
        return self

    def subscribe(self, handler: Handler) -> Unsubscribe:
        return self._events.subscribe(handler)

    def subscribe_close(self, handler: Handler) -> Unsubscribe:
        """handler(connection) khi kết nối không dùng được nữa (close() hoặc rớt mà không reconnect)."""
        return self._close_listeners.subscribe(handler)

    def subscribe_drop(self, handler: Handler) -> Unsubscribe:
        """handler(connection) mỗi lần transport rớt ngoài ý muốn (kể cả khi sẽ reconnect)."""
        return self._drop_listeners.subscribe(handler)

    def send(self, name: str, params: list) -> bool:
        with self._lock:
            ws = self._ws if self.state is ConnectionState.CONNECTED else None
        if ws is None:
            report(self.diagnostics, logger, "send_dropped",
                   f"socket not connected, dropping {name}", command=name)
            return False
        logger.debug("-> %s %s", name, params)
        return self._write(ws, encode(name, params), name)

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def close(self, timeout_s: float = CLOSE_TIMEOUT_S) -> None:
        with self._lock:
            if self.state is ConnectionState.CLOSED:
                return
            self._manual_close = True
            self.state = ConnectionState.CLOSING
            timer, self._reconnect_timer = self._reconnect_timer, None
            ws = self._ws
            if self._handshake is not None:
                self._connect_error = TVConnectionError("Connection closed during handshake")
                self._handshake.set()

        if timer is not None:
            timer.cancel()
        if ws is not None and not self._transport_closed.is_set():
            try:
                ws.close()
            except (WebSocketException, OSError) as e:
                logger.warning("Error closing WebSocket: %s", e)
            if not self._transport_closed.wait(timeout_s):
                logger.warning("WebSocket did not confirm close within %ss", timeout_s)

        with self._lock:
            self.state = ConnectionState.CLOSED
        logger.info("Connection closed")
        self._notify_closed()

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ---- transport ----
    def _resolve_token(self) -> None:
        if self.session_id:
            self.token = get_auth_token(self.session_id, diagnostics=self.diagnostics)
        else:
            self.token = UNAUTHORIZED_TOKEN

    def _headers(self) -> list:
        headers = list(WS_HEADERS)
        if self.session_id:
            headers.append(f"Cookie: sessionid={self.session_id}")
        return headers

    def _start_transport(self) -> None:
        url = prepare_url(self.endpoint, self.connection_type)
        with self._lock:
            self.state = ConnectionState.CONNECTING
            self._transport_closed.clear()
            ws = self.ws_factory(
                url,
                header=self._headers(),
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close,
            )
            self._ws = ws
            logger.debug("Connecting to %s", url)
            self._thread = threading.Thread(target=ws.run_forever, name="tradingview-ws", daemon=True)
            self._thread.start()

    def _write(self, ws, data: str, what: str) -> bool:
        try:
            ws.send(data)
            return True
        except (WebSocketException, OSError) as e:
            report(self.diagnostics, logger, "send_dropped", f"send {what} failed: {e}", command=what)
            return False

    def _schedule_reconnect(self) -> None:
        # gọi trong self._lock
        delay_ms = reconnect_delay_ms(self.reconnect_attempts)
        self.reconnect_attempts += 1
        self.state = ConnectionState.RECONNECTING
        timer = self.timer_factory(delay_ms / 1000.0, self._reconnect)
        timer.daemon = True
        self._reconnect_timer = timer
        timer.start()
        report(self.diagnostics, logger, "reconnect_scheduled",
               f"reconnecting in {delay_ms:.0f}ms (attempt {self.reconnect_attempts})",
               delay_ms=delay_ms, attempt=self.reconnect_attempts)

    def _reconnect(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if self._manual_close:
                return
        self._resolve_token()
        with self._lock:
            if self._manual_close:
                return
            self._start_transport()

    def _notify_closed(self) -> None:
        with self._lock:
            if self._close_notified:
                return
            self._close_notified = True
        self._close_listeners.dispatch(self)

    # ---- ws callbacks ----
    def _on_open(self, ws):
        with self._lock:
            if ws is not self._ws:
                return
            self.state = ConnectionState.AWAITING_SESSION
            self.reconnect_attempts = 0
        logger.debug("Socket open")

    def _on_message(self, ws, message):
        if ws is not self._ws:
            return
        for frame in decode(message, self.diagnostics):
            if frame.kind is FrameKind.HEARTBEAT:
                self._write(ws, frame.reply, "heartbeat")
            elif frame.kind is FrameKind.SESSION:
                self._on_session(ws)
            elif frame.name:
                self._events.dispatch(ApplicationEvent(frame.name, frame.params))

    def _on_session(self, ws):
        self._write(ws, encode("set_auth_token", [self.token]), "set_auth_token")
        with self._lock:
            self.state = ConnectionState.CONNECTED
            handshake = self._handshake
        logger.info("Session established (%s)", self.endpoint)
        if handshake is not None:
            handshake.set()

    def _on_error(self, ws, error):
        report(self.diagnostics, logger, "transport_error", f"WebSocket error: {error}")
        with self._lock:
            if ws is not self._ws:
                return
            if self._handshake is not None and self.state is not ConnectionState.CONNECTED:
                self._connect_error = error
                self._handshake.set()

    def _on_close(self, ws, code=None, msg=None):
        permanent = False
        dropped = False
        with self._lock:
            if ws is not self._ws:
                return
            self._transport_closed.set()
            if self._manual_close:
                return
            logger.warning("WebSocket closed code=%s msg=%s", code, msg)
            dropped = True
            if self.auto_reconnect:
                self._schedule_reconnect()
            else:
                self.state = ConnectionState.DISCONNECTED
                permanent = True
        if dropped:
            self._drop_listeners.dispatch(self)
        if permanent:
            self._notify_closed()


def connect(session_id: Optional[str] = None, endpoint: str = DEFAULT_ENDPOINT,
            connection_type: str = DEFAULT_CONNECTION_TYPE, auto_reconnect: bool = True,
            timeout_s: float = CONNECT_TIMEOUT_S,
            diagnostics: Optional[DiagnosticSink] = None) -> TradingViewConnection:
    conn = TradingViewConnection(session_id=session_id, endpoint=endpoint,
                                 connection_type=connection_type, auto_reconnect=auto_reconnect,
                                 connect_timeout_s=timeout_s, diagnostics=diagnostics)
    return conn.open()


def connect_history(session_id: Optional[str] = None, **kwargs) -> TradingViewConnection:
    """Endpoint history-data: dùng cho dữ liệu cũ / backtest."""
    kwargs.update(endpoint="history", connection_type="chart")
    return connect(session_id, **kwargs)
