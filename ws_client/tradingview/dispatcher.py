# ws_client/tradingview/dispatcher.py
"""
Phát sự kiện tới các subscriber:
- Đồng bộ, đúng thứ tự frame đến
- Snapshot danh sách handler tại lúc phát: handler thêm trong lúc phát không nhận
  sự kiện hiện tại, handler bị gỡ trong lúc phát vẫn nhận (copy-on-iterate)
- Handler lỗi không chặn các handler sau
"""
from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Dict, Optional

from .errors import DiagnosticSink, report

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class EventDispatcher:
    def __init__(self, diagnostics: Optional[DiagnosticSink] = None):
        self._handlers: Dict[int, Handler] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.diagnostics = diagnostics

    def subscribe(self, handler: Handler) -> Unsubscribe:
        with self._lock:
            token = next(self._ids)
            self._handlers[token] = handler

        def unsubscribe() -> None:
            with self._lock:
                self._handlers.pop(token, None)

        return unsubscribe

    def dispatch(self, event: Any) -> int:
        """Trả về số handler đã được gọi."""
        with self._lock:
            snapshot = list(self._handlers.values())
        for handler in snapshot:
            try:
                handler(event)
            except Exception as e:
                logger.exception("event handler failed")
                report(self.diagnostics, logger, "handler_error", repr(e),
                       level=logging.DEBUG, event=getattr(event, "name", None))
        return len(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)
