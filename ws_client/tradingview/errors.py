# ws_client/tradingview/errors.py
"""
Các lỗi của client + kênh chẩn đoán (diagnostic):
- Lỗi cấp thao tác (connect / fetch) được raise cho caller
- Lỗi cấp frame / transport chỉ được ghi log và đẩy vào diagnostics (nếu có)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


class TradingViewError(Exception):
    """Lỗi gốc của client TradingView."""


class ConnectTimeout(TradingViewError, TimeoutError):
    """Không nhận được session_id trong thời gian cho phép."""


class FetchTimeout(TradingViewError, TimeoutError):
    """Phân trang không kết thúc trước timeout."""


class TVConnectionError(TradingViewError, ConnectionError):
    """Kết nối không thể giao dữ liệu (chưa kết nối, đã đóng, lỗi transport)."""


class SeriesError(TradingViewError):
    """Server báo lỗi nghiêm trọng (critical_error / series_error) cho series đang tải."""


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    detail: Dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[Diagnostic], None]


def report(sink: Optional[DiagnosticSink], logger: logging.Logger, kind: str, message: str,
           level: int = logging.WARNING, **detail) -> Diagnostic:
    """Ghi log và chuyển diagnostic cho sink; sink lỗi thì chỉ log lại, không lan ra ngoài."""
    diag = Diagnostic(kind=kind, message=message, detail=detail)
    logger.log(level, "%s: %s", kind, message)
    if sink is not None:
        try:
            sink(diag)
        except Exception:
            logger.exception("diagnostics sink failed for %s", kind)
    return diag
