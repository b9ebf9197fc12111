# ws_client/tradingview/events.py
"""
Sự kiện ứng dụng TradingView -> kiểu cụ thể theo tên:
- timescale_update / du : DataPush   (session, {series_id: {"s": [RawBar...]}})
- series_completed      : Completion (session, series_id)
- symbol_error          : SoftError  (lỗi cấp symbol, không dừng phân trang)
- critical_error / series_error : HardError (làm fail fetch đang chạy)
- còn lại               : Unknown
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

DATA_EVENTS = {"timescale_update", "du"}
COMPLETION_EVENTS = {"series_completed"}
SOFT_ERROR_EVENTS = {"symbol_error"}
HARD_ERROR_EVENTS = {"critical_error", "series_error"}


@dataclass(frozen=True)
class ApplicationEvent:
    name: str
    params: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class DataPush:
    session_id: Optional[str]
    series: Dict[str, Any]

    def bars_for(self, series_id: str) -> Optional[list]:
        node = self.series.get(series_id)
        if not isinstance(node, dict):
            return None
        bars = node.get("s")
        return bars if isinstance(bars, list) else None


@dataclass(frozen=True)
class Completion:
    session_id: Optional[str]
    series_id: Optional[str] = None


@dataclass(frozen=True)
class SoftError:
    session_id: Optional[str]
    params: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class HardError:
    name: str
    session_id: Optional[str]
    params: List[Any] = field(default_factory=list)

    @property
    def message(self) -> str:
        return " ".join(str(p) for p in self.params[1:]) or self.name


@dataclass(frozen=True)
class Unknown:
    name: str
    raw: List[Any] = field(default_factory=list)


TypedEvent = Union[DataPush, Completion, SoftError, HardError, Unknown]


def _session_of(params: List[Any]) -> Optional[str]:
    if params and isinstance(params[0], str):
        return params[0]
    return None


def parse_event(event: ApplicationEvent) -> TypedEvent:
    name, params = event.name, list(event.params or [])
    session_id = _session_of(params)

    if name in DATA_EVENTS:
        series = params[1] if len(params) >= 2 and isinstance(params[1], dict) else {}
        return DataPush(session_id, series)
    if name in COMPLETION_EVENTS:
        series_id = params[1] if len(params) >= 2 and isinstance(params[1], str) else None
        return Completion(session_id, series_id)
    if name in SOFT_ERROR_EVENTS:
        return SoftError(session_id, params)
    if name in HARD_ERROR_EVENTS:
        return HardError(name, session_id, params)
    return Unknown(name, params)
