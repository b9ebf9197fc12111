# ws_client/tradingview/series.py
"""
Dữ liệu nến & logic gom phân trang:
- SeriesRequest : symbol, timeframe, target_amount | from_timestamp, to_timestamp (lọc cuối)
- RawBar        : {"i": idx, "v": [time, open, high, low, close, volume]} như server gửi
- Bar           : nến kết quả (timestamp, datetime ISO UTC, OHLCV)
- SeriesAccumulator : gom các lô (lô sau = dữ liệu cũ hơn, đứng trước), dedupe theo
  timestamp (lô nhận sau cùng thắng), đếm stall, quyết định có xin thêm dữ liệu không
"""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .config import STALL_LIMIT
from .utils import normalize_timeframe


@dataclass(frozen=True)
class SeriesRequest:
    symbol: str
    timeframe: str = "60"
    target_amount: Optional[int] = None
    from_timestamp: Optional[int] = None
    to_timestamp: Optional[int] = None

    def __post_init__(self):
        if not self.symbol or not str(self.symbol).strip():
            raise ValueError("symbol is required")
        object.__setattr__(self, "timeframe", normalize_timeframe(self.timeframe))
        if self.target_amount is not None and int(self.target_amount) <= 0:
            raise ValueError(f"target_amount must be positive, got {self.target_amount}")
        if (self.from_timestamp is not None and self.to_timestamp is not None
                and self.from_timestamp > self.to_timestamp):
            raise ValueError("from_timestamp must not be after to_timestamp")


@dataclass(frozen=True)
class RawBar:
    index: int
    values: Tuple[float, ...]

    @property
    def timestamp(self) -> int:
        return int(self.values[0])

    @classmethod
    def from_wire(cls, obj) -> "RawBar":
        if not isinstance(obj, dict):
            raise ValueError(f"bar is not an object: {obj!r}")
        v = obj.get("v")
        if not isinstance(v, (list, tuple)) or len(v) < 5 or v[0] is None:
            raise ValueError(f"bar has no OHLC values: {obj!r}")
        return cls(int(obj.get("i", 0)), tuple(v))


def iso_utc(ts: int) -> str:
    d = dt.datetime.fromtimestamp(ts, tz=dt.timezone.utc)
    return d.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Bar:
    timestamp: int
    datetime: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0

    @classmethod
    def from_raw(cls, raw: RawBar) -> "Bar":
        v = raw.values
        volume = v[5] if len(v) > 5 and v[5] is not None else 0
        ts = raw.timestamp
        return cls(ts, iso_utc(ts), v[1], v[2], v[3], v[4], volume)

    @classmethod
    def from_dict(cls, d: dict) -> "Bar":
        ts = int(d["timestamp"])
        return cls(ts, d.get("datetime") or iso_utc(ts), d["open"], d["high"], d["low"],
                   d["close"], d.get("volume") or 0)

    def to_dict(self) -> dict:
        return asdict(self)


def dedupe_sorted(bars: Iterable[RawBar]) -> List[RawBar]:
    """Mỗi timestamp giữ bản ghi xuất hiện sau cùng trong iterable, sort tăng dần."""
    by_ts: Dict[int, RawBar] = {}
    for bar in bars:
        by_ts[bar.timestamp] = bar
    return sorted(by_ts.values(), key=lambda b: b.timestamp)


def finalize_bars(raw: Iterable[RawBar], request: SeriesRequest) -> List[Bar]:
    bars = [Bar.from_raw(r) for r in raw]
    if request.from_timestamp is not None:
        bars = [b for b in bars if b.timestamp >= request.from_timestamp]
    if request.to_timestamp is not None:
        bars = [b for b in bars if b.timestamp <= request.to_timestamp]
    # chỉ cắt theo số lượng khi target_amount là tiêu chí chính
    if request.target_amount is not None and request.from_timestamp is None:
        if len(bars) > request.target_amount:
            bars = bars[-request.target_amount:]
    return bars


class SeriesAccumulator:
    def __init__(self, request: SeriesRequest, stall_limit: int = STALL_LIMIT):
        self.request = request
        self.stall_limit = stall_limit
        self._batches: List[List[RawBar]] = []  # theo thứ tự nhận
        self.requests_sent = 0
        self.last_length = 0
        self.stall_count = 0

    def push(self, bars: Iterable[RawBar]) -> None:
        batch = list(bars)
        if batch:
            self._batches.append(batch)

    @property
    def raw(self) -> List[RawBar]:
        """Chưa dedupe; lô nhận sau đứng trước (server trả dữ liệu cũ hơn ở mỗi lần)."""
        out: List[RawBar] = []
        for batch in reversed(self._batches):
            out.extend(batch)
        return out

    def __len__(self) -> int:
        return sum(len(b) for b in self._batches)

    def consolidate(self) -> List[RawBar]:
        merged = dedupe_sorted(bar for batch in self._batches for bar in batch)
        self._batches = [merged] if merged else []
        return merged

    def note_request(self) -> None:
        self.requests_sent += 1

    def record_completion(self) -> int:
        length = len(self.consolidate())
        # lần completion đầu tiên (chưa xin thêm) không tính là stall
        if self.requests_sent > 0 and length == self.last_length:
            self.stall_count += 1
        else:
            self.stall_count = 0
        self.last_length = length
        return length

    @property
    def oldest_timestamp(self) -> Optional[int]:
        return min((bar.timestamp for batch in self._batches for bar in batch), default=None)

    @property
    def stalled(self) -> bool:
        return self.stall_count >= self.stall_limit

    def wants_more(self) -> bool:
        """Chưa đạt mục tiêu (bỏ qua stall)."""
        req = self.request
        oldest = self.oldest_timestamp
        if req.from_timestamp is not None and oldest is not None and oldest > req.from_timestamp:
            return True
        if req.target_amount is not None and self.last_length < req.target_amount:
            return True
        return False

    def needs_more(self) -> bool:
        return self.wants_more() and not self.stalled

    def finalize(self) -> List[Bar]:
        return finalize_bars(self.consolidate(), self.request)
