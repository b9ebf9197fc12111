# ws_client/tradingview/fetcher.py
"""
API cấp cao: lấy chuỗi nến lịch sử dài qua phân trang.
- Mỗi fetch mở 1 chart session riêng (id ngẫu nhiên) -> chỉ nhận sự kiện mang id đó
- create_series tối đa BATCH_CEILING nến, sau đó request_more_data từng lô
- series_completed / symbol_error: dedupe + sort, đếm stall, quyết định xin thêm hay kết thúc
- critical_error / series_error: fail fetch (không đóng kết nối chung)
- Timeout 120s -> FetchTimeout; kết nối bị close() -> TVConnectionError
- Transport rớt trong lúc chờ (kể cả đã reconnect) -> hết timeout thì TVConnectionError
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .config import BATCH_CEILING, FETCH_TIMEOUT_S, STALL_LIMIT
from .errors import DiagnosticSink, FetchTimeout, SeriesError, TradingViewError, TVConnectionError, report
from .events import Completion, DataPush, HardError, SoftError, parse_event
from .series import Bar, RawBar, SeriesAccumulator, SeriesRequest, iso_utc
from .sessions import (
    create_chart_session, create_series, delete_chart_session, generate_chart_session,
    request_more_data, resolve_symbol,
)

logger = logging.getLogger(__name__)

SERIES_ID = "sds_1"
SYMBOL_ALIAS = "sds_sym_1"
SERIES_TAG = "s1"


class _PendingFetch:
    def __init__(self, request: SeriesRequest, chart_session: str, stall_limit: int):
        self.request = request
        self.chart_session = chart_session
        self.accumulator = SeriesAccumulator(request, stall_limit)
        self.done = threading.Event()
        self.result: Optional[List[Bar]] = None
        self.error: Optional[BaseException] = None
        self.dropped = False  # transport rớt trong lúc chờ: chart session đã mất
        self._lock = threading.Lock()

    def resolve(self, bars: List[Bar]) -> None:
        with self._lock:
            if self.done.is_set():
                return
            self.result = bars
            self.done.set()

    def mark_dropped(self) -> None:
        self.dropped = True

    def fail(self, error: BaseException) -> None:
        with self._lock:
            if self.done.is_set():
                return
            self.error = error
            self.done.set()


class CandleFetcher:
    """Pagination engine trên 1 TradingViewConnection; nhiều fetch có thể chạy song song."""

    def __init__(self, connection, timeout_s: float = FETCH_TIMEOUT_S, batch_size: int = BATCH_CEILING,
                 stall_limit: int = STALL_LIMIT, diagnostics: Optional[DiagnosticSink] = None):
        self.connection = connection
        self.timeout_s = timeout_s
        self.batch_size = batch_size
        self.stall_limit = stall_limit
        self.diagnostics = diagnostics
        self._pending: Dict[str, _PendingFetch] = {}
        self._lock = threading.Lock()

    @property
    def pending_sessions(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def fetch_series(self, request: SeriesRequest) -> List[Bar]:
        if not self.connection.is_connected():
            raise TVConnectionError(f"Connection is not open, cannot fetch {request.symbol}")

        cs = generate_chart_session()
        pending = _PendingFetch(request, cs, self.stall_limit)
        with self._lock:
            self._pending[cs] = pending

        unsubscribe = self.connection.subscribe(lambda event: self._on_event(pending, event))
        unsubscribe_close = self.connection.subscribe_close(
            lambda _conn: pending.fail(TVConnectionError(f"Connection closed while fetching {request.symbol}")))
        unsubscribe_drop = self.connection.subscribe_drop(lambda _conn: pending.mark_dropped())
        try:
            amount = min(request.target_amount or self.batch_size, self.batch_size)
            create_chart_session(self.connection, cs)
            resolve_symbol(self.connection, cs, SYMBOL_ALIAS, request.symbol)
            create_series(self.connection, cs, SERIES_ID, SERIES_TAG, SYMBOL_ALIAS, request.timeframe, amount)

            if not pending.done.wait(self.timeout_s):
                if pending.dropped:
                    pending.fail(TVConnectionError(
                        f"Connection dropped while fetching {request.symbol}, no data after {self.timeout_s}s"))
                else:
                    pending.fail(FetchTimeout(f"Timeout fetching candles for {request.symbol} after {self.timeout_s}s"))
        finally:
            unsubscribe()
            unsubscribe_close()
            unsubscribe_drop()
            with self._lock:
                self._pending.pop(cs, None)
            if self.connection.is_connected():
                delete_chart_session(self.connection, cs)

        if pending.error is not None:
            raise pending.error
        return pending.result

    # ---- event handling (chạy trên thread WS) ----
    def _on_event(self, pending: _PendingFetch, event) -> None:
        if pending.done.is_set():
            return
        typed = parse_event(event)
        if getattr(typed, "session_id", None) != pending.chart_session:
            return

        symbol = pending.request.symbol
        if isinstance(typed, DataPush):
            self._on_data(pending, typed)
        elif isinstance(typed, Completion):
            self._on_completion(pending)
        elif isinstance(typed, SoftError):
            # có thể đi kèm dữ liệu hợp lệ: chỉ ghi nhận, vẫn chốt với những gì đã có
            report(self.diagnostics, logger, "soft_error", f"symbol error for {symbol}: {typed.params[1:]}",
                   symbol=symbol)
            self._on_completion(pending)
        elif isinstance(typed, HardError):
            report(self.diagnostics, logger, "hard_error", f"{typed.name} for {symbol}: {typed.message}",
                   level=logging.ERROR, symbol=symbol)
            pending.fail(SeriesError(f"{typed.name} for {symbol}: {typed.message}"))

    def _parse_bars(self, items: Iterable, symbol: str) -> List[RawBar]:
        bars, bad = [], 0
        for item in items:
            try:
                bars.append(RawBar.from_wire(item))
            except (ValueError, TypeError):
                bad += 1
        if bad:
            report(self.diagnostics, logger, "malformed_frame", f"{symbol}: skipped {bad} malformed bars",
                   symbol=symbol, skipped=bad)
        return bars

    def _on_data(self, pending: _PendingFetch, push: DataPush) -> None:
        items = push.bars_for(SERIES_ID)
        if items is None:
            return
        acc = pending.accumulator
        acc.push(self._parse_bars(items, pending.request.symbol))
        logger.info("%s: %d candles loaded...", pending.request.symbol, len(acc))

    def _on_completion(self, pending: _PendingFetch) -> None:
        acc = pending.accumulator
        symbol = pending.request.symbol
        acc.record_completion()

        if acc.needs_more():
            acc.note_request()
            oldest = acc.oldest_timestamp
            logger.info("Requesting more data for %s (req #%d, oldest %s)", symbol, acc.requests_sent,
                        iso_utc(oldest) if oldest is not None else "-")
            request_more_data(self.connection, pending.chart_session, SERIES_ID, self.batch_size)
            return

        if acc.stalled and acc.wants_more():
            oldest = acc.oldest_timestamp
            report(self.diagnostics, logger, "stall",
                   f"stopping {symbol}: no new data after {acc.stall_count} requests "
                   f"(oldest {iso_utc(oldest) if oldest is not None else '-'})",
                   symbol=symbol, length=acc.last_length)

        bars = acc.finalize()
        if bars:
            logger.info("%s: total %d candles (%s -> %s)", symbol, len(bars), bars[0].datetime, bars[-1].datetime)
        else:
            logger.info("%s: no candles", symbol)
        pending.resolve(bars)


def fetch_series(connection, request: SeriesRequest, **kwargs) -> List[Bar]:
    return CandleFetcher(connection, **kwargs).fetch_series(request)


def get_candles(connection, symbol: str, timeframe=60, amount: Optional[int] = None,
                from_ts: Optional[int] = None, to_ts: Optional[int] = None,
                timeout_s: float = FETCH_TIMEOUT_S) -> List[Bar]:
    request = SeriesRequest(symbol, timeframe, target_amount=amount, from_timestamp=from_ts, to_timestamp=to_ts)
    return fetch_series(connection, request, timeout_s=timeout_s)


def get_candles_multiple(connection, symbols: Iterable[str], timeframe=60,
                         amount: Optional[int] = None, timeout_s: float = FETCH_TIMEOUT_S) -> Dict[str, List[Bar]]:
    """Tuần tự từng symbol; symbol lỗi -> list rỗng, không dừng cả lô."""
    results: Dict[str, List[Bar]] = {}
    for symbol in symbols:
        try:
            results[symbol] = get_candles(connection, symbol, timeframe, amount, timeout_s=timeout_s)
        except TradingViewError as e:
            logger.error("Failed to fetch %s: %s", symbol, e)
            results[symbol] = []
    return results


__all__ = ["CandleFetcher", "fetch_series", "get_candles", "get_candles_multiple"]
