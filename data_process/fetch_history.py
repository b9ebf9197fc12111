# data_process/fetch_history.py
"""
Tải nến lịch sử TradingView ra file CSV / JSON.

Ví dụ:
    python -m data_process.fetch_history -s OANDA:XAUUSD -t 60 -a 10000
    python -m data_process.fetch_history -s CME_MINI:MNQ1! -t 5 --from 2024-01-01 --session <sessionid>
    python -m data_process.fetch_history -s BTCUSD -t 1D --format json --update
    python -m data_process.fetch_history --test

sessionid lấy từ --session hoặc TV_SESSION_ID / TRADINGVIEW_SESSION_ID trong .env
"""
from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from typing import List, Optional

from config.settings import settings
from data_process.converter import load_bars, merge_bars, output_path, save_csv, save_json
from ws_client.tradingview.config import BATCH_CEILING
from ws_client.tradingview.connection import connect
from ws_client.tradingview.errors import TradingViewError
from ws_client.tradingview.fetcher import get_candles
from ws_client.tradingview.parser import bars_to_dataframe
from ws_client.tradingview.series import Bar

logger = logging.getLogger("fetch_history")

UPDATE_AMOUNT = 500  # đã có file: chỉ cần lấy phần mới


def parse_time(value: Optional[str]) -> Optional[int]:
    """'2024-01-01', '2024-01-01T12:00:00' (UTC nếu không có tz) hoặc epoch giây."""
    if value is None:
        return None
    v = value.strip()
    if v.isdigit():
        return int(v)
    d = dt.datetime.fromisoformat(v)
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return int(d.timestamp())


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=level, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")


def summarize(bars: List[Bar], tz: Optional[str] = None) -> str:
    """Dòng tóm tắt; thời gian hiển thị theo TIMEZONE trong .env (file vẫn lưu UTC)."""
    df = bars_to_dataframe(bars, tz or settings.TIMEZONE)
    first, last = df["datetime"].iloc[0], df["datetime"].iloc[-1]
    return (f"{len(df)} candles | {first:%Y-%m-%d %H:%M %Z} -> {last:%Y-%m-%d %H:%M %Z} | "
            f"range {df['low'].min():.2f} - {df['high'].max():.2f}")


def run(symbol: str, timeframe="60", amount: Optional[int] = None, from_ts: Optional[int] = None,
        to_ts: Optional[int] = None, session_id: Optional[str] = None, endpoint: str = "prodata",
        output: str = "./data", fmt: str = "csv", update: bool = False) -> int:
    path = output_path(output, symbol, timeframe, fmt)
    existing: List[Bar] = load_bars(path) if update else []
    if update and amount is None and from_ts is None:
        amount = UPDATE_AMOUNT if existing else BATCH_CEILING

    logger.info("Symbol=%s TF=%s amount=%s auth=%s output=%s",
                symbol, timeframe, amount or "max", "yes" if session_id else "no", path)

    conn = connect(session_id=session_id, endpoint=endpoint)
    try:
        bars = get_candles(conn, symbol, timeframe, amount, from_ts=from_ts, to_ts=to_ts)
    finally:
        conn.close()

    if not bars:
        logger.warning("No candles returned for %s, check the symbol", symbol)
        return 0

    if update:
        merged = merge_bars(existing, bars)
        logger.info("Merged %d new/updated candles into %d existing", len(merged) - len(existing), len(existing))
        bars = merged

    if fmt == "json":
        save_json(bars, path, symbol, timeframe)
    else:
        save_csv(bars, path)
    logger.info("Saved %s: %s", path, summarize(bars))
    return len(bars)


def check_connection(session_id: Optional[str] = None, endpoint: str = "prodata") -> bool:
    conn = connect(session_id=session_id, endpoint=endpoint)
    try:
        bars = get_candles(conn, "BTCUSD", 60, 10)
    finally:
        conn.close()
    if bars:
        last = bars[-1]
        logger.info("Connection OK, %d candles; last %s O=%s H=%s L=%s C=%s V=%s",
                    len(bars), last.datetime, last.open, last.high, last.low, last.close, last.volume)
    return bool(bars)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Download TradingView candles to CSV/JSON")
    p.add_argument("-s", "--symbol", help="VD: BTCUSD, FX:EURUSD, CME_MINI:MNQ1!")
    p.add_argument("-t", "--timeframe", default="60", help="1 5 15 30 60 240 1D 1W 1M")
    p.add_argument("-a", "--amount", type=int, default=None)
    p.add_argument("--from", dest="from_", default=None, help="ISO date/time (UTC) hoặc epoch giây")
    p.add_argument("--to", default=None)
    p.add_argument("--session", "--sessionId", dest="session", default=settings.TV_SESSION_ID)
    p.add_argument("--endpoint", choices=["prodata", "data", "history"], default=settings.TV_ENDPOINT)
    p.add_argument("-o", "--output", default=settings.TV_OUTPUT_DIR)
    p.add_argument("--format", choices=["csv", "json"], default="csv")
    p.add_argument("--update", action="store_true", help="gộp vào file đã có")
    p.add_argument("--test", action="store_true", help="chỉ thử kết nối")
    p.add_argument("-d", "--debug", action="store_true")
    return p


def main(argv=None) -> int:
    p = build_parser()
    a = p.parse_args(argv)
    setup_logging(a.debug)

    try:
        if a.test:
            return 0 if check_connection(a.session, a.endpoint) else 1
        if not a.symbol:
            p.error("--symbol is required")
        n = run(a.symbol, a.timeframe, a.amount, parse_time(a.from_), parse_time(a.to),
                session_id=a.session, endpoint=a.endpoint, output=a.output, fmt=a.format, update=a.update)
    except (TradingViewError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0 if n else 1


if __name__ == "__main__":
    sys.exit(main())
