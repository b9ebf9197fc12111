# data_process/converter.py
"""
Lưu / đọc chuỗi nến ra file:
- save_csv : timestamp,datetime(UTC "YYYY-MM-DD HH:MM:SS"),open,high,low,close,volume
- save_json / load_json : {symbol, timeframe, downloadedAt, count, candles[]}
- merge_bars : gộp dữ liệu cũ + mới theo timestamp (mới thắng), sort tăng dần
- output_path : {output}/{SYMBOL}/{TF_LABEL}.{ext}
"""
from __future__ import annotations

import datetime as dt
import json
import re
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from ws_client.tradingview.parser import bars_to_dataframe, dataframe_to_bars
from ws_client.tradingview.series import Bar
from ws_client.tradingview.utils import timeframe_label

CSV_COLUMNS = ["timestamp", "datetime", "open", "high", "low", "close", "volume"]


def clean_symbol(symbol: str) -> str:
    return re.sub(r"[!?.]", "", re.sub(r"[/:]", "_", symbol))


def output_path(output_dir, symbol: str, timeframe, ext: str = "csv") -> Path:
    return Path(output_dir) / clean_symbol(symbol) / f"{timeframe_label(timeframe)}.{ext}"


def merge_bars(old: Iterable[Bar], new: Iterable[Bar]) -> List[Bar]:
    by_ts = {}
    for bar in old:
        by_ts[bar.timestamp] = bar
    for bar in new:
        by_ts[bar.timestamp] = bar
    return [by_ts[ts] for ts in sorted(by_ts)]


def save_csv(bars: List[Bar], path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = bars_to_dataframe(bars)
    if not df.empty:
        df["datetime"] = df["datetime"].dt.strftime("%Y-%m-%d %H:%M:%S")
    df[CSV_COLUMNS].to_csv(path, index=False)
    return path


def save_json(bars: List[Bar], path, symbol: str, timeframe, downloaded_at: Optional[dt.datetime] = None) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    downloaded_at = downloaded_at or dt.datetime.now(dt.timezone.utc)
    doc = {
        "symbol": symbol,
        "timeframe": str(timeframe),
        "downloadedAt": downloaded_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "count": len(bars),
        "candles": [b.to_dict() for b in bars],
    }
    path.write_text(json.dumps(doc, ensure_ascii=False), encoding="utf-8")
    return path


def load_json(path) -> List[Bar]:
    path = Path(path)
    if not path.exists():
        return []
    doc = json.loads(path.read_text(encoding="utf-8"))
    return [Bar.from_dict(c) for c in doc.get("candles", [])]


def load_csv(path) -> List[Bar]:
    path = Path(path)
    if not path.exists():
        return []
    return dataframe_to_bars(pd.read_csv(path))


def load_bars(path) -> List[Bar]:
    return load_json(path) if Path(path).suffix == ".json" else load_csv(path)
