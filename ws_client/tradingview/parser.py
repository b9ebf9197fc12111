# ws_client/tradingview/parser.py
"""
Chuyển list[Bar] <-> DataFrame:
- bars_to_dataframe: cột timestamp, datetime (tz-aware, mặc định UTC), open, high, low, close, volume
- dataframe_to_bars: ngược lại (dùng khi đọc file CSV đã lưu)
"""
from typing import List

import pandas as pd
import pytz

from .series import Bar

COLUMNS = ["timestamp", "datetime", "open", "high", "low", "close", "volume"]
PRICE_COLUMNS = ["open", "high", "low", "close", "volume"]


def bars_to_dataframe(bars: List[Bar], tz=None) -> pd.DataFrame:
    tz = tz or pytz.UTC
    if isinstance(tz, str):
        tz = pytz.timezone(tz)
    if not bars:
        return pd.DataFrame(columns=COLUMNS)
    df = pd.DataFrame([b.to_dict() for b in bars], columns=COLUMNS)
    df["datetime"] = pd.to_datetime(df["timestamp"].astype("int64"), unit="s", utc=True).dt.tz_convert(tz)
    df[PRICE_COLUMNS] = df[PRICE_COLUMNS].astype(float)
    return df


def dataframe_to_bars(df: pd.DataFrame) -> List[Bar]:
    if df is None or df.empty:
        return []
    out = []
    for row in df.sort_values("timestamp").itertuples(index=False):
        out.append(Bar.from_dict({
            "timestamp": int(row.timestamp),
            "open": float(row.open), "high": float(row.high),
            "low": float(row.low), "close": float(row.close),
            "volume": float(row.volume) if pd.notna(row.volume) else 0,
        }))
    return out
