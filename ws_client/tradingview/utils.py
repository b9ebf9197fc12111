# ws_client/tradingview/utils.py
"""
Utils timeframe:
- normalize_timeframe: input tự do (60, "1h", "d", "H4", "M15"...) -> resolution TV ("1".."240","1D","1W","1M")
- timeframe_label: resolution TV -> nhãn file (M1, M5, H1, H4, D1, W1, MN1)
"""
TIMEFRAME_LABELS = {
    "1": "M1", "3": "M3", "5": "M5", "15": "M15", "30": "M30", "45": "M45",
    "60": "H1", "120": "H2", "180": "H3", "240": "H4",
    "1D": "D1", "1W": "W1", "1M": "MN1",
}

_ALIASES = {
    "1h": "60", "2h": "120", "3h": "180", "4h": "240",
    "d": "1D", "1d": "1D", "day": "1D",
    "w": "1W", "1w": "1W", "week": "1W",
    # giống TV: "1m" là tháng, phút thì dùng "1" hoặc "m1"
    "m": "1M", "1m": "1M", "month": "1M",
}
_ALIASES.update({label.lower(): tf for tf, label in TIMEFRAME_LABELS.items()})


def normalize_timeframe(tf) -> str:
    t = str(tf).strip()
    if t in TIMEFRAME_LABELS:
        return t
    x = t.lower()
    if x in _ALIASES:
        return _ALIASES[x]
    raise ValueError(f"Unsupported timeframe: {tf}")


def timeframe_label(tf) -> str:
    return TIMEFRAME_LABELS[normalize_timeframe(tf)]
