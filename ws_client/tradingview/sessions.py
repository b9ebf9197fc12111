# ws_client/tradingview/sessions.py
"""
Lệnh quản lý chart session & series (gửi qua connection.send):
- gen_session: id ngẫu nhiên "cs_xxx", mỗi fetch 1 id riêng để tương quan sự kiện
- chart_create_session / resolve_symbol / create_series / request_more_data / chart_delete_session
"""
import json
import random
import string

_ALPHABET = string.ascii_letters + string.digits


def gen_session(prefix: str, length: int = 12) -> str:
    rand = "".join(random.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}_{rand}"


def generate_chart_session() -> str:
    return gen_session("cs")


def symbol_descriptor(symbol: str, adjustment: str = "splits") -> str:
    return "=" + json.dumps({"symbol": symbol, "adjustment": adjustment}, separators=(",", ":"))


def create_chart_session(conn, cs: str) -> bool:
    return conn.send("chart_create_session", [cs, ""])


def resolve_symbol(conn, cs: str, alias: str, symbol: str) -> bool:
    return conn.send("resolve_symbol", [cs, alias, symbol_descriptor(symbol)])


def create_series(conn, cs: str, series_id: str, tag: str, alias: str, timeframe: str, amount) -> bool:
    # tham số cuối "" = không dùng range
    return conn.send("create_series", [cs, series_id, tag, alias, timeframe, amount, ""])


def request_more_data(conn, cs: str, series_id: str, amount: int) -> bool:
    return conn.send("request_more_data", [cs, series_id, amount])


def delete_chart_session(conn, cs: str) -> bool:
    return conn.send("chart_delete_session", [cs])
