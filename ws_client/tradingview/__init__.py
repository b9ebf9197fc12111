# ws_client/tradingview/__init__.py
"""
TradingView WS client stack:
- config.py      : host/endpoint, token mặc định, timeout, batch, backoff
- errors.py      : lỗi của client + kênh diagnostic
- protocol.py    : frame ~m~len~m~, heartbeat ~h~, JSON ~j~ (decode / encode)
- events.py      : sự kiện ứng dụng -> DataPush / Completion / SoftError / HardError / Unknown
- dispatcher.py  : phát sự kiện tới subscriber (an toàn khi subscribe/unsubscribe lúc đang phát)
- auth.py        : sessionid -> auth_token (fallback token khách)
- connection.py  : mở WS, handshake, heartbeat, reconnect (Timer huỷ được), close
- sessions.py    : id session, lệnh chart_create_session / resolve_symbol / create_series / ...
- series.py      : SeriesRequest, RawBar, Bar, gom + dedupe + lọc
- fetcher.py     : API cấp cao: get_candles(...), phân trang request_more_data
- parser.py      : list[Bar] <-> DataFrame
- utils.py       : chuẩn hoá timeframe

Timeframe hỗ trợ: 1 3 5 15 30 45 60 120 180 240 1D 1W 1M
"""
from .connection import ConnectionState, TradingViewConnection, connect, connect_history
from .errors import (
    ConnectTimeout, Diagnostic, FetchTimeout, SeriesError, TradingViewError, TVConnectionError,
)
from .fetcher import CandleFetcher, fetch_series, get_candles, get_candles_multiple
from .series import Bar, RawBar, SeriesRequest

__all__ = [
    "Bar", "CandleFetcher", "ConnectTimeout", "ConnectionState", "Diagnostic", "FetchTimeout",
    "RawBar", "SeriesError", "SeriesRequest", "TVConnectionError", "TradingViewConnection",
    "TradingViewError", "connect", "connect_history", "fetch_series", "get_candles",
    "get_candles_multiple",
]
