# ws_client/tradingview/config.py
"""
Cấu hình TradingView:
- Host WS theo endpoint (prodata / data / history), loại kết nối
- Token mặc định khi chưa đăng nhập, URL lấy auth_token
- Timeout (override qua .env), kích thước batch, chính sách reconnect
"""
from config.env_utils import get_env_int

HOSTS = {
    "prodata": "prodata.tradingview.com",
    "data":    "data.tradingview.com",
    "history": "history-data.tradingview.com",
}
DEFAULT_ENDPOINT = "prodata"

CONNECTION_TYPES = ("chart", "quote", "history")
DEFAULT_CONNECTION_TYPE = "chart"

# --- Xác thực ---
UNAUTHORIZED_TOKEN = "unauthorized_user_token"
AUTH_URL = "https://www.tradingview.com/disclaimer/"
AUTH_TIMEOUT_S = 15

# Cookie được connection.py tự cộng thêm nếu có sessionid
WS_HEADERS = [
    "Origin: https://www.tradingview.com",
    "User-Agent: Mozilla/5.0",
]

# --- Timeout (giây) ---
CONNECT_TIMEOUT_S = get_env_int("TV_CONNECT_TIMEOUT_S", 30)
FETCH_TIMEOUT_S   = get_env_int("TV_FETCH_TIMEOUT_S", 120)
CLOSE_TIMEOUT_S   = 5

# --- Phân trang ---
BATCH_CEILING = 10_000   # số nến tối đa cho 1 lần create_series / request_more_data
STALL_LIMIT   = 3        # số lần liên tiếp không có nến mới thì dừng

# --- Reconnect: min(base * factor^attempts, max) ---
RECONNECT_BASE_MS = 5000
RECONNECT_FACTOR  = 1.5
RECONNECT_MAX_MS  = 60000
