# ws_client/tradingview/auth.py
"""
Lấy auth_token từ sessionid (cookie tài khoản TradingView):
- GET trang disclaimer với Cookie: sessionid=...
- Tìm "auth_token":"..." trong HTML
- Không tìm thấy / lỗi mạng -> dùng token khách (unauthorized_user_token)
"""
import logging
import re
from typing import Optional

import requests

from .config import AUTH_URL, AUTH_TIMEOUT_S, UNAUTHORIZED_TOKEN
from .errors import DiagnosticSink, report

logger = logging.getLogger(__name__)

AUTH_TOKEN_RE = re.compile(r'"auth_token":"(.+?)"')


def extract_auth_token(html: str) -> Optional[str]:
    m = AUTH_TOKEN_RE.search(html or "")
    return m.group(1) if m else None


def get_auth_token(session_id: str, timeout_s: float = AUTH_TIMEOUT_S,
                   diagnostics: Optional[DiagnosticSink] = None) -> str:
    try:
        resp = requests.get(AUTH_URL, headers={"Cookie": f"sessionid={session_id}"}, timeout=timeout_s)
        token = extract_auth_token(resp.text)
    except requests.RequestException as e:
        report(diagnostics, logger, "auth_fallback", f"auth_token lookup failed: {e}")
        return UNAUTHORIZED_TOKEN

    if token:
        logger.info("Authenticated with sessionid")
        return token
    report(diagnostics, logger, "auth_fallback", "auth_token not found, using unauthenticated mode")
    return UNAUTHORIZED_TOKEN
