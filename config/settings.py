from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from config.env_utils import get_env


def _session_id() -> Optional[str]:
    # TV_SESSION_ID ưu tiên, TRADINGVIEW_SESSION_ID là tên cũ
    return get_env("TV_SESSION_ID") or get_env("TRADINGVIEW_SESSION_ID")


@dataclass(slots=True)
class Settings:
    TIMEZONE: str = field(default_factory=lambda: get_env("TIMEZONE", "UTC"))
    LOG_LEVEL: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))

    TV_SESSION_ID: Optional[str] = field(default_factory=_session_id)
    TV_ENDPOINT: str = field(default_factory=lambda: get_env("TV_ENDPOINT", "prodata"))
    TV_OUTPUT_DIR: str = field(default_factory=lambda: get_env("TV_OUTPUT_DIR", "./data"))


settings = Settings()
