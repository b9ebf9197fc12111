# config/env_utils.py
"""
Nạp .env một lần cho toàn project:
- .env ở thư mục gốc dự án, rồi .env ở thư mục đang chạy
- Không ghi đè biến môi trường đã tồn tại
"""
from pathlib import Path
import os

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(dotenv_path=PROJECT_ROOT / ".env", override=False)
load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)


def get_env(key, default=None):
    return os.getenv(key, default)


def get_env_int(key, default: int) -> int:
    raw = get_env(key)
    if raw is None or not str(raw).strip():
        return default
    return int(raw)
