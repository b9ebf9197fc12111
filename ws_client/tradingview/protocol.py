# ws_client/tradingview/protocol.py
"""
Khung thông điệp TradingView:
- Mọi payload phải bọc: ~m~{len}~m~{payload}; 1 message WS có thể chứa nhiều frame
- Heartbeat: payload ~h~N, phải echo lại y nguyên (bọc lại trong ~m~len~m~)
- JSON: ~j~{...} (hoặc JSON trần, dạng cũ); có session_id -> frame phiên,
  còn lại là sự kiện {"m": tên, "p": [tham số]}
"""
from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import DiagnosticSink, report

logger = logging.getLogger(__name__)

FRAME_SPLIT = re.compile(r"~m~\d+~m~")
HB_MARKER = "~h~"
JSON_MARKER = "~j~"


class FrameKind(enum.Enum):
    HEARTBEAT = "heartbeat"
    SESSION = "session"
    EVENT = "event"


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    payload: str
    data: Dict[str, Any] = field(default_factory=dict)
    reply: Optional[str] = None  # chỉ có với heartbeat: frame echo đã bọc sẵn

    @property
    def name(self) -> Optional[str]:
        return self.data.get("m")

    @property
    def params(self) -> List[Any]:
        p = self.data.get("p")
        return list(p) if isinstance(p, list) else []


def frame_wrap(payload: str) -> str:
    return f"~m~{len(payload)}~m~{payload}"


def encode(func: str, params: list) -> str:
    """Đóng gói 1 lời gọi API kiểu TV: {"m": func, "p": params}"""
    return frame_wrap(json.dumps({"m": func, "p": params}, separators=(",", ":")))


def _classify(segment: str, body: str, diagnostics: Optional[DiagnosticSink]) -> Frame:
    try:
        obj = json.loads(body)
    except ValueError as e:
        report(diagnostics, logger, "malformed_frame", f"cannot parse frame: {e}",
               payload=segment[:200])
        return Frame(FrameKind.EVENT, segment)
    if not isinstance(obj, dict):
        report(diagnostics, logger, "malformed_frame", "frame is not a JSON object",
               payload=segment[:200])
        return Frame(FrameKind.EVENT, segment)
    if obj.get("session_id"):
        return Frame(FrameKind.SESSION, segment, obj)
    return Frame(FrameKind.EVENT, segment, obj)


def decode(raw, diagnostics: Optional[DiagnosticSink] = None) -> List[Frame]:
    """
    Tách 1 message WS thành danh sách Frame, đúng thứ tự nhận.
    Segment lỗi không làm hỏng các segment còn lại: trả về frame EVENT rỗng.
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError as e:
            # byte hỏng chỉ làm hỏng segment chứa nó
            report(diagnostics, logger, "malformed_frame", f"invalid UTF-8 in message: {e}")
            raw = data.decode("utf-8", errors="replace")
    if not raw:
        return []

    frames: List[Frame] = []
    for segment in FRAME_SPLIT.split(raw)[1:]:
        head = segment[:3]
        if head == HB_MARKER:
            frames.append(Frame(FrameKind.HEARTBEAT, segment, reply=frame_wrap(segment)))
        elif head == JSON_MARKER:
            frames.append(_classify(segment, segment[3:], diagnostics))
        else:
            frames.append(_classify(segment, segment, diagnostics))
    return frames
