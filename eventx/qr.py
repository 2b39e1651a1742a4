"""
QR ticket payloads

A ticket QR code carries a JSON object with exactly the fields userId,
eventId and timestamp (milliseconds since the epoch at issuance).
"""

import json
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import Callable, Dict, Union

import qrcode

from .exceptions import MalformedPayloadException

PAYLOAD_FIELDS = ("userId", "eventId", "timestamp")


def now_ms() -> int:
    return int(time.time() * 1000)


def _timestamp_to_ms(value: Union[int, float, str]) -> int:
    if isinstance(value, bool):
        raise MalformedPayloadException("timestamp must be a number or ISO 8601 string")
    if isinstance(value, float) and not math.isfinite(value):
        raise MalformedPayloadException("timestamp must be a finite number")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise MalformedPayloadException(f"unreadable timestamp '{value}'")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    raise MalformedPayloadException("timestamp must be a number or ISO 8601 string")


@dataclass(frozen=True)
class QRPayload:
    """Ephemeral ticket payload; never persisted"""
    user_id: str
    event_id: str
    timestamp: int

    def to_dict(self) -> Dict:
        return {"userId": self.user_id, "eventId": self.event_id, "timestamp": self.timestamp}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def age_ms(self, at_ms: int) -> int:
        return at_ms - self.timestamp


def issue_payload(user_id: str, event_id: str, clock: Callable[[], int] = now_ms) -> QRPayload:
    """Build the payload shown on a registered user's ticket"""
    return QRPayload(user_id=user_id, event_id=event_id, timestamp=clock())


def parse_payload(raw: Union[str, bytes, Dict]) -> QRPayload:
    """
    Parse scanned QR data

    Args:
        raw: JSON text as read by the scanner, or an already decoded dict

    Raises:
        MalformedPayloadException: If the data is not JSON, is not an
            object, or lacks userId, eventId or timestamp
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (ValueError, TypeError):
            raise MalformedPayloadException("not valid JSON")
    else:
        data = raw

    if not isinstance(data, dict):
        raise MalformedPayloadException("expected a JSON object")

    missing = [name for name in PAYLOAD_FIELDS if data.get(name) in (None, "")]
    if missing:
        raise MalformedPayloadException(f"missing {', '.join(missing)}")

    user_id, event_id = data["userId"], data["eventId"]
    if not isinstance(user_id, str) or not isinstance(event_id, str):
        raise MalformedPayloadException("userId and eventId must be strings")

    return QRPayload(user_id=user_id, event_id=event_id,
                     timestamp=_timestamp_to_ms(data["timestamp"]))


def render_ticket_png(payload: QRPayload) -> bytes:
    """Render a payload as a PNG QR code image"""
    image = qrcode.make(payload.to_json())
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
