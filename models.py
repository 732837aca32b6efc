import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Optional

import pytz

from config import TICKET_TIMEZONE

logger = logging.getLogger(__name__)

# ==================== MODELS ====================


def today_in(tz_name: str = TICKET_TIMEZONE) -> date:
    """Calendar date right now in the given zone; unknown zones fall back to UTC."""
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown TICKET_TIMEZONE %r, using UTC", tz_name)
        tz = pytz.utc
    return datetime.now(tz).date()


class MissingImageError(ValueError):
    """Raised when parse is called without any image bytes."""


@dataclass(frozen=True)
class RawImage:
    data: bytes
    mime_type: str = "application/octet-stream"

    def __post_init__(self):
        if self.data is not None and not isinstance(self.data, (bytes, bytearray, memoryview)):
            raise TypeError(f"RawImage.data must be bytes, got {type(self.data).__name__}")

    @property
    def is_empty(self) -> bool:
        return not self.data

    def __repr__(self) -> str:
        return f"RawImage(mime_type={self.mime_type!r}, size={len(self.data or b'')})"


@dataclass(frozen=True)
class LocationCode:
    code: str
    name: str


@dataclass(frozen=True)
class StageFailure:
    stage: str
    reason: str


@dataclass(frozen=True)
class StageResult:
    """Outcome of one recognition stage: text on success, a failure otherwise."""
    stage: str
    text: str = ""
    failure: Optional[StageFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.text.strip())

    @classmethod
    def success(cls, stage: str, text: str) -> "StageResult":
        if not text or not text.strip():
            return cls.failed(stage, "no text")
        return cls(stage=stage, text=text)

    @classmethod
    def failed(cls, stage: str, reason: str) -> "StageResult":
        return cls(stage=stage, failure=StageFailure(stage=stage, reason=reason))


@dataclass(frozen=True)
class ParsedTicket:
    origin: str = ""
    destination: str = ""
    departure_date: str = field(default_factory=lambda: today_in().isoformat())
    origin_code: str = ""
    destination_code: str = ""
    source: str = "none"

    def to_dict(self) -> Dict[str, str]:
        return {
            "origin": self.origin,
            "destination": self.destination,
            "departure_date": self.departure_date,
            "origin_code": self.origin_code,
            "destination_code": self.destination_code,
            "source": self.source,
        }
