# config.py
# ================================================================
# Environment-driven settings for the ticket scanner.
# Everything is optional: a missing TICKET_OCR_API_KEY just means the
# cloud text stage is not built and Tesseract is the only OCR source.
# ================================================================
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# ==================== CONFIG ====================
TICKET_OCR_API_KEY = os.getenv("TICKET_OCR_API_KEY") or None
# google_vision (TEXT_DETECTION) or openrouter (vision chat model)
TICKET_OCR_BACKEND = os.getenv("TICKET_OCR_BACKEND", "google_vision").strip().lower()
# Unset means the chosen backend's public endpoint
TICKET_OCR_URL = os.getenv("TICKET_OCR_URL") or None
TICKET_OCR_MODEL = os.getenv("TICKET_OCR_MODEL", "google/gemini-2.0-flash-001")
TICKET_OCR_TIMEOUT = float(os.getenv("TICKET_OCR_TIMEOUT", "20"))

TESSERACT_TIMEOUT = float(os.getenv("TESSERACT_TIMEOUT", "30"))
TESSERACT_CONFIG = os.getenv("TESSERACT_CONFIG", "--oem 3 --psm 6")

TICKET_TIMEZONE = os.getenv("TICKET_TIMEZONE", "UTC")
MAX_UPLOAD_BYTES = int(float(os.getenv("MAX_UPLOAD_MB", "10")) * 1024 * 1024)
DEBUG_MODE_DEFAULT = os.getenv("TICKET_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class OcrSettings:
    """Everything the recognition stages need, resolved once."""
    api_key: Optional[str] = None
    backend: str = TICKET_OCR_BACKEND
    url: Optional[str] = TICKET_OCR_URL
    model: str = TICKET_OCR_MODEL
    timeout: float = TICKET_OCR_TIMEOUT
    tesseract_timeout: float = TESSERACT_TIMEOUT
    tesseract_config: str = TESSERACT_CONFIG
    timezone: str = TICKET_TIMEZONE

    @property
    def cloud_enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @classmethod
    def from_env(cls) -> "OcrSettings":
        return cls(api_key=TICKET_OCR_API_KEY)
