# ocr.py
# ================================================================
# Ticket recognition stages + Blueprint, registers as ocr_bp
# Imported by app.py via: from ocr import ocr_bp
#
# Stages (tried in this order by TicketParser):
#   barcode  : zxing-cpp over the photo (PDF417 / Aztec / QR)
#   cloud    : Google Cloud Vision (or an OpenRouter vision model), only
#              with TICKET_OCR_API_KEY; TICKET_OCR_BACKEND picks which
#   local    : Tesseract via pytesseract
# Every stage returns a StageResult and never raises.
# ================================================================
import base64
import io
import logging
import mimetypes
import re
import socket
import threading
import weakref
from typing import Iterator, List, Optional, Protocol, Tuple

import pytesseract
import requests
import zxingcpp
from flask import Blueprint, jsonify, request
from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError
from requests.adapters import HTTPAdapter

from config import DEBUG_MODE_DEFAULT, MAX_UPLOAD_BYTES, OcrSettings
from mappings import DEFAULT_BLOCKLIST, DEFAULT_DIRECTORY, AirportDirectory, NoiseBlocklist
from models import MissingImageError, ParsedTicket, RawImage, StageResult
from ticket_parser import DebugCollector, TicketParser

logger = logging.getLogger(__name__)

ocr_bp = Blueprint("ocr", __name__)

# Tesseract needs a native binary; without it the local stage reports failure.
try:
    pytesseract.get_tesseract_version()
    TESSERACT_AVAILABLE = True
    logger.info("Tesseract OCR available.")
except Exception:
    TESSERACT_AVAILABLE = False
    logger.warning("Tesseract not available → install the Tesseract binary for local OCR")

ALLOWED_MIME_TYPES = {
    "image/jpeg", "image/png", "image/webp", "image/bmp", "image/tiff", "image/gif",
}


# ══════════════════════════════════════════════════════════════════════════════
# IMAGE HELPERS
# ══════════════════════════════════════════════════════════════════════════════
def open_image(image: RawImage) -> "Image.Image":
    """Decode RawImage bytes into an upright RGB Pillow image."""
    img = Image.open(io.BytesIO(bytes(image.data)))
    img = ImageOps.exif_transpose(img)
    return img.convert("RGB")


def barcode_variants(img: "Image.Image") -> Iterator[Tuple[str, "Image.Image"]]:
    """Plain grayscale first, then in-memory clean-ups that rescue glared or small codes."""
    gray = ImageOps.grayscale(img)
    yield "gray", gray
    yield "autocontrast", ImageOps.autocontrast(gray, cutoff=2)
    w, h = gray.size
    if max(w, h) < 2000:
        yield "2x_upscale", gray.resize((w * 2, h * 2), Image.LANCZOS)


def prepare_for_tesseract(img: "Image.Image") -> "Image.Image":
    w, h = img.size
    if max(w, h) < 2000:
        img = img.resize((w * 2, h * 2), Image.LANCZOS)
    img = ImageEnhance.Contrast(img).enhance(1.5)
    return img.filter(ImageFilter.SHARPEN)


# ══════════════════════════════════════════════════════════════════════════════
# BARCODE STAGE
# ══════════════════════════════════════════════════════════════════════════════
class BarcodeStage:
    """Decode the first 2-D barcode on the ticket and return its raw payload."""

    name = "barcode"

    def __init__(self, try_variants: bool = True):
        self.try_variants = try_variants

    def __call__(self, image: RawImage) -> StageResult:
        try:
            img = open_image(image)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            return StageResult.failed(self.name, f"unreadable image: {exc}")

        variants = barcode_variants(img)
        if not self.try_variants:
            variants = iter([next(variants)])

        for label, variant in variants:
            try:
                results = zxingcpp.read_barcodes(variant)
            except Exception as exc:
                logger.debug("zxing-cpp failed on variant %s: %s", label, exc)
                continue
            for res in results or []:
                payload = (getattr(res, "text", "") or "").strip()
                if payload:
                    logger.info("Barcode decoded on variant '%s' (%d chars)", label, len(payload))
                    return StageResult.success(self.name, payload)

        logger.info("No barcode found on ticket image")
        return StageResult.failed(self.name, "no barcode found")


# ══════════════════════════════════════════════════════════════════════════════
# CLOUD TEXT STAGE
# ══════════════════════════════════════════════════════════════════════════════
class RecognitionError(Exception):
    """A recognition backend could not return text."""


class RecognitionBackend(Protocol):
    def recognize(self, data: bytes, mime_type: str) -> str:
        ...


class _ConnectionTrackingAdapter(HTTPAdapter):
    """
    HTTPAdapter that remembers which pooled connections are checked out,
    so cancel() from another thread can shut their sockets down. Closing
    the Session alone only drops idle connections.
    """

    def __init__(self, *args, **kwargs):
        self._lock = threading.Lock()
        self._live = weakref.WeakSet()
        super().__init__(*args, **kwargs)

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            scheme: self._tracking(pool_cls)
            for scheme, pool_cls in self.poolmanager.pool_classes_by_scheme.items()
        }

    def _tracking(self, pool_cls):
        adapter = self

        class TrackingPool(pool_cls):
            def _get_conn(self, timeout=None):
                conn = super()._get_conn(timeout)
                with adapter._lock:
                    adapter._live.add(conn)
                return conn

            def _put_conn(self, conn):
                if conn is not None:
                    with adapter._lock:
                        adapter._live.discard(conn)
                super()._put_conn(conn)

        TrackingPool.__name__ = f"Tracking{pool_cls.__name__}"
        return TrackingPool

    def abort(self):
        """Shut down every socket a request is currently using."""
        with self._lock:
            live = list(self._live)
        for conn in live:
            sock = getattr(conn, "sock", None)
            if sock is None:
                continue
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as exc:
                logger.debug("Socket already closed: %s", exc)


class HttpRecognizer:
    """
    One POST per image, bounded by `timeout`; no retries.
    cancel() refuses new calls and aborts the one in flight, which then
    surfaces as RecognitionError("cancelled").
    """

    DEFAULT_URL = ""

    def __init__(self, settings: OcrSettings, session: Optional[requests.Session] = None):
        if not settings.cloud_enabled:
            raise ValueError(f"{type(self).__name__} requires an API key")
        self.settings = settings
        self.url = settings.url or self.DEFAULT_URL
        self._session = session
        self._adapter: Optional[_ConnectionTrackingAdapter] = None
        self._cancelled = threading.Event()

    @property
    def session(self) -> requests.Session:
        # Built on first use so /health and unused parsers open nothing
        if self._session is None:
            self._adapter = _ConnectionTrackingAdapter()
            self._session = requests.Session()
            self._session.mount("https://", self._adapter)
            self._session.mount("http://", self._adapter)
        return self._session

    def _post(self, **kwargs) -> dict:
        if self._cancelled.is_set():
            raise RecognitionError("cancelled")
        try:
            response = self.session.post(self.url, timeout=self.settings.timeout, **kwargs)
        except requests.RequestException as exc:
            if self._cancelled.is_set():
                raise RecognitionError("cancelled") from exc
            if isinstance(exc, requests.Timeout):
                raise RecognitionError(f"timed out after {self.settings.timeout}s") from exc
            raise RecognitionError(f"request failed: {exc}") from exc

        if self._cancelled.is_set():
            raise RecognitionError("cancelled")
        if response.status_code != 200:
            raise RecognitionError(f"API error {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as exc:
            raise RecognitionError(f"malformed response body: {exc!r}") from exc

    def cancel(self):
        self._cancelled.set()
        if self._adapter is not None:
            self._adapter.abort()
        if self._session is not None:
            self._session.close()

    def close(self):
        if self._session is not None:
            self._session.close()


class GoogleVisionRecognizer(HttpRecognizer):
    """Cloud Vision TEXT_DETECTION; returns fullTextAnnotation.text as printed."""

    DEFAULT_URL = "https://vision.googleapis.com/v1/images:annotate"

    def recognize(self, data: bytes, mime_type: str) -> str:
        body = self._post(
            params={"key": self.settings.api_key},
            json={
                "requests": [{
                    "image": {"content": base64.b64encode(bytes(data)).decode("ascii")},
                    "features": [{"type": "TEXT_DETECTION"}],
                }]
            },
        )
        try:
            first = body["responses"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise RecognitionError(f"malformed response body: {exc!r}") from exc
        if not isinstance(first, dict):
            raise RecognitionError("malformed response body: response is not an object")

        if "error" in first:
            error = first["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RecognitionError(f"API error: {message}")

        text = (first.get("fullTextAnnotation") or {}).get("text")
        if not text:
            # Older responses only carry textAnnotations; the first entry is the whole block
            annotations = first.get("textAnnotations") or []
            text = annotations[0].get("description", "") if annotations else ""
        return text if isinstance(text, str) else ""


TRANSCRIBE_PROMPT = (
    "You are an OCR engine. Transcribe ALL text visible on this boarding pass "
    "or e-ticket exactly as printed, line by line. Keep airport codes, dates "
    "and flight numbers verbatim. Do not summarize, translate or add anything."
)


class OpenRouterRecognizer(HttpRecognizer):
    """Chat-completions vision call that returns the transcribed ticket text."""

    DEFAULT_URL = "https://openrouter.ai/api/v1/chat/completions"

    def recognize(self, data: bytes, mime_type: str) -> str:
        data_url = f"data:{mime_type};base64,{base64.b64encode(bytes(data)).decode('ascii')}"
        body = self._post(
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.settings.model,
                "messages": [
                    {"role": "system", "content": TRANSCRIBE_PROMPT},
                    {"role": "user", "content": [
                        {"type": "text", "text": "Transcribe this ticket."},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ]},
                ],
                "temperature": 0,
            },
        )
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RecognitionError(f"malformed response body: {exc!r}") from exc
        if not isinstance(content, str):
            raise RecognitionError("malformed response body: content is not text")

        # Strip markdown code fences (```text ... ```)
        content = re.sub(r'^```[a-z]*\s*', '', content.strip(), flags=re.IGNORECASE)
        content = re.sub(r'\s*```$', '', content)
        return content.strip()


RECOGNIZERS = {
    "google_vision": GoogleVisionRecognizer,
    "openrouter": OpenRouterRecognizer,
}


def build_recognizer(settings: OcrSettings) -> HttpRecognizer:
    try:
        recognizer_cls = RECOGNIZERS[settings.backend]
    except KeyError:
        raise ValueError(
            f"Unknown TICKET_OCR_BACKEND {settings.backend!r}, expected one of {', '.join(sorted(RECOGNIZERS))}"
        ) from None
    return recognizer_cls(settings)


class CloudTextStage:
    name = "cloud"

    def __init__(self, backend: RecognitionBackend):
        self.backend = backend

    def __call__(self, image: RawImage) -> StageResult:
        try:
            text = self.backend.recognize(image.data, image.mime_type)
        except RecognitionError as exc:
            logger.warning("Cloud OCR failed: %s", exc)
            return StageResult.failed(self.name, str(exc))
        except Exception as exc:
            logger.exception("Cloud OCR backend raised unexpectedly")
            return StageResult.failed(self.name, f"backend error: {exc}")
        return StageResult.success(self.name, text or "")

    def cancel(self):
        cancel = getattr(self.backend, "cancel", None)
        if callable(cancel):
            cancel()

    def close(self):
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()


# ══════════════════════════════════════════════════════════════════════════════
# LOCAL TEXT STAGE (TESSERACT)
# ══════════════════════════════════════════════════════════════════════════════
class LocalTextStage:
    name = "local"

    def __init__(self, settings: Optional[OcrSettings] = None, available: Optional[bool] = None):
        settings = settings or OcrSettings()
        self.config = settings.tesseract_config
        self.timeout = settings.tesseract_timeout
        self.available = TESSERACT_AVAILABLE if available is None else available

    def __call__(self, image: RawImage) -> StageResult:
        if not self.available:
            return StageResult.failed(self.name, "tesseract not available")
        try:
            img = prepare_for_tesseract(open_image(image))
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            return StageResult.failed(self.name, f"unreadable image: {exc}")
        try:
            text = pytesseract.image_to_string(img, config=self.config, timeout=self.timeout)
        except (RuntimeError, OSError) as exc:
            # TesseractError and the timeout are both RuntimeError; a missing binary is OSError
            logger.warning("Tesseract failed: %s", exc)
            return StageResult.failed(self.name, f"tesseract error: {exc}")
        logger.debug("Tesseract extracted %d characters", len(text or ""))
        return StageResult.success(self.name, text or "")


# ══════════════════════════════════════════════════════════════════════════════
# PARSER FACTORY
# ══════════════════════════════════════════════════════════════════════════════
def build_text_stages(settings: OcrSettings) -> List:
    stages: List = []
    if settings.cloud_enabled:
        stages.append(CloudTextStage(build_recognizer(settings)))
    else:
        logger.debug("TICKET_OCR_API_KEY not set, cloud OCR stage disabled")
    stages.append(LocalTextStage(settings))
    return stages


def build_ticket_parser(
    settings: Optional[OcrSettings] = None,
    directory: AirportDirectory = DEFAULT_DIRECTORY,
    blocklist: NoiseBlocklist = DEFAULT_BLOCKLIST,
) -> TicketParser:
    settings = settings or OcrSettings.from_env()
    return TicketParser(
        directory=directory,
        blocklist=blocklist,
        barcode_stage=BarcodeStage(),
        text_stages=build_text_stages(settings),
        timezone=settings.timezone,
    )


def parse_ticket(data: bytes, mime_type: str, settings: Optional[OcrSettings] = None) -> ParsedTicket:
    parser = build_ticket_parser(settings)
    try:
        return parser.parse(RawImage(data=data, mime_type=mime_type))
    finally:
        parser.close()


# ══════════════════════════════════════════════════════════════════════════════
# ROUTES
# ══════════════════════════════════════════════════════════════════════════════
def _mime_for(file) -> str:
    mime = (file.mimetype or "").lower()
    if mime in ALLOWED_MIME_TYPES:
        return mime
    guessed, _ = mimetypes.guess_type(file.filename or "")
    return (guessed or mime or "application/octet-stream").lower()


@ocr_bp.route("/parse-ticket", methods=["POST"])
def parse_ticket_route():
    """
    POST /parse-ticket
    Content-Type: multipart/form-data
    Field: ticket  (photo of a boarding pass or e-ticket)
    Query params:
        ?debug=1              → embed the stage trace in the response
        TICKET_DEBUG=1        → same, via environment variable

    200: origin, destination, departure_date, origin_code,
         destination_code, source. Always, even when nothing was read
    400: missing field / empty file
    413: file too large
    415: unsupported image type
    """
    debug_on = (
        request.args.get("debug", "0") in ("1", "true", "yes")
        or DEBUG_MODE_DEFAULT
    )
    dbg = DebugCollector(enabled=debug_on)
    dbg.step("Request received")

    if "ticket" not in request.files:
        return jsonify({"error": "Field 'ticket' is required"}), 400

    file = request.files["ticket"]
    if not file or not file.filename:
        return jsonify({"error": "Empty file"}), 400

    mime = _mime_for(file)
    if mime not in ALLOWED_MIME_TYPES:
        return jsonify({
            "error": (
                f"Unsupported file type '{mime}'. "
                f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
            )
        }), 415

    data = file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        return jsonify({
            "error": f"File too large. Max: {MAX_UPLOAD_BYTES // 1_048_576} MB"
        }), 413

    parser = build_ticket_parser()
    try:
        ticket = parser.parse(RawImage(data=data, mime_type=mime), debug=dbg)
    except MissingImageError as exc:
        return jsonify({"error": str(exc)}), 400
    finally:
        parser.close()

    resp = ticket.to_dict()
    if debug_on:
        resp["debug"] = dbg.to_dict()
    return jsonify(resp), 200


@ocr_bp.route("/health", methods=["GET"])
def health():
    settings = OcrSettings.from_env()
    parser = build_ticket_parser(settings)
    stages = parser.stage_names
    parser.close()
    return jsonify({
        "status": "ok",
        "stages": stages,
        "cloud_enabled": settings.cloud_enabled,
        "cloud_backend": settings.backend if settings.cloud_enabled else None,
        "tesseract_available": TESSERACT_AVAILABLE,
        "airports": len(DEFAULT_DIRECTORY),
    })
