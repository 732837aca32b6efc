import logging
import re
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from mappings import DEFAULT_BLOCKLIST, DEFAULT_DIRECTORY, AirportDirectory, NoiseBlocklist
from models import LocationCode, MissingImageError, ParsedTicket, RawImage, StageResult, today_in

logger = logging.getLogger(__name__)

Stage = Callable[[RawImage], StageResult]


# ==================== DEBUG COLLECTOR ====================
class DebugCollector:
    """
    Accumulates the stage trace of one parse.
    Only serialized into a response when debug output is requested;
    every write is a no-op when disabled.
    """

    def __init__(self, enabled: bool):
        self.enabled = enabled
        self.steps: List[str] = []
        self.stages: List[Dict] = []
        self.raw_text: str = ""
        self.candidates: List[str] = []
        self.warnings: List[str] = []

    def step(self, msg: str):
        if self.enabled:
            self.steps.append(msg)
            logger.debug("[STEP] %s", msg)

    def warn(self, msg: str):
        if self.enabled:
            self.warnings.append(msg)

    def record_stage(self, result: StageResult):
        if self.enabled:
            self.stages.append({
                "stage": result.stage,
                "ok": result.ok,
                "chars": len(result.text),
                "reason": result.failure.reason if result.failure else None,
            })

    def record_text(self, text: str):
        if self.enabled:
            self.raw_text = text

    def record_candidates(self, codes: Sequence[LocationCode]):
        if self.enabled:
            self.candidates = [c.code for c in codes]

    def to_dict(self) -> dict:
        return {
            "steps": self.steps,
            "stages": self.stages,
            "raw_text": self.raw_text,
            "candidates": self.candidates,
            "warnings": self.warnings,
        }


_NO_DEBUG = DebugCollector(enabled=False)


# ==================== CANDIDATE EXTRACTOR ====================
class CandidateExtractor:
    """
    Pull location codes out of free text.

    A token is any run of three uppercase letters; it becomes a candidate
    only if the directory knows it AND the blocklist does not. An uppercase
    word that is itself blocklisted (SEAT, GATE, NUMBER) yields no tokens at
    all, so its first letters are never read as a code. Output keeps
    first-occurrence order with duplicates removed.
    """

    WORD_RE = re.compile(r"[A-Z]+")
    TOKEN_RE = re.compile(r"[A-Z]{3}")

    def __init__(self, directory: AirportDirectory, blocklist: NoiseBlocklist):
        self.directory = directory
        self.blocklist = blocklist

    def is_valid(self, token: str) -> bool:
        return token in self.directory and token not in self.blocklist

    def extract(self, text: str) -> List[LocationCode]:
        if not text:
            return []
        seen = set()
        codes: List[LocationCode] = []
        for word in self.WORD_RE.findall(text):
            if len(word) > 3 and word in self.blocklist:
                continue
            for token in self.TOKEN_RE.findall(word):
                if token in seen or not self.is_valid(token):
                    continue
                seen.add(token)
                codes.append(LocationCode(code=token, name=self.directory.get(token)))
        return codes


# ==================== ROUTE RESOLVER ====================
class RouteResolver:
    """
    Pick (origin, destination) from the ordered candidates.

    First code is the origin, last is the destination. When the two are
    equal and more than two distinct codes were seen (round trip printed
    with the home airport again at the end), the second-to-last code is
    the destination instead. Three-leg itineraries with repeats in the
    middle can still resolve wrong.
    """

    @staticmethod
    def resolve(codes: Sequence[LocationCode]) -> Tuple[Optional[LocationCode], Optional[LocationCode]]:
        if len(codes) < 2:
            return None, None
        origin, destination = codes[0], codes[-1]
        if origin.code == destination.code and len({c.code for c in codes}) > 2:
            destination = codes[-2]
        return origin, destination


# ==================== DATE RESOLVER ====================
class TicketDate:
    """Find the departure date printed on a ticket, falling back to today."""

    # Anything at or below this year is treated as a stray number
    # (flight numbers, sequence numbers) rather than a travel date.
    RECENT_YEAR_THRESHOLD = 2020

    _MONTH_ABBR = r'(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)'
    _MONTH_FULL = r'(?:January|February|March|April|May|June|July|August|September|October|November|December)'
    _MONTH      = rf'(?:{_MONTH_FULL}|{_MONTH_ABBR})'
    _DAY        = r'\d{1,2}'
    _DAY_ORD    = rf'{_DAY}(?:st|nd|rd|th)?'
    _YEAR       = r'(?:\d{4}|\d{2})'
    _SEP        = r'[\s\-/.,]+'

    _DATE_PATTERNS = [
        # glued: 12MAR26 / 12MAR2026
        rf'\b(?P<day>{_DAY})(?P<month>{_MONTH_ABBR})(?P<year>{_YEAR})\b',
        # 12 Mar 2026 / 12th March 26 / 12-MAR-2026
        rf'\b(?P<day>{_DAY_ORD}){_SEP}(?P<month>{_MONTH}){_SEP}(?P<year>{_YEAR})\b',
        # March 12, 2026
        rf'\b(?P<month>{_MONTH}){_SEP}(?P<day>{_DAY_ORD}){_SEP}(?P<year>{_YEAR})\b',
        # ISO 8601
        r'\b(?P<year>\d{4})-(?P<month_num>\d{1,2})-(?P<day>\d{1,2})\b',
        # 12/03/2026, 12.03.26 (day first)
        rf'\b(?P<day>{_DAY})[/.\-](?P<month_num>\d{{1,2}})[/.\-](?P<year>{_YEAR})\b',
    ]
    _COMPILED = [re.compile(p, re.IGNORECASE) for p in _DATE_PATTERNS]

    _MONTH_MAP = {
        'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
        'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
    }

    @classmethod
    def first_match(cls, text: str) -> Optional[re.Match]:
        """Earliest date-like match in the text across all patterns."""
        best = None
        for rx in cls._COMPILED:
            m = rx.search(text)
            if m is None:
                continue
            if best is None or m.start() < best.start() or (
                m.start() == best.start() and m.end() > best.end()
            ):
                best = m
        return best

    @classmethod
    def to_date(cls, m: re.Match) -> Optional[date]:
        gd = m.groupdict()
        try:
            day = int(re.sub(r'\D', '', gd['day']))
            if gd.get('month'):
                month = cls._MONTH_MAP[gd['month'][:3].lower()]
            else:
                month = int(gd['month_num'])
            year = int(gd['year'])
            if len(gd['year']) == 2:
                year += 2000
            return date(year, month, day)
        except (KeyError, ValueError):
            return None

    @classmethod
    def parse(cls, text: str, today: date) -> date:
        m = cls.first_match(text or "")
        if m is None:
            return today
        found = cls.to_date(m)
        if found is None:
            logger.debug("Date-like text %r is not a calendar date", m.group(0))
            return today
        if found.year <= cls.RECENT_YEAR_THRESHOLD:
            logger.debug("Ignoring implausible date %s from %r", found, m.group(0))
            return today
        return found


# ==================== PIPELINE ====================
class TicketParser:
    """
    Ticket photo -> ParsedTicket.

    Pipeline:
      1. Barcode stage     : token-scan the decoded payload; 2+ codes ends here
      2. Text stages       : tried in order until one returns text
      3. CandidateExtractor: validated, de-duplicated location codes
      4. RouteResolver     : origin / destination
      5. TicketDate        : departure date, else today

    Stages never raise; they return StageResult. The only error this
    class surfaces is MissingImageError.
    """

    def __init__(
        self,
        directory: AirportDirectory = DEFAULT_DIRECTORY,
        blocklist: NoiseBlocklist = DEFAULT_BLOCKLIST,
        barcode_stage: Optional[Stage] = None,
        text_stages: Sequence[Stage] = (),
        today: Optional[Callable[[], date]] = None,
        timezone: str = "UTC",
    ):
        self.extractor = CandidateExtractor(directory, blocklist)
        self.barcode_stage = barcode_stage
        self.text_stages = tuple(text_stages)
        self._today = today or (lambda: today_in(timezone))

    @property
    def stage_names(self) -> List[str]:
        stages = ([self.barcode_stage] if self.barcode_stage else []) + list(self.text_stages)
        return [getattr(s, "name", getattr(s, "__name__", repr(s))) for s in stages]

    def _try_barcode(self, image: RawImage, dbg: DebugCollector) -> Optional[Tuple[str, List[LocationCode]]]:
        if self.barcode_stage is None:
            return None
        result = self.barcode_stage(image)
        dbg.record_stage(result)
        if not result.ok:
            dbg.step(f"Barcode stage: {result.failure.reason if result.failure else 'no payload'}")
            return None
        codes = self.extractor.extract(result.text)
        if len(codes) < 2:
            dbg.step(f"Barcode payload has {len(codes)} usable code(s), falling through to OCR")
            return None
        dbg.step("Barcode payload resolved the route, skipping OCR")
        return result.text, codes

    def _obtain_text(self, image: RawImage, dbg: DebugCollector) -> StageResult:
        for stage in self.text_stages:
            result = stage(image)
            dbg.record_stage(result)
            if result.ok:
                dbg.step(f"Text obtained from {result.stage} ({len(result.text)} chars)")
                return result
            reason = result.failure.reason if result.failure else "no text"
            logger.info("Stage %s gave no text: %s", result.stage, reason)
            dbg.step(f"{result.stage} failed: {reason}")
        dbg.warn("No recognition stage produced text")
        return StageResult.failed("none", "all stages exhausted")

    def parse(self, image: Optional[RawImage], debug: Optional[DebugCollector] = None) -> ParsedTicket:
        if image is None or image.is_empty:
            raise MissingImageError("No ticket image provided")
        dbg = debug or _NO_DEBUG
        dbg.step(f"Parsing {image!r}")

        barcode = self._try_barcode(image, dbg)
        if barcode is not None:
            text, codes = barcode
            source = "barcode"
        else:
            result = self._obtain_text(image, dbg)
            text = result.text
            source = result.stage if result.ok else "none"
            codes = self.extractor.extract(text)

        dbg.record_text(text)
        dbg.record_candidates(codes)

        origin, destination = RouteResolver.resolve(codes)
        departure = TicketDate.parse(text, self._today())

        ticket = ParsedTicket(
            origin=origin.name if origin else "",
            destination=destination.name if destination else "",
            departure_date=departure.isoformat(),
            origin_code=origin.code if origin else "",
            destination_code=destination.code if destination else "",
            source=source,
        )
        logger.info(
            "Parsed ticket via %s: %s -> %s on %s",
            source, ticket.origin_code or "?", ticket.destination_code or "?", ticket.departure_date,
        )
        return ticket

    def cancel(self):
        """Abort in-flight network calls of cancelable stages."""
        for stage in self.text_stages:
            cancel = getattr(stage, "cancel", None)
            if callable(cancel):
                cancel()

    def close(self):
        """Release resources held by the stages (HTTP sessions)."""
        for stage in ([self.barcode_stage] if self.barcode_stage else []) + list(self.text_stages):
            close = getattr(stage, "close", None)
            if callable(close):
                close()
