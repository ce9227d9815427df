"""Parsing helpers that turn the semicolon-delimited export into merchant records."""
from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .settings import DEFAULT_DEDUP_KEY, DEFAULT_MONTH_SEPARATOR, ImportOptions

logger = logging.getLogger(__name__)

DELIMITER = ";"
BYTE_ORDER_MARK = "\ufeff"
EXPECTED_COLUMNS = ["pillar", "product_type", "brand_id", "merchant_name", "tpt", "tpv", "month"]

MONTHS: Dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

RawRow = Dict[str, str]


class InvalidMonthError(ValueError):
    """Raised when a month token cannot be turned into a calendar date."""


@dataclass(frozen=True, slots=True)
class MerchantRecord:
    """One merchant's TPT/TPV figures for a single month."""

    pillar: str
    product_type: str
    brand_id: str
    merchant_name: str
    tpt: float
    tpv: float
    date: date

    def key(self, fields: Iterable[str] = DEFAULT_DEDUP_KEY) -> Tuple[object, ...]:
        return tuple(getattr(self, name) for name in fields)

    def as_row(self) -> Tuple[str, str, str, str, float, float, str]:
        return (
            self.pillar,
            self.product_type,
            self.brand_id,
            self.merchant_name,
            self.tpt,
            self.tpv,
            self.date.isoformat(),
        )


def iter_rows(content: str) -> Iterator[RawRow]:
    """Yield one mapping of header name to trimmed value per data line.

    Values are matched to headers by position. Short lines are padded with
    empty strings and lines whose fields are all blank are skipped. There is
    no quoting support, so a ``;`` inside a value splits it.
    """
    if content.startswith(BYTE_ORDER_MARK):
        content = content[len(BYTE_ORDER_MARK):]

    lines = io.StringIO(content)
    headers: List[str] = []
    for line in lines:
        if line.strip():
            headers = [header.strip() for header in line.split(DELIMITER)]
            break
    if not headers:
        return

    for line in lines:
        values = [value.strip() for value in line.split(DELIMITER)]
        if not any(values):
            continue
        yield {
            header: values[idx] if idx < len(values) else ""
            for idx, header in enumerate(headers)
            if header
        }


def parse_month(token: str, separator: str = DEFAULT_MONTH_SEPARATOR) -> date:
    """Convert ``jan_25`` style tokens into the first day of that month."""
    pattern = rf"([a-z]{{3}}){re.escape(separator)}(\d{{2}}|\d{{4}})"
    match = re.fullmatch(pattern, (token or "").strip(), re.IGNORECASE | re.ASCII)
    if match is None:
        raise InvalidMonthError(f"Unrecognised month token: {token!r}")

    month = MONTHS.get(match.group(1).lower())
    if month is None:
        raise InvalidMonthError(f"Unrecognised month abbreviation: {match.group(1)!r}")

    year = match.group(2)
    if len(year) == 2:
        year = f"20{year}"
    try:
        return date(int(year), month, 1)
    except ValueError as exc:
        raise InvalidMonthError(f"Unrecognised month token: {token!r}") from exc


def coerce_number(raw: Optional[str], *, strip_thousands: bool = False) -> float:
    """Parse a numeric field, falling back to ``0.0`` for anything malformed."""
    text = (raw or "").strip()
    if strip_thousands:
        text = text.replace(",", "")
    try:
        value = float(text)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def build_record(
    row: RawRow,
    *,
    month_separator: str = DEFAULT_MONTH_SEPARATOR,
) -> Optional[MerchantRecord]:
    """Return a record for ``row`` or ``None`` when pillar or brand_id is blank.

    Raises :class:`InvalidMonthError` when the month column cannot be parsed.
    """
    pillar = row.get("pillar", "")
    brand_id = row.get("brand_id", "")
    if not pillar or not brand_id:
        return None

    return MerchantRecord(
        pillar=pillar,
        product_type=row.get("product_type", ""),
        brand_id=brand_id,
        merchant_name=row.get("merchant_name", ""),
        tpt=coerce_number(row.get("tpt")),
        tpv=coerce_number(row.get("tpv"), strip_thousands=True),
        date=parse_month(row.get("month", ""), month_separator),
    )


class Deduplicator:
    """Keep the first record seen for each identity key within one run."""

    def __init__(self, key_fields: Iterable[str] = DEFAULT_DEDUP_KEY) -> None:
        self.key_fields = tuple(key_fields)
        self.duplicates_skipped = 0
        self._seen: set[Tuple[object, ...]] = set()

    def accept(self, record: MerchantRecord) -> bool:
        key = record.key(self.key_fields)
        if key in self._seen:
            self.duplicates_skipped += 1
            return False
        self._seen.add(key)
        return True


@dataclass
class ParsedDataset:
    records: List[MerchantRecord] = field(default_factory=list)
    duplicates_skipped: int = 0
    invalid_skipped: int = 0


def read_records(content: str, options: ImportOptions | None = None) -> ParsedDataset:
    """Parse, validate and deduplicate the CSV payload in input order."""
    options = options or ImportOptions()
    dedup = Deduplicator(options.dedup_key)
    dataset = ParsedDataset()

    for line_number, row in enumerate(iter_rows(content), start=1):
        if line_number == 1:
            missing = [column for column in EXPECTED_COLUMNS if column not in row]
            if missing:
                logger.warning("CSV header is missing expected columns: %s", missing)
        try:
            record = build_record(row, month_separator=options.month_separator)
        except InvalidMonthError as exc:
            if options.unknown_month == "fail":
                raise
            dataset.invalid_skipped += 1
            logger.warning("Skipping data row %d: %s", line_number, exc)
            continue
        if record is None:
            continue
        if dedup.accept(record):
            dataset.records.append(record)

    dataset.duplicates_skipped = dedup.duplicates_skipped
    logger.info(
        "Parsed %d unique records (%d duplicates, %d invalid months skipped)",
        len(dataset.records),
        dataset.duplicates_skipped,
        dataset.invalid_skipped,
    )
    return dataset
