"""Parse exported CSV text into typed historical and forecast records."""

from __future__ import annotations

import csv
import functools
import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from models.errors import SourceUnavailable
from models.records import (
    MONTH_NAMES,
    ForecastReading,
    ForecastReadingSet,
    Reading,
    ReadingSet,
    SourceKind,
)

logger = logging.getLogger(__name__)

MALFORMED_FIELD = "malformed field"
UNPARSEABLE_TIMESTAMP = "unparseable timestamp"

# Reading attribute -> header in the historical export.
_INTEGER_COLUMNS = {
    "co2": "co2",
    "humidity": "humidity",
    "temperature": "temp",
    "occupancy": "occupancy",
}
_SPACE_UTIL_COLUMN = "spaceutil"
_TIMESTAMP_COLUMN = "start_time"
_DATE_COLUMN = "date"

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")

_FALLBACK_TIMESTAMP_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)


@dataclass(frozen=True)
class ParseIssue:
    """A field the parser replaced with a neutral value."""

    row_number: int
    reason: str
    field: str


@dataclass
class ParseResult:
    records: Tuple[Union[Reading, ForecastReading], ...] = ()
    issues: List[ParseIssue] = field(default_factory=list)


def parse_int(raw: Optional[str]) -> Optional[int]:
    """Best-effort integer: the leading signed digits of ``raw``, else None."""
    if raw is None:
        return None
    match = _LEADING_INTEGER.match(raw)
    if match is None:
        return None
    return int(match.group(1))


def parse_fraction_percent(raw: Optional[str]) -> Optional[int]:
    """Convert a 0..1 fraction such as ``"0.257"`` to a truncated percentage."""
    if raw is None or "_" in raw:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value * 100)


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass

    for fmt in _FALLBACK_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid timestamp format: {value!r}")


def month_name(moment: datetime) -> str:
    """Month of ``moment`` in English, independent of the process locale."""
    return MONTH_NAMES[moment.month - 1]


def _cell(row: Dict[str, Optional[str]], columns: Dict[str, str], header: str) -> Optional[str]:
    column = columns.get(header)
    if column is None:
        return None
    value = row.get(column)
    return value if isinstance(value, str) else None


class RecordParser:
    """Turns delimited text with a header row into typed records.

    Field-level problems never fail a row: numbers fall back to 0 and an
    unreadable timestamp leaves the row without a month. Each substitution is
    reported as a :class:`ParseIssue` and logged.
    """

    def parse(
        self, raw_text: str, source_kind: SourceKind, source: str = "<memory>"
    ) -> ParseResult:
        try:
            reader = csv.DictReader(io.StringIO(raw_text, newline=""))
            if not reader.fieldnames:
                raise SourceUnavailable(source, "missing header row")
            columns = {
                name.strip().lower(): name for name in reader.fieldnames if name is not None
            }
            if source_kind is SourceKind.historical:
                result = self._parse_historical(reader, columns, source)
            else:
                result = self._parse_forecast(reader)
        except csv.Error as exc:
            raise SourceUnavailable(source, f"unreadable CSV: {exc}") from exc

        logger.info(
            "Parsed %s source",
            source_kind.value,
            extra={
                "source": source,
                "row_count": len(result.records),
                "reason": f"{len(result.issues)} issues" if result.issues else None,
            },
        )
        return result

    def _parse_historical(
        self, reader: csv.DictReader, columns: Dict[str, str], source: str
    ) -> ParseResult:
        result = ParseResult()
        readings: list[Reading] = []

        for row_number, row in enumerate(reader, start=2):
            cell = functools.partial(_cell, row, columns)

            values: Dict[str, int] = {}
            for attribute, header in _INTEGER_COLUMNS.items():
                raw = cell(header)
                parsed = parse_int(raw)
                if parsed is None:
                    self._record_issue(result, source, row_number, MALFORMED_FIELD, header, raw)
                    parsed = 0
                values[attribute] = parsed

            raw_util = cell(_SPACE_UTIL_COLUMN)
            space_util = parse_fraction_percent(raw_util)
            if space_util is None:
                self._record_issue(
                    result, source, row_number, MALFORMED_FIELD, _SPACE_UTIL_COLUMN, raw_util
                )
                space_util = 0

            raw_timestamp = cell(_TIMESTAMP_COLUMN)
            month: Optional[str] = None
            try:
                month = month_name(parse_timestamp(raw_timestamp or ""))
            except ValueError:
                self._record_issue(
                    result,
                    source,
                    row_number,
                    UNPARSEABLE_TIMESTAMP,
                    _TIMESTAMP_COLUMN,
                    raw_timestamp,
                )

            readings.append(
                Reading(
                    space_util=space_util,
                    month=month,
                    source_date=cell(_DATE_COLUMN),
                    **values,
                )
            )

        result.records = tuple(readings)
        return result

    @staticmethod
    def _parse_forecast(reader: csv.DictReader) -> ParseResult:
        records = []
        for row in reader:
            values = {
                key.strip(): (value or "")
                for key, value in row.items()
                if key is not None
            }
            records.append(ForecastReading(values=values))
        return ParseResult(records=tuple(records))

    @staticmethod
    def _record_issue(
        result: ParseResult,
        source: str,
        row_number: int,
        reason: str,
        field_name: str,
        raw: Optional[str],
    ) -> None:
        result.issues.append(ParseIssue(row_number=row_number, reason=reason, field=field_name))
        logger.warning(
            "Substituting neutral value for row %s: %s",
            row_number,
            reason,
            extra={
                "source": source,
                "row_number": row_number,
                "reason": reason,
                "field": field_name,
                "invalid_value": raw,
            },
        )


def load_historical(text: str, source: str = "<memory>") -> ReadingSet:
    """Parse a historical export, degrading to an empty set when unreadable."""
    try:
        result = RecordParser().parse(text, SourceKind.historical, source=source)
    except SourceUnavailable as exc:
        logger.warning("Historical source unavailable: %s", exc.reason, extra={"source": source})
        return ()
    return result.records  # type: ignore[return-value]


def load_forecast(text: str, source: str = "<memory>") -> ForecastReadingSet:
    """Parse a forecast export, degrading to an empty set when unreadable."""
    try:
        result = RecordParser().parse(text, SourceKind.forecast, source=source)
    except SourceUnavailable as exc:
        logger.warning("Forecast source unavailable: %s", exc.reason, extra={"source": source})
        return ()
    return result.records  # type: ignore[return-value]
