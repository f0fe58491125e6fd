"""Aggregation logic for KPI readings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from models.records import SELECT_ALL, ForecastReading, Mode, Reading
from models.schemas import Selection

Record = Union[Reading, ForecastReading]


@dataclass(frozen=True)
class AggregationSummary:
    """Row count and mean of one KPI over a filtered record set."""

    row_count: int = 0
    mean_value: float = 0.0


def coerce_value(value: object) -> float:
    """Numeric value of a field, with empty or non-numeric entries as 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate or "_" in candidate:
            return 0.0
        try:
            number = float(candidate)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def select_records(self, records: Iterable[Record], selection: Selection) -> List[Record]:
        """Records in the selection's time window.

        Historical mode keeps readings of the selected month (all of them for
        "Select All"); forecast mode ignores the month and keeps everything.
        """
        if selection.mode is Mode.forecast or selection.month == SELECT_ALL:
            return list(records)
        return [
            record
            for record in records
            if getattr(record, "month", None) == selection.month
        ]

    def summarize(self, records: Iterable[Record], selection: Selection) -> AggregationSummary:
        selected: Sequence[Record] = self.select_records(records, selection)
        if not selected:
            return AggregationSummary()

        total = 0.0
        for record in selected:
            total += coerce_value(record.value_for(selection.kpi.value))
        return AggregationSummary(row_count=len(selected), mean_value=total / len(selected))

    def aggregate(self, records: Iterable[Record], selection: Selection) -> float:
        """Mean of the selected KPI; 0.0 when nothing is selected."""
        return self.summarize(records, selection).mean_value
