"""Threshold alerting for forecast KPI values."""

from __future__ import annotations

from typing import Mapping, Optional

from models.kpi_tables import THRESHOLD_RULES
from models.records import Kpi, Mode
from models.schemas import AlertCondition, ThresholdRule


class ThresholdEvaluator:
    """Compares a KPI value with its rule; it reports and never notifies."""

    def __init__(self, rules: Mapping[Kpi, ThresholdRule] = THRESHOLD_RULES) -> None:
        self.rules = rules

    def evaluate(self, kpi: Kpi, value: float, mode: Mode) -> Optional[AlertCondition]:
        if mode is Mode.historical:
            return None
        rule = self.rules.get(kpi)
        if rule is None or not rule.is_breached(value):
            return None
        return AlertCondition(kpi=kpi, value=value, rule=rule)
