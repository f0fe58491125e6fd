"""Selection state, dataset loading and recompute orchestration."""

from __future__ import annotations

import functools
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import lru_cache
from pathlib import Path
from threading import Lock, RLock
from typing import Callable, Dict, List, Optional

from models.errors import SourceUnavailable
from models.records import (
    ForecastReadingSet,
    Mode,
    ReadingSet,
    SourceKind,
)
from models.schemas import AlertCondition, DerivedState, Selection
from services.aggregator import Aggregator
from services.parser import ParseIssue, RecordParser
from services.thresholds import ThresholdEvaluator
from services.visual import VisibilityPredicate, color_for, normalize, visibility_predicate
from settings import get_settings
from storage.sources import SourceStore

logger = logging.getLogger(__name__)

StateListener = Callable[[DerivedState], None]
AlertListener = Callable[[AlertCondition], None]

_default_aggregator = Aggregator()
_default_evaluator = ThresholdEvaluator()


def derive_state(
    readings: ReadingSet,
    forecast: ForecastReadingSet,
    selection: Selection,
    aggregator: Aggregator = _default_aggregator,
    evaluator: ThresholdEvaluator = _default_evaluator,
) -> DerivedState:
    """Compute value, colour and alert for one selection in a single pass."""
    records = forecast if selection.mode is Mode.forecast else readings
    value = aggregator.aggregate(records, selection)
    alert = evaluator.evaluate(selection.kpi, value, selection.mode)
    color = color_for(normalize(value, selection.kpi))
    return DerivedState(kpi_value=value, color=color, alert=alert)


class KpiEngine:
    """Holds the datasets and selection and keeps a derived state current.

    Datasets are assigned at most once. Every assignment or selection change
    recomputes the whole :class:`DerivedState` under a lock and hands it to
    the state listeners. Alert listeners only hear about an alert when the
    KPI value differs from the previous derived value.
    """

    def __init__(
        self,
        aggregator: Optional[Aggregator] = None,
        evaluator: Optional[ThresholdEvaluator] = None,
        parser: Optional[RecordParser] = None,
        workers: int = 2,
        selection: Optional[Selection] = None,
    ) -> None:
        self.aggregator = aggregator or Aggregator()
        self.evaluator = evaluator or ThresholdEvaluator()
        self.parser = parser or RecordParser()
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self.issues: Dict[SourceKind, List[ParseIssue]] = {kind: [] for kind in SourceKind}
        self._readings: Optional[ReadingSet] = None
        self._forecast: Optional[ForecastReadingSet] = None
        self._selection = selection or Selection()
        self._state = derive_state((), (), self._selection, self.aggregator, self.evaluator)
        self._listeners: List[StateListener] = []
        self._alert_listeners: List[AlertListener] = []
        self._futures: Dict[SourceKind, Future[None]] = {}
        self._store: Optional[SourceStore] = None
        self._lock = Lock()
        # Held from compute through delivery so listeners see states in order.
        self._delivery_lock = RLock()

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def state(self) -> DerivedState:
        return self._state

    @property
    def readings(self) -> ReadingSet:
        return self._readings or ()

    @property
    def forecast(self) -> ForecastReadingSet:
        return self._forecast or ()

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def on_alert(self, listener: AlertListener) -> None:
        self._alert_listeners.append(listener)

    def select(self, **changes: object) -> DerivedState:
        """Apply selection changes (mode, month, kpi, floor) and recompute."""
        selection = Selection.model_validate({**self._selection.model_dump(), **changes})
        with self._lock:
            self._selection = selection
        return self._recompute()

    def visibility(self) -> VisibilityPredicate:
        return visibility_predicate(self._selection.floor)

    def set_historical(self, readings: ReadingSet) -> DerivedState:
        with self._lock:
            if self._readings is not None:
                raise RuntimeError("Historical readings are already loaded.")
            self._readings = tuple(readings)
        return self._recompute()

    def set_forecast(self, forecast: ForecastReadingSet) -> DerivedState:
        with self._lock:
            if self._forecast is not None:
                raise RuntimeError("Forecast readings are already loaded.")
            self._forecast = tuple(forecast)
        return self._recompute()

    def start_loading(
        self,
        store: SourceStore,
        historical_location: str,
        forecast_location: str,
    ) -> None:
        """Fetch and parse both sources in the background, once each."""
        self._store = store
        for kind, location in (
            (SourceKind.historical, historical_location),
            (SourceKind.forecast, forecast_location),
        ):
            if kind in self._futures:
                raise RuntimeError(f"The {kind.value} source was already requested.")
            self._futures[kind] = self.executor.submit(self._load, store, kind, location)
            self._futures[kind].add_done_callback(
                functools.partial(_log_load_failure, kind=kind, location=location)
            )

    def wait_until_loaded(self, timeout: Optional[float] = None) -> bool:
        """Block until both loads settle; False if the timeout elapsed first."""
        _, pending = wait(list(self._futures.values()), timeout=timeout)
        return not pending

    def shutdown(self) -> None:
        """Cancel queued loads, wait for running ones and release the store."""
        self.executor.shutdown(wait=True, cancel_futures=True)
        if self._store is not None:
            self._store.close()
            self._store = None

    def _load(self, store: SourceStore, kind: SourceKind, location: str) -> None:
        try:
            text = store.read_text(location)
            result = self.parser.parse(text, kind, source=location)
        except SourceUnavailable as exc:
            logger.warning(
                "Leaving %s dataset empty",
                kind.value,
                extra={"source": location, "reason": exc.reason},
            )
            result = None

        records = result.records if result is not None else ()
        if result is not None:
            self.issues[kind] = list(result.issues)
        if kind is SourceKind.historical:
            self.set_historical(records)  # type: ignore[arg-type]
        else:
            self.set_forecast(records)  # type: ignore[arg-type]

    def _recompute(self) -> DerivedState:
        with self._delivery_lock:
            with self._lock:
                selection = self._selection
                previous = self._state
                state = derive_state(
                    self.readings,
                    self.forecast,
                    selection,
                    aggregator=self.aggregator,
                    evaluator=self.evaluator,
                )
                self._state = state
                listeners = list(self._listeners)
                alert_listeners = list(self._alert_listeners)

            logger.debug(
                "Recomputed derived state",
                extra={
                    "kpi": selection.kpi.value,
                    "mode": selection.mode.value,
                    "month": selection.month,
                    "value": round(state.kpi_value, 3),
                },
            )
            for listener in listeners:
                listener(state)

            if state.alert is not None and previous.kpi_value != state.kpi_value:
                logger.warning(
                    "%s",
                    state.alert.message,
                    extra={"kpi": state.alert.kpi.value, "value": state.alert.value},
                )
                for alert_listener in alert_listeners:
                    alert_listener(state.alert)
            return state


def _log_load_failure(future: Future[None], kind: SourceKind, location: str) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is None:
        return
    logger.error(
        "Loading the %s source failed",
        kind.value,
        exc_info=exc,
        extra={"source": location, "reason": str(exc)},
    )


@lru_cache
def build_default_engine(
    historical_source: Optional[str] = None,
    forecast_source: Optional[str] = None,
    workers: Optional[int] = None,
) -> KpiEngine:
    """Factory that wires an engine and starts loading the configured sources."""
    settings = get_settings()
    engine = KpiEngine(workers=workers or settings.loader_workers)
    store = SourceStore(root_path=Path.cwd(), timeout=settings.source_timeout)
    engine.start_loading(
        store,
        historical_source or settings.historical_source,
        forecast_source or settings.forecast_source,
    )
    return engine
