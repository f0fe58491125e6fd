from __future__ import annotations

import threading
from typing import Iterator, List

import pytest

from models.errors import SourceUnavailable
from models.kpi_tables import HIGH_COLOR, LOW_COLOR
from models.records import Floor, ForecastReading, Kpi, Mode, Reading, SourceKind
from models.schemas import AlertCondition, DerivedState, Selection
from services.engine import KpiEngine, derive_state
from storage.sources import SourceStore

READINGS = (
    Reading(co2=1200, month="January"),
    Reading(co2=800, month="January"),
    Reading(co2=500, month="February"),
)
FORECAST = (
    ForecastReading(values={"CO2": "1500", "Humidity": "45"}),
    ForecastReading(values={"CO2": "900", "Humidity": "45"}),
)


class StubStore(SourceStore):
    """Serves documents from memory; unknown locations are unavailable."""

    def __init__(self, documents: dict[str, str], gate: threading.Event | None = None) -> None:
        super().__init__()
        self.documents = documents
        self.gate = gate
        self.closed = False

    def read_text(self, location: str) -> str:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if location not in self.documents:
            raise SourceUnavailable(location, "not found")
        return self.documents[location]

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def engine() -> Iterator[KpiEngine]:
    service = KpiEngine(workers=1)
    yield service
    service.shutdown()


def test_derive_state_empty_datasets() -> None:
    state = derive_state((), (), Selection())

    assert state == DerivedState(kpi_value=0.0, color=LOW_COLOR, alert=None)


def test_derive_state_historical_month() -> None:
    state = derive_state(READINGS, FORECAST, Selection(month="January", kpi=Kpi.co2))

    assert state.kpi_value == 1000.0
    assert state.alert is None
    assert 0.0 < state.color.r < 1.0


def test_derive_state_forecast_alert() -> None:
    state = derive_state(READINGS, FORECAST, Selection(mode=Mode.forecast, kpi=Kpi.co2))

    assert state.kpi_value == 1200.0
    assert state.color == HIGH_COLOR
    assert isinstance(state.alert, AlertCondition)
    assert state.alert.kpi is Kpi.co2
    assert state.alert.value == 1200.0


def test_engine_starts_with_zero_state(engine: KpiEngine) -> None:
    assert engine.state.kpi_value == 0.0
    assert engine.state == derive_state((), (), engine.selection)
    assert engine.readings == ()
    assert engine.forecast == ()


def test_selection_changes_recompute_and_notify(engine: KpiEngine) -> None:
    states: List[DerivedState] = []
    engine.subscribe(states.append)
    engine.set_historical(READINGS)

    engine.select(month="january")
    engine.select(floor="2nd")

    assert [state.kpi_value for state in states] == [
        pytest.approx(2500 / 3),
        1000.0,
        1000.0,
    ]
    assert engine.selection.month == "January"
    assert engine.selection.floor is Floor.second
    assert engine.visibility()("FirstFloorBall", None)


def test_invalid_selection_is_rejected_without_changing_state(engine: KpiEngine) -> None:
    engine.set_historical(READINGS)
    before = engine.state

    with pytest.raises(ValueError):
        engine.select(kpi="Radon")

    assert engine.state is before
    assert engine.selection.kpi is Kpi.co2


def test_alert_fires_once_per_value_change(engine: KpiEngine) -> None:
    alerts: List[AlertCondition] = []
    engine.on_alert(alerts.append)
    engine.set_forecast(FORECAST)
    engine.set_historical(READINGS)

    engine.select(mode=Mode.forecast)
    engine.select(floor=Floor.first)
    engine.select(month="February")

    assert [alert.value for alert in alerts] == [1200.0]

    engine.select(mode=Mode.historical)
    engine.select(mode=Mode.forecast)

    assert [alert.value for alert in alerts] == [1200.0, 1200.0]


def test_historical_mode_never_notifies(engine: KpiEngine) -> None:
    alerts: List[AlertCondition] = []
    engine.on_alert(alerts.append)
    engine.set_historical((Reading(co2=5000, month="May"),))

    engine.select(month="May")

    assert alerts == []
    assert engine.state.alert is None


def test_datasets_are_write_once(engine: KpiEngine) -> None:
    engine.set_historical(READINGS)
    engine.set_forecast(FORECAST)

    with pytest.raises(RuntimeError):
        engine.set_historical(())
    with pytest.raises(RuntimeError):
        engine.set_forecast(())


def test_start_loading_applies_both_sources(engine: KpiEngine) -> None:
    store = StubStore(
        {
            "iaq.csv": "start_time,co2\n2023-01-01T00:00:00,1200\n2023-01-02T00:00:00,bad\n",
            "forecast.csv": "CO2\n1500\n900\n",
        }
    )

    engine.start_loading(store, "iaq.csv", "forecast.csv")

    assert engine.wait_until_loaded(timeout=5)
    assert engine.state.kpi_value == 600.0
    assert len(engine.forecast) == 2
    assert any(
        issue.field == "co2" and issue.row_number == 3
        for issue in engine.issues[SourceKind.historical]
    )
    assert engine.select(mode=Mode.forecast).kpi_value == 1200.0


def test_failed_source_leaves_dataset_empty(engine: KpiEngine, caplog) -> None:
    store = StubStore({"forecast.csv": "CO2\n1500\n"})

    engine.start_loading(store, "missing.csv", "forecast.csv")

    assert engine.wait_until_loaded(timeout=5)
    assert engine.readings == ()
    assert engine.state.kpi_value == 0.0
    assert engine.select(mode=Mode.forecast).kpi_value == 1500.0
    assert any(
        getattr(record, "source", None) == "missing.csv" for record in caplog.records
    )


def test_aggregation_runs_on_empty_sets_until_loaded(engine: KpiEngine) -> None:
    gate = threading.Event()
    store = StubStore(
        {"iaq.csv": "start_time,co2\n2023-01-01T00:00:00,700\n", "f.csv": "CO2\n1\n"},
        gate,
    )

    engine.start_loading(store, "iaq.csv", "f.csv")

    assert engine.wait_until_loaded(timeout=0.05) is False
    assert engine.state.kpi_value == 0.0
    gate.set()
    assert engine.wait_until_loaded(timeout=5)
    assert engine.state.kpi_value == 700.0


def test_start_loading_twice_is_rejected(engine: KpiEngine) -> None:
    store = StubStore({"a": "CO2\n1\n", "b": "CO2\n1\n"})
    engine.start_loading(store, "a", "b")

    with pytest.raises(RuntimeError):
        engine.start_loading(store, "a", "b")


def test_shutdown_closes_store() -> None:
    engine = KpiEngine(workers=1)
    store = StubStore({"a": "CO2\n1\n", "b": "CO2\n1\n"})
    engine.start_loading(store, "a", "b")

    engine.shutdown()

    assert store.closed is True


def test_listeners_receive_states_in_order_across_threads(engine: KpiEngine) -> None:
    engine.select(mode=Mode.forecast)
    delivering = threading.Event()
    release = threading.Event()
    seen: List[DerivedState] = []

    def listener(state: DerivedState) -> None:
        seen.append(state)
        if threading.current_thread().name == "historical-loader":
            delivering.set()
            release.wait(timeout=5)

    engine.subscribe(listener)
    historical = threading.Thread(
        target=engine.set_historical, args=(READINGS,), name="historical-loader"
    )
    forecast = threading.Thread(target=engine.set_forecast, args=(FORECAST,))

    historical.start()
    assert delivering.wait(timeout=5)
    forecast.start()
    forecast.join(timeout=0.1)
    assert forecast.is_alive()

    release.set()
    historical.join(timeout=5)
    forecast.join(timeout=5)

    assert [state.kpi_value for state in seen] == [0.0, 1200.0]
    assert seen[-1] == engine.state


def test_listener_can_change_selection(engine: KpiEngine) -> None:
    engine.set_historical(READINGS)
    seen: List[float] = []

    def listener(state: DerivedState) -> None:
        seen.append(state.kpi_value)
        if engine.selection.month != "February":
            engine.select(month="February")

    engine.subscribe(listener)
    engine.select(month="January")

    assert seen == [1000.0, 500.0]
    assert engine.state.kpi_value == 500.0


def test_unexpected_load_failure_is_logged(engine: KpiEngine, caplog) -> None:
    def failing_listener(state: DerivedState) -> None:
        raise ValueError("listener failed")

    engine.subscribe(failing_listener)
    store = StubStore({"iaq.csv": "start_time,co2\n2023-01-01T00:00:00,700\n"})

    engine.start_loading(store, "iaq.csv", "missing.csv")
    assert engine.wait_until_loaded(timeout=5)
    engine.shutdown()

    failures = [record for record in caplog.records if record.levelname == "ERROR"]
    assert {getattr(record, "source", None) for record in failures} == {
        "iaq.csv",
        "missing.csv",
    }
    assert all(record.exc_info is not None for record in failures)
