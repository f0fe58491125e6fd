from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import typer
from pydantic import ValidationError

from cli.config import CLIConfig, load_config
from cli.render import render_alert, render_report_line, render_state
from logging_config import configure_logging
from models.records import MONTH_OPTIONS, Floor, Kpi, Mode, SourceKind
from services.engine import KpiEngine, build_default_engine
from services.visual import visibility_predicate


@dataclass
class CLIState:
    config: CLIConfig
    engine: Optional[KpiEngine] = field(default=None)

    def open_engine(self) -> KpiEngine:
        """Start loading both sources and wait for them to settle."""
        if self.engine is None:
            self.engine = build_default_engine(
                self.config.historical_source, self.config.forecast_source
            )
            self.engine.on_alert(render_alert)
            if not self.engine.wait_until_loaded(timeout=self.config.load_timeout):
                typer.secho(
                    f"Sources still loading after {self.config.load_timeout}s; "
                    "values reflect partial data.",
                    fg=typer.colors.YELLOW,
                    err=True,
                )
        return self.engine

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.shutdown()
        self.engine = None
        build_default_engine.cache_clear()


app = typer.Typer(
    help="Aggregate indoor air quality KPIs and map them to colours, floors and alerts.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _select(engine: KpiEngine, **changes: object) -> None:
    try:
        engine.select(**changes)
    except ValidationError as exc:
        reasons = "; ".join(error["msg"] for error in exc.errors())
        raise typer.BadParameter(reasons) from exc


@app.callback()
def main(
    ctx: typer.Context,
    historical: Optional[str] = typer.Option(
        None,
        "--historical",
        "-H",
        help="Historical CSV path or URL (defaults to KPI_HISTORICAL_SOURCE).",
    ),
    forecast: Optional[str] = typer.Option(
        None,
        "--forecast",
        "-F",
        help="Forecast CSV path or URL (defaults to KPI_FORECAST_SOURCE).",
    ),
    load_timeout: Optional[float] = typer.Option(
        None,
        "--load-timeout",
        help="Maximum seconds to wait for both sources to load.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log parsing details."),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        historical_source=historical,
        forecast_source=forecast,
        load_timeout=load_timeout,
        verbose=verbose,
    )
    configure_logging(config.log_level, force=True)
    state = CLIState(config=config)
    ctx.obj = state
    ctx.call_on_close(state.close)


@app.command("state")
def state_command(
    ctx: typer.Context,
    mode: Mode = typer.Option(Mode.historical, "--mode", "-m", case_sensitive=False),
    month: str = typer.Option(
        "Select All", "--month", help="Month name, or 'Select All'. Ignored in forecast mode."
    ),
    kpi: Kpi = typer.Option(Kpi.co2, "--kpi", "-k", case_sensitive=False),
    floor: Floor = typer.Option(Floor.all, "--floor", case_sensitive=False),
    as_json: bool = typer.Option(False, "--json", help="Print the derived state as JSON."),
    show_issues: bool = typer.Option(
        False, "--issues/--no-issues", help="List fields replaced by neutral values."
    ),
) -> None:
    """Compute the KPI value, colour and alert for one selection."""
    state = _get_state(ctx)
    engine = state.open_engine()
    _select(engine, mode=mode, month=month, kpi=kpi, floor=floor)

    if as_json:
        typer.echo(engine.state.model_dump_json(indent=2))
        return

    kind = SourceKind.forecast if mode is Mode.forecast else SourceKind.historical
    render_state(engine.selection, engine.state, engine.issues[kind] if show_issues else None)


@app.command("report")
def report_command(
    ctx: typer.Context,
    kpi: Kpi = typer.Option(Kpi.co2, "--kpi", "-k", case_sensitive=False),
) -> None:
    """Walk every historical month and the forecast for one KPI."""
    state = _get_state(ctx)
    engine = state.open_engine()

    for month in MONTH_OPTIONS:
        _select(engine, mode=Mode.historical, month=month, kpi=kpi)
        summary = engine.aggregator.summarize(engine.readings, engine.selection)
        render_report_line(month, summary.row_count, engine.state)

    _select(engine, mode=Mode.forecast, kpi=kpi)
    summary = engine.aggregator.summarize(engine.forecast, engine.selection)
    render_report_line("Forecast", summary.row_count, engine.state)


@app.command("visible")
def visible_command(
    label: str = typer.Argument(..., help="Label of the spatial element."),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Label of its parent."),
    floor: Floor = typer.Option(Floor.all, "--floor", case_sensitive=False),
) -> None:
    """Report whether an element is shown under a floor selection."""
    is_visible = visibility_predicate(floor)
    typer.echo("visible" if is_visible(label, parent) else "hidden")


@app.command("months")
def months_command() -> None:
    """List the month choices offered in historical mode."""
    for option in MONTH_OPTIONS:
        typer.echo(option)


if __name__ == "__main__":
    app()
