from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import typer

from models.schemas import AlertCondition, DerivedState, Selection
from services.parser import ParseIssue
from services.visual import display_label


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_alert(alert: AlertCondition) -> None:
    typer.secho(f"ALERT: {alert.message}", fg=typer.colors.RED, err=True)


def render_state(
    selection: Selection,
    state: DerivedState,
    issues: Optional[Sequence[ParseIssue]] = None,
) -> None:
    echo_heading("Selection")
    echo_key_values(
        [
            ("mode", selection.mode.value),
            ("month", selection.month),
            ("kpi", selection.kpi.value),
            ("floor", selection.floor.value),
        ]
    )

    typer.echo()
    echo_heading("Derived State")
    echo_key_values(
        [
            ("kpi_value", f"{state.kpi_value:.2f}"),
            ("label", display_label(state.kpi_value, selection.kpi)),
            ("color", state.color.hex),
            ("alert", state.alert.message if state.alert else "none"),
        ]
    )

    if issues is None:
        return
    typer.echo()
    echo_heading("Parse Issues")
    if issues:
        for issue in issues:
            typer.echo(f"  - row {issue.row_number}: {issue.reason} ({issue.field})")
    else:
        typer.echo("No parse issues recorded.")


def render_report_line(label: str, row_count: int, state: DerivedState) -> None:
    marker = " !" if state.alert else ""
    typer.echo(
        f"{label:<12} rows={row_count:<6} value={state.kpi_value:>10.2f} "
        f"color={state.color.hex}{marker}"
    )
