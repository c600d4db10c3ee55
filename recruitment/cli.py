"""Command line entry point for the recruitment interview scheduler."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from recruitment.config import Settings
from recruitment.heuristics.greedy import unscheduled
from recruitment.io.read import read_snapshot_from_excel
from recruitment.io.write import make_assignment_csv, make_excel_report, make_ics
from recruitment.service import RecruitmentService
from recruitment.store import JsonFileRepository

app = typer.Typer(help="Recruitment interview auto-assignment")

_state: dict = {}

STATE_HELP = "State JSON file (default: state_path from settings)"


def _settings() -> Settings:
    return _state.get("settings") or Settings()


def _state_file(state: Optional[Path], *, must_exist: bool = False) -> Path:
    path = state or Path(_settings().state_path)
    if must_exist and not path.is_file():
        typer.secho(f"State file not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return path


def _service(state: Optional[Path]) -> RecruitmentService:
    return RecruitmentService(JsonFileRepository(_state_file(state)), _settings())


def _count_assigned(snapshot) -> int:
    return sum(1 for a in snapshot.applicants for s in (1, 2) if a.assignment(s) is not None)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log scheduler decisions"),
) -> None:
    settings = Settings.from_file(config) if config else Settings()
    if verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    _state["settings"] = settings
    logging.basicConfig(level=getattr(logging, settings.log_level), format="%(levelname)s: %(message)s")


@app.command()
def reconcile(state: Optional[Path] = typer.Argument(None, help=STATE_HELP)) -> None:
    """Assign interviews to every eligible applicant that can be placed."""

    service = _service(state)
    before = _count_assigned(service.snapshot())
    after = _count_assigned(service.reconcile())
    typer.echo(f"{after - before} new interview(s) scheduled; {after} in total.")


@app.command("import-workbook")
def import_workbook(
    workbook: Path = typer.Argument(..., exists=True, dir_okay=False, help="Input .xlsx"),
    state: Optional[Path] = typer.Argument(None, help=STATE_HELP),
) -> None:
    """Load applicants, interviewers, slots and capacity from Excel, then reconcile."""

    try:
        snapshot = read_snapshot_from_excel(workbook, timezone=_settings().timezone)
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    service = _service(state)
    service.repository.update(lambda _: snapshot)
    done = service.reconcile()
    typer.echo(f"Imported {len(done.applicants)} applicants; {_count_assigned(done)} interview(s) scheduled.")


@app.command()
def export(
    state: Optional[Path] = typer.Argument(None, dir_okay=False, help=STATE_HELP),
    xlsx: Optional[Path] = typer.Option(None, help="Write the Excel report here"),
    csv: Optional[Path] = typer.Option(None, help="Write assignments CSV here"),
    ics: Optional[Path] = typer.Option(None, help="Write an iCalendar file here"),
    interviewer: Optional[str] = typer.Option(None, help="Limit the calendar to one interviewer id"),
) -> None:
    """Export assignments for display and hand-off."""

    snapshot = JsonFileRepository(_state_file(state, must_exist=True)).load()
    if not (xlsx or csv or ics):
        typer.secho("Nothing to export; pass --xlsx, --csv or --ics.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=2)
    if xlsx:
        make_excel_report(snapshot, path=str(xlsx))
        typer.echo(f"Wrote {xlsx}")
    if csv:
        csv.write_text(make_assignment_csv(snapshot), encoding="utf-8")
        typer.echo(f"Wrote {csv}")
    if ics:
        ics.write_text(make_ics(snapshot, interviewer, tz=_settings().timezone), encoding="utf-8")
        typer.echo(f"Wrote {ics}")


@app.command("generate-slots")
def generate_slots(
    state: Optional[Path] = typer.Argument(None, help=STATE_HELP),
    start_date: datetime = typer.Option(..., formats=["%Y-%m-%d"], help="First day"),
    end_date: Optional[datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="Last day (default: first day)"),
    start_time: Optional[str] = typer.Option(None, help="HH:MM, default from settings"),
    end_time: Optional[str] = typer.Option(None, help="HH:MM, default from settings"),
    minutes: Optional[int] = typer.Option(None, help="Slot length, default from settings"),
) -> None:
    """Add evenly spaced interview slots."""

    try:
        slots = _service(state).generate_slots(
            start_date.date(), end_date.date() if end_date else None, start_time, end_time, minutes
        )
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Added {len(slots)} slot(s).")


@app.command()
def pending(
    state: Optional[Path] = typer.Argument(None, dir_okay=False, help=STATE_HELP),
    stage: List[int] = typer.Option([1, 2], min=1, max=2, help="Interview round(s) to list"),
) -> None:
    """List eligible applicants still waiting for an interview."""

    snapshot = JsonFileRepository(_state_file(state, must_exist=True)).load()
    for s in stage:
        waiting = unscheduled(snapshot, s)
        typer.echo(f"Round {s}: {len(waiting)} waiting")
        for a in waiting:
            typer.echo(f"  {a.id}  {a.name}  ({a.first_choice})")


if __name__ == "__main__":
    app()
