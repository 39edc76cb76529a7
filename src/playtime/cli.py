"""Command-line interface for the playtime ledger."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import TrackerSettings
from .errors import StoreOpenError
from .ledger import Ledger
from .paths import get_log_path, resolve_db_path

app = typer.Typer(help="Durable playtime accounting.")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    stdout: bool = typer.Option(
        True,
        "--stdout/--no-stdout",
        help="Log to the console instead of the per-user log file.",
    ),
) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    if stdout:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        logging.basicConfig(
            level=level, format=LOG_FORMAT, filename=get_log_path(), encoding="utf-8"
        )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the playtime SQLite database."
    ),
    snapshot_minutes: float = typer.Option(
        5.0,
        "--snapshot-minutes",
        min=0.0,
        help="Minutes between snapshots of live sessions (0 disables).",
    ),
    max_merges: int = typer.Option(
        4,
        "--max-merges",
        min=1,
        help="Upper bound on concurrently running ledger merges.",
    ),
) -> None:
    """Accept activity signals over HTTP until interrupted."""
    from .server_runner import run_server

    settings = TrackerSettings.from_options(
        snapshot_minutes=snapshot_minutes, max_merges=max_merges
    )
    run_server(host=host, port=port, db_path=db_path, settings=settings)


@app.command()
def played(
    identity: str = typer.Argument(..., help="Identity to report on."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the playtime SQLite database."
    ),
) -> None:
    """Print how long an identity played each activity."""
    from .reporting import TotalsPrinter

    printer = TotalsPrinter(db_path=resolve_db_path(db_path))
    try:
        found = printer.print_totals(identity)
    except StoreOpenError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    if not found:
        raise typer.Exit(code=1)


@app.command()
def export(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the playtime SQLite database."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", path_type=Path, help="Write JSON here instead of stdout."
    ),
) -> None:
    """Dump every identity's totals (nanoseconds) as JSON."""
    try:
        ledger = Ledger.open(resolve_db_path(db_path), create=False)
    except StoreOpenError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    with ledger:
        dump = ledger.export()
    text = json.dumps(dump, indent=2, sort_keys=True)
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        typer.echo(f"Exported {len(dump)} identities to {output}")


@app.command("import-json")
def import_json(
    source: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON dump of {identity: {activity: ns}}."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the playtime SQLite database."
    ),
) -> None:
    """Add the totals of a JSON dump to the ledger."""
    try:
        entries = _read_dump(source)
    except ValueError as exc:
        typer.echo(f"Cannot import {source}: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    with Ledger.open(resolve_db_path(db_path)) as ledger:
        results = ledger.merge_many(entries)

    failed = [result for result in results if not result.ok]
    for result in failed:
        typer.echo(
            f"Skipped {result.identity} / {result.activity}: {result.error}", err=True
        )
    typer.echo(f"Imported {len(results) - len(failed)} of {len(results)} entries.")
    if failed:
        raise typer.Exit(code=1)


def _read_dump(source: Path) -> list[tuple[str, str, int]]:
    data = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("top level must be an object")
    entries: list[tuple[str, str, int]] = []
    for identity, games in data.items():
        if not isinstance(games, dict):
            raise ValueError(f"entry for {identity!r} must be an object")
        for activity, nanoseconds in games.items():
            if isinstance(nanoseconds, bool) or not isinstance(nanoseconds, int):
                raise ValueError(f"{identity!r}/{activity!r} is not an integer")
            entries.append((identity, activity, nanoseconds))
    return entries
