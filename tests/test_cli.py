from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from playtime.cli import app
from playtime.ledger import Ledger

from conftest import SECOND

runner = CliRunner()


def test_played_prints_totals(store_path: Path) -> None:
    with Ledger.open(store_path) as ledger:
        ledger.merge("alice", "chess", 5400 * SECOND)
        ledger.merge("alice", "go", 61 * SECOND)

    result = runner.invoke(app, ["played", "alice", "--db", str(store_path)])

    assert result.exit_code == 0
    assert "chess" in result.output
    assert "01:30:00" in result.output
    assert "00:01:01" in result.output
    assert result.output.index("chess") < result.output.index("go")


def test_played_without_history_exits_nonzero(store_path: Path) -> None:
    Ledger.open(store_path).close()

    result = runner.invoke(app, ["played", "bob", "--db", str(store_path)])

    assert result.exit_code == 1
    assert "played nothing" in result.output


def test_export_and_import_round_trip(tmp_path: Path, store_path: Path) -> None:
    with Ledger.open(store_path) as ledger:
        ledger.merge("alice", "chess", 3 * SECOND)

    dump_path = tmp_path / "played.json"
    result = runner.invoke(
        app, ["export", "--db", str(store_path), "--output", str(dump_path)]
    )
    assert result.exit_code == 0
    assert json.loads(dump_path.read_text()) == {"alice": {"chess": 3 * SECOND}}

    other = tmp_path / "other.sqlite3"
    for _ in range(2):
        result = runner.invoke(app, ["import-json", str(dump_path), "--db", str(other)])
        assert result.exit_code == 0
        assert "Imported 1 of 1 entries." in result.output

    with Ledger.open(other) as ledger:
        assert ledger.query("alice") == {"chess": 6 * SECOND}


def test_import_rejects_malformed_dump(tmp_path: Path, store_path: Path) -> None:
    dump_path = tmp_path / "played.json"
    dump_path.write_text(json.dumps({"alice": {"chess": "a while"}}))

    result = runner.invoke(app, ["import-json", str(dump_path), "--db", str(store_path)])

    assert result.exit_code == 2


def test_import_reports_failed_entries(tmp_path: Path, store_path: Path) -> None:
    dump_path = tmp_path / "played.json"
    dump_path.write_text(json.dumps({"alice": {"chess": 10, "go": -4}}))

    result = runner.invoke(app, ["import-json", str(dump_path), "--db", str(store_path)])

    assert result.exit_code == 1
    assert "Imported 1 of 2 entries." in result.output
    with Ledger.open(store_path) as ledger:
        assert ledger.query("alice") == {"chess": 10}


def test_played_with_missing_store_does_not_create_it(tmp_path: Path) -> None:
    missing = tmp_path / "typo.sqlite3"

    result = runner.invoke(app, ["played", "alice", "--db", str(missing)])

    assert result.exit_code == 2
    assert not missing.exists()


def test_export_with_missing_store_does_not_create_it(tmp_path: Path) -> None:
    missing = tmp_path / "typo.sqlite3"

    result = runner.invoke(app, ["export", "--db", str(missing)])

    assert result.exit_code == 2
    assert not missing.exists()
