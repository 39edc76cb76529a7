from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from playtime.engine import PlaytimeEngine
from playtime.ledger import Ledger
from playtime.webapp import create_app

from conftest import SECOND


@pytest.fixture
def engine(store_path: Path, settings, clock):
    engine = PlaytimeEngine.open(store_path, settings, clock=clock)
    yield engine
    engine.close()


def test_activity_signals_update_totals(engine, clock) -> None:
    app = create_app(engine=engine)
    with TestClient(app) as client:
        response = client.post(
            "/api/activity/started", json={"identity": "alice", "activity": "chess"}
        )
        assert response.status_code == 202

        clock.advance(3723)
        response = client.post("/api/activity/ended", json={"identity": "alice"})
        assert response.status_code == 202
        assert response.json()["queued"] is True
        assert engine.tracker.drain(timeout=5)

        payload = client.get("/api/totals/alice").json()

    assert payload["totals"] == [
        {"activity": "chess", "nanoseconds": 3723 * SECOND, "duration": "01:02:03"}
    ]
    assert payload["live"] is None


def test_totals_report_live_stretch_separately(engine, clock) -> None:
    app = create_app(engine=engine)
    with TestClient(app) as client:
        client.post("/api/activity/started", json={"identity": "alice", "activity": "chess"})
        clock.advance(10)
        assert client.post("/api/snapshot").json() == {"saved": 1}
        clock.advance(5)

        payload = client.get("/api/totals/alice").json()
        sessions = client.get("/api/sessions").json()["sessions"]

    assert payload["totals"][0]["nanoseconds"] == 10 * SECOND
    assert payload["live"] == {
        "activity": "chess",
        "nanoseconds": 5 * SECOND,
        "duration": "00:00:05",
    }
    assert [(s["identity"], s["activity"]) for s in sessions] == [("alice", "chess")]


def test_unknown_identity_is_not_found(engine) -> None:
    with TestClient(create_app(engine=engine)) as client:
        response = client.get("/api/totals/nobody")

    assert response.status_code == 404


def test_blank_keys_are_rejected(engine) -> None:
    with TestClient(create_app(engine=engine)) as client:
        started = client.post(
            "/api/activity/started", json={"identity": "  ", "activity": "chess"}
        )
        extra = client.post(
            "/api/activity/ended", json={"identity": "alice", "activity": "chess"}
        )

    assert started.status_code == 400
    assert extra.status_code == 422


def test_status_reports_engine_state(engine, store_path: Path) -> None:
    with TestClient(create_app(engine=engine)) as client:
        client.post("/api/activity/started", json={"identity": "alice", "activity": "go"})
        payload = client.get("/api/status").json()

    assert payload["running"] is True
    assert payload["database_path"] == str(store_path)
    assert payload["live_sessions"] == 1
    assert payload["snapshot_seconds"] is None


def test_shutdown_closes_engine_and_flushes(engine, clock, store_path: Path) -> None:
    with TestClient(create_app(engine=engine)) as client:
        client.post("/api/activity/started", json={"identity": "alice", "activity": "go"})
        clock.advance(9)

    assert not engine.is_running()
    with Ledger.open(store_path) as reopened:
        assert reopened.query("alice") == {"go": 9 * SECOND}


def test_app_opens_its_own_engine(store_path: Path, settings) -> None:
    app = create_app(db_path=store_path, settings=settings)
    with TestClient(app) as client:
        assert client.get("/api/status").json()["running"] is True
        response = client.post("/api/activity/ended", json={"identity": "alice"})

    assert response.json()["queued"] is False
    assert not app.state.engine.is_running()
