"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database; the API client overrides
the DB and telemetry dependencies so nothing touches disk or the network.
"""
from datetime import date, datetime, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from readiness_hub import config, models  # noqa: F401
from readiness_hub.db import Base, get_db
from readiness_hub.main import app
from readiness_hub.records import Discipline, SessionRecord
from readiness_hub.telemetry_client import TelemetryClient, get_telemetry

TODAY = date(2026, 3, 10)
START = datetime(2026, 3, 10, 7, 0, 0)


def make_session(day, minutes=60.0, rpe=5, **kw) -> SessionRecord:
    return SessionRecord(date=day, discipline=kw.pop("discipline", Discipline.RUN), duration_min=minutes, rpe=rpe, **kw)


def series(values, start=START, step=1.0):
    return [(start + timedelta(seconds=i * step), float(v)) for i, v in enumerate(values)]


def series_payload(values, start=START, step=1.0):
    return {"samples": [{"ts": t.isoformat(), "value": v} for t, v in series(values, start, step)]}


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = Session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def telemetry_handler():
    """Default provider: 30 samples of flat HR and fading power, empty everything else."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/timeseries":
            metric = request.url.params.get("metric")
            if metric == "heart_rate":
                return httpx.Response(200, json=series_payload([140] * 30, step=5))
            if metric == "power":
                return httpx.Response(200, json=series_payload([200] * 15 + [180] * 15, step=5))
            return httpx.Response(200, json={"samples": []})
        if request.url.path == "/energy/history":
            return httpx.Response(200, json=[{"date": "2026-03-09", "net": -800}])
        return httpx.Response(404)
    return handler


@pytest.fixture
def client(engine, telemetry_handler, monkeypatch):
    monkeypatch.setattr(config, "API_KEY", "")
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    def _get_telemetry():
        return TelemetryClient(base_url="http://provider", api_key="", transport=httpx.MockTransport(telemetry_handler))

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_telemetry] = _get_telemetry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
