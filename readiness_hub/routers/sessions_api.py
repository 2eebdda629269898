import asyncio
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from readiness_hub import store
from readiness_hub.analytics import (
    aerobic_decoupling,
    efficiency_factor,
    efficiency_tier,
    hr_zone_distribution,
    power_to_weight,
)
from readiness_hub.db import get_db
from readiness_hub.errors import PersistenceFault
from readiness_hub.export import session_export
from readiness_hub.records import Discipline, SessionRecord
from readiness_hub.routers.deps import require_api_key
from readiness_hub.telemetry_client import METRICS, TelemetryClient, get_telemetry

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionIn(BaseModel):
    session_date: date = Field(alias="date")
    started_at: Optional[datetime] = None
    discipline: Discipline
    duration_min: float = Field(gt=0)
    distance_km: float = Field(0.0, ge=0)
    average_hr: float = Field(0.0, ge=0)
    rpe: int = Field(ge=1, le=10)
    avg_power: Optional[float] = Field(None, ge=0)
    avg_cadence: Optional[float] = Field(None, ge=0)
    ground_contact_ms: Optional[float] = Field(None, ge=0)
    vertical_oscillation_cm: Optional[float] = Field(None, ge=0)
    elevation_gain_m: Optional[float] = None
    linked_directive_id: Optional[int] = None
    coach_notes: str = ""


def _context(db: Session, athlete_id: int, session_id: int):
    """Everything a session view needs from the store, loaded in one go."""
    row = store.get_session(db, athlete_id, session_id)
    if row is None:
        raise HTTPException(status_code=404, detail="session_not_found")
    s = store.to_session(row)
    return (
        s,
        store.get_zones(db, athlete_id),
        store.resolve_directive(db, athlete_id, s),
        store.readiness_for(db, athlete_id, s.date),
    )


async def _series(telemetry: TelemetryClient, s: SessionRecord, metrics=METRICS):
    start = s.started_at or datetime.combine(s.date, time())
    results = await asyncio.gather(*(telemetry.fetch_time_series(m, start, s.duration_min) for m in metrics))
    return dict(zip(metrics, results))


@router.post("", dependencies=[Depends(require_api_key)])
def add_session(payload: SessionIn, athlete_id: int = Query(..., ge=1), db: Session = Depends(get_db)):
    rec = SessionRecord(
        date=payload.session_date,
        started_at=payload.started_at,
        **payload.model_dump(exclude={"session_date", "started_at"}),
    )
    try:
        saved = store.add_session(db, athlete_id, rec)
    except PersistenceFault as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"ok": True, "id": saved.id, "load": saved.load}


@router.get("/{session_id}/analytics")
async def session_analytics(
    session_id: int,
    athlete_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
    telemetry: TelemetryClient = Depends(get_telemetry),
):
    s, zones, directive, _ = await run_in_threadpool(_context, db, athlete_id, session_id)
    series = await _series(telemetry, s, ("heart_rate", "power"))

    decoupling = aerobic_decoupling(series["heart_rate"], series["power"])
    w_kg = power_to_weight(s.avg_power or 0.0, zones.target_weight_kg)
    return {
        "session_id": session_id,
        "discipline": s.discipline.value,
        "aerobic_decoupling": decoupling.to_dict() if decoupling else None,
        "hr_zones_min": {z: round(m, 2) for z, m in hr_zone_distribution(series["heart_rate"], zones).items()},
        "efficiency_factor": efficiency_factor(s),
        "power_to_weight": w_kg,
        "efficiency_tier": efficiency_tier(w_kg),
        "directive": None if directive is None else {
            "id": directive.id,
            "activity": directive.activity,
            "power_target": directive.power_target,
        },
        "errors": [str(f) for f in telemetry.faults] or None,
    }


@router.get("/{session_id}/export")
async def export_session(
    session_id: int,
    athlete_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
    telemetry: TelemetryClient = Depends(get_telemetry),
):
    s, _, directive, readiness = await run_in_threadpool(_context, db, athlete_id, session_id)
    series = await _series(telemetry, s)
    doc = session_export(
        s,
        hr=series["heart_rate"],
        power=series["power"],
        cadence=series["cadence"],
        gct=series["ground_contact_time"],
        oscillation=series["vertical_oscillation"],
        readiness=readiness,
        directive=directive,
    )
    doc["errors"] = [str(f) for f in telemetry.faults] or None
    return doc
