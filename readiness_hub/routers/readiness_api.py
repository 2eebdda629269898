import logging
from dataclasses import asdict
from datetime import date, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from readiness_hub import store
from readiness_hub.briefing import daily_briefing
from readiness_hub.db import get_db
from readiness_hub.errors import PersistenceFault
from readiness_hub.metrics import compute_load_profile, fitness_fatigue
from readiness_hub.records import LoadProfile, PrescribedMission, ZoneThresholds
from readiness_hub.routers.deps import require_api_key
from readiness_hub.telemetry_client import TelemetryClient, get_telemetry

log = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["readiness"])


class BiometricLog(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: Optional[date] = Field(None, alias="date")
    hrv: Optional[float] = Field(None, gt=0)
    resting_hr: Optional[float] = Field(None, gt=0)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    weight_kg: Optional[float] = Field(None, gt=0)
    rmssd: Optional[float] = Field(None, gt=0)
    subjective_readiness: Optional[int] = Field(None, ge=1, le=10)


class ZonesIn(BaseModel):
    zone1_max: int = Field(130, gt=0)
    zone2_max: int = Field(145, gt=0)
    zone3_max: int = Field(160, gt=0)
    zone4_max: int = Field(175, gt=0)
    ftp_w: int = Field(250, gt=0)
    target_weight_kg: float = Field(75.0, gt=0)


def profile_dict(p: LoadProfile) -> Dict[str, Any]:
    return {
        "acute_load": p.acute_load,
        "chronic_load": p.chronic_load,
        "strain_ratio": p.strain_ratio,
        "strain_flag": p.strain_flag.value,
    }


def mission_dict(m: PrescribedMission) -> Dict[str, Any]:
    return {
        "title": m.title,
        "power_target": m.power_target,
        "fuel_tier": m.fuel_tier.value,
        "coach_notes": m.coach_notes,
        "is_altered": m.is_altered,
    }


# ---------------- Quick log (upsert today's sample) ----------------
@router.post("/metrics/log", dependencies=[Depends(require_api_key)])
def metrics_log(
    payload: BiometricLog,
    athlete_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
):
    d = payload.day or date.today()
    vals = payload.model_dump(exclude={"day"}, exclude_none=True)
    if not vals:
        raise HTTPException(status_code=400, detail="no_values_provided")

    try:
        sample = store.upsert_biometric(db, athlete_id, d, vals)
    except PersistenceFault as e:
        raise HTTPException(status_code=503, detail=str(e))

    briefing = daily_briefing(db, athlete_id, d)
    log.info(f"metrics/log athlete={athlete_id} {d}: fields={sorted(vals)}, readiness={briefing.readiness}")
    return {
        "ok": not briefing.errors,
        "athlete_id": athlete_id,
        "date": d.isoformat(),
        "metrics": {k: v for k, v in asdict(sample).items() if k not in ("date", "readiness_score")},
        "readiness": briefing.readiness,
        "errors": briefing.errors or None,
    }


# ---------------- Readiness / load / mission ----------------
@router.get("/readiness/today")
async def readiness_today(
    athlete_id: int = Query(..., ge=1),
    day: Optional[date] = Query(None),
    net_energy: Optional[float] = Query(None, description="Yesterday's net energy balance (kcal)"),
    use_provider: bool = Query(False, description="Fetch yesterday's energy balance from the telemetry provider"),
    db: Session = Depends(get_db),
    telemetry: TelemetryClient = Depends(get_telemetry),
):
    day = day or date.today()
    if net_energy is None and use_provider:
        net_energy = await telemetry.net_balance_for(day - timedelta(days=1))

    b = await run_in_threadpool(daily_briefing, db, athlete_id, day, net_energy)
    errors = b.errors + [str(f) for f in telemetry.faults]
    return {
        "athlete_id": athlete_id,
        "readiness": b.breakdown,
        "load": profile_dict(b.load_profile),
        "mission": mission_dict(b.mission),
        "errors": errors or None,
    }


@router.get("/training/load")
def training_load(
    athlete_id: int = Query(..., ge=1),
    day: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    day = day or date.today()
    sessions = store.load_sessions(db, athlete_id, until=day)
    return {
        "athlete_id": athlete_id,
        "date": day.isoformat(),
        "profile": profile_dict(compute_load_profile(sessions, day)),
        "fitness_fatigue": fitness_fatigue(sessions, day),
        "sessions_considered": len(sessions),
    }


@router.get("/mission/today")
def mission_today(
    athlete_id: int = Query(..., ge=1),
    day: Optional[date] = Query(None),
    net_energy: Optional[float] = Query(None),
    db: Session = Depends(get_db),
):
    b = daily_briefing(db, athlete_id, day, net_energy_balance=net_energy)
    return {
        "athlete_id": athlete_id,
        "date": b.date.isoformat(),
        "readiness": b.readiness,
        "load": profile_dict(b.load_profile),
        "mission": mission_dict(b.mission),
        "errors": b.errors or None,
    }


# ---------------- Zones ----------------
@router.get("/zones")
def get_zones(athlete_id: int = Query(..., ge=1), db: Session = Depends(get_db)):
    return {"athlete_id": athlete_id, "zones": asdict(store.get_zones(db, athlete_id))}


@router.put("/zones", dependencies=[Depends(require_api_key)])
def put_zones(payload: ZonesIn, athlete_id: int = Query(..., ge=1), db: Session = Depends(get_db)):
    if not (payload.zone1_max < payload.zone2_max < payload.zone3_max < payload.zone4_max):
        raise HTTPException(status_code=422, detail="zones_not_ascending")
    try:
        zones = store.save_zones(db, athlete_id, ZoneThresholds(**payload.model_dump()))
    except PersistenceFault as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"ok": True, "athlete_id": athlete_id, "zones": asdict(zones)}
