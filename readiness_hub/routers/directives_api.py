import io
import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from readiness_hub import store
from readiness_hub.db import get_db
from readiness_hub.errors import PersistenceFault, ValidationFault
from readiness_hub.ingest import IngestReport, ingest_csv, ingest_directives
from readiness_hub.routers.deps import require_api_key

log = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/directives", tags=["directives"])


def _save(db: Session, athlete_id: int, report: IngestReport):
    try:
        saved = store.save_directives(db, athlete_id, report.accepted)
    except PersistenceFault as e:
        raise HTTPException(status_code=503, detail=str(e))

    log.info(f"Directive ingest athlete={athlete_id}: saved={saved}, faults={len(report.faults)}")
    return {"ok": not report.faults, "athlete_id": athlete_id, **report.to_dict()}


@router.post("/ingest", dependencies=[Depends(require_api_key)])
def ingest(
    payload: Any = Body(...),
    athlete_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
):
    """Import a training block. Malformed records are skipped and reported; the rest are saved."""
    if isinstance(payload, dict) and isinstance(payload.get("directives"), list):
        payload = payload["directives"]
    try:
        report = ingest_directives(payload)
    except ValidationFault as e:
        raise HTTPException(status_code=400, detail=f"invalid_payload:{e.message}")
    return _save(db, athlete_id, report)


@router.post("/ingest/csv", dependencies=[Depends(require_api_key)])
def ingest_csv_upload(
    file: UploadFile = File(...),
    athlete_id: int = Query(..., ge=1),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Year for short dates such as 'Mar 09'"),
    db: Session = Depends(get_db),
):
    try:
        text = file.file.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="invalid_payload:file must be UTF-8 text")
    try:
        report = ingest_csv(io.StringIO(text), year=year)
    except ValidationFault as e:
        raise HTTPException(status_code=400, detail=f"invalid_payload:{e.message}")
    return _save(db, athlete_id, report)


@router.get("")
def get_directive(
    athlete_id: int = Query(..., ge=1),
    day: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    day = day or date.today()
    d = store.directive_for(db, athlete_id, day)
    return {
        "athlete_id": athlete_id,
        "date": day.isoformat(),
        "directive": None if d is None else {
            "id": d.id,
            "activity": d.activity,
            "power_target": d.power_target,
            "fuel_tier": d.fuel_tier.value,
            "coach_notes": d.coach_notes,
        },
    }
