"""
SQLAlchemy adapter between the persisted rows and the engine records.

Reads return immutable records ordered by date. Writes commit immediately
and translate any SQLAlchemy failure into a PersistenceFault after rolling
the session back.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from readiness_hub.errors import PersistenceFault
from readiness_hub.models import DailyMetric, Directive, TrainingSession, ZoneSettings
from readiness_hub.records import (
    BiometricSample,
    Discipline,
    FuelTier,
    ScheduledDirective,
    SessionRecord,
    ZoneThresholds,
)

log = logging.getLogger(__name__)

SAMPLE_FIELDS = {
    "hrv": "hrv_ms",
    "resting_hr": "resting_hr_bpm",
    "sleep_hours": "sleep_hours",
    "weight_kg": "weight_kg",
    "rmssd": "rmssd_ms",
    "subjective_readiness": "subjective_readiness",
}


def to_sample(row: DailyMetric) -> BiometricSample:
    return BiometricSample(
        date=row.date,
        hrv=row.hrv_ms,
        resting_hr=row.resting_hr_bpm,
        sleep_hours=row.sleep_hours,
        weight_kg=row.weight_kg,
        rmssd=row.rmssd_ms,
        subjective_readiness=row.subjective_readiness,
        readiness_score=row.readiness_score,
    )


def to_session(row: TrainingSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        date=row.date,
        discipline=Discipline(row.discipline),
        duration_min=row.duration_min,
        distance_km=row.distance_km or 0.0,
        average_hr=row.avg_hr or 0.0,
        rpe=row.rpe,
        avg_power=row.avg_power,
        avg_cadence=row.avg_cadence,
        ground_contact_ms=row.ground_contact_ms,
        vertical_oscillation_cm=row.vertical_oscillation_cm,
        elevation_gain_m=row.elevation_gain_m,
        linked_directive_id=row.linked_directive_id,
        coach_notes=row.coach_notes or "",
        started_at=row.started_at,
    )


def to_directive(row: Directive) -> ScheduledDirective:
    return ScheduledDirective(
        id=row.id,
        date=row.date,
        activity=row.activity,
        power_target=row.power_target,
        fuel_tier=FuelTier.parse(row.fuel_tier),
        coach_notes=row.coach_notes or "",
    )


# ---------------- reads ----------------
def load_biometrics(db: Session, athlete_id: int, until: Optional[date] = None) -> List[BiometricSample]:
    q = select(DailyMetric).where(DailyMetric.athlete_id == athlete_id)
    if until is not None:
        q = q.where(DailyMetric.date <= until)
    rows = db.execute(q.order_by(DailyMetric.date.asc())).scalars().all()
    return [to_sample(r) for r in rows]


def load_sessions(db: Session, athlete_id: int, until: Optional[date] = None) -> List[SessionRecord]:
    q = select(TrainingSession).where(TrainingSession.athlete_id == athlete_id)
    if until is not None:
        q = q.where(TrainingSession.date <= until)
    rows = db.execute(q.order_by(TrainingSession.date.asc(), TrainingSession.id.asc())).scalars().all()
    return [to_session(r) for r in rows]


def get_session(db: Session, athlete_id: int, session_id: int) -> Optional[TrainingSession]:
    row = db.get(TrainingSession, session_id)
    if row is None or row.athlete_id != athlete_id:
        return None
    return row


def directive_for(db: Session, athlete_id: int, day: date) -> Optional[ScheduledDirective]:
    row = db.execute(
        select(Directive).where(Directive.athlete_id == athlete_id, Directive.date == day)
    ).scalars().first()
    return to_directive(row) if row else None


def resolve_directive(db: Session, athlete_id: int, session: SessionRecord) -> Optional[ScheduledDirective]:
    """The session's linked directive, or None when the link dangles or points at another athlete."""
    if session.linked_directive_id is None:
        return None
    row = db.execute(
        select(Directive).where(Directive.id == session.linked_directive_id, Directive.athlete_id == athlete_id)
    ).scalars().first()
    return to_directive(row) if row else None


def readiness_for(db: Session, athlete_id: int, day: date) -> Optional[int]:
    return db.execute(
        select(DailyMetric.readiness_score).where(DailyMetric.athlete_id == athlete_id, DailyMetric.date == day)
    ).scalar()


def get_zones(db: Session, athlete_id: int) -> ZoneThresholds:
    row = db.get(ZoneSettings, athlete_id)
    defaults = ZoneThresholds()
    if row is None:
        return defaults
    vals = {
        "zone1_max": row.zone1_max,
        "zone2_max": row.zone2_max,
        "zone3_max": row.zone3_max,
        "zone4_max": row.zone4_max,
        "ftp_w": row.ftp_w,
        "target_weight_kg": row.target_weight_kg,
    }
    return ZoneThresholds(**{k: (v if v is not None else getattr(defaults, k)) for k, v in vals.items()})


# ---------------- writes ----------------
def _commit(db: Session, operation: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"{operation} failed: {e}")
        raise PersistenceFault(operation, str(e)) from e


def upsert_biometric(db: Session, athlete_id: int, day: date, values: Dict[str, Any]) -> BiometricSample:
    """Merge measured values into the day's sample, creating it on first write."""
    vals = {SAMPLE_FIELDS[k]: v for k, v in values.items() if k in SAMPLE_FIELDS and v is not None}
    try:
        row = db.execute(
            select(DailyMetric).where(DailyMetric.athlete_id == athlete_id, DailyMetric.date == day)
        ).scalars().first()
        if row:
            for k, v in vals.items():
                setattr(row, k, v)
        else:
            row = DailyMetric(athlete_id=athlete_id, date=day, **vals)
            db.add(row)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFault("upsert_biometric", str(e)) from e
    _commit(db, "upsert_biometric")
    db.refresh(row)
    return to_sample(row)


def save_readiness(db: Session, athlete_id: int, day: date, score: int) -> None:
    try:
        row = db.execute(
            select(DailyMetric).where(DailyMetric.athlete_id == athlete_id, DailyMetric.date == day)
        ).scalars().first()
        if row is None:
            row = DailyMetric(athlete_id=athlete_id, date=day)
            db.add(row)
        row.readiness_score = score
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFault("save_readiness", str(e)) from e
    _commit(db, "save_readiness")


def save_directives(db: Session, athlete_id: int, directives: Iterable[ScheduledDirective]) -> int:
    count = 0
    try:
        for d in directives:
            row = db.execute(
                select(Directive).where(Directive.athlete_id == athlete_id, Directive.date == d.date)
            ).scalars().first()
            if row is None:
                row = Directive(athlete_id=athlete_id, date=d.date)
                db.add(row)
            row.activity = d.activity
            row.power_target = d.power_target
            row.fuel_tier = d.fuel_tier.value
            row.coach_notes = d.coach_notes
            count += 1
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFault("save_directives", str(e)) from e
    _commit(db, "save_directives")
    return count


def add_session(db: Session, athlete_id: int, session: SessionRecord) -> SessionRecord:
    row = TrainingSession(
        athlete_id=athlete_id,
        date=session.date,
        discipline=session.discipline.value,
        duration_min=session.duration_min,
        distance_km=session.distance_km,
        avg_hr=session.average_hr,
        rpe=session.rpe,
        avg_power=session.avg_power,
        avg_cadence=session.avg_cadence,
        ground_contact_ms=session.ground_contact_ms,
        vertical_oscillation_cm=session.vertical_oscillation_cm,
        elevation_gain_m=session.elevation_gain_m,
        linked_directive_id=session.linked_directive_id,
        coach_notes=session.coach_notes,
        started_at=session.started_at,
    )
    db.add(row)
    _commit(db, "add_session")
    db.refresh(row)
    return to_session(row)


def save_zones(db: Session, athlete_id: int, zones: ZoneThresholds) -> ZoneThresholds:
    row = db.get(ZoneSettings, athlete_id)
    if row is None:
        row = ZoneSettings(athlete_id=athlete_id)
        db.add(row)
    row.zone1_max = zones.zone1_max
    row.zone2_max = zones.zone2_max
    row.zone3_max = zones.zone3_max
    row.zone4_max = zones.zone4_max
    row.ftp_w = zones.ftp_w
    row.target_weight_kg = zones.target_weight_kg
    _commit(db, "save_zones")
    return zones
