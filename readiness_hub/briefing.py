import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from readiness_hub import store
from readiness_hub.errors import PersistenceFault
from readiness_hub.metrics import compute_load_profile
from readiness_hub.readiness import readiness_breakdown
from readiness_hub.records import BiometricSample, DailyBriefing
from readiness_hub.rules import prescribe_mission

log = logging.getLogger(__name__)


def daily_briefing(
    db: Session,
    athlete_id: int,
    day: Optional[date] = None,
    net_energy_balance: Optional[float] = None,
    persist: bool = True,
) -> DailyBriefing:
    """Load -> readiness -> mission for one day, from a single history snapshot.

    This is the only place a readiness score is persisted: the score is written
    back to the day's sample once. A failed write is reported in ``errors``;
    the computed briefing is returned anyway.
    """
    day = day or date.today()
    samples = store.load_biometrics(db, athlete_id, until=day)
    sessions = store.load_sessions(db, athlete_id, until=day)

    today_sample: Optional[BiometricSample] = next((s for s in samples if s.date == day), None)
    history = [s for s in samples if s.date < day]

    profile = compute_load_profile(sessions, day)
    breakdown = readiness_breakdown(today_sample, history, profile, net_energy_balance, today=day)
    score = breakdown["score"]

    zones = store.get_zones(db, athlete_id)
    mission = prescribe_mission(store.directive_for(db, athlete_id, day), score, ftp_w=zones.ftp_w)

    briefing = DailyBriefing(date=day, readiness=score, load_profile=profile, mission=mission, breakdown=breakdown)
    if persist:
        try:
            store.save_readiness(db, athlete_id, day, score)
        except PersistenceFault as e:
            log.warning(f"Readiness for {day} computed but not saved: {e}")
            briefing.errors.append(str(e))
    return briefing
