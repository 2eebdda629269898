from datetime import date, timedelta
from typing import Dict, Iterable, Optional

import pandas as pd

from readiness_hub.records import LoadProfile, SessionRecord, StrainFlag

ACUTE_DAYS = 7
CHRONIC_DAYS = 28
MIN_SESSIONS_FOR_RATIO = 2

HIGH_STRAIN = 1.5
LOW_STRAIN = 0.8

CTL_DAYS = 42.0
ATL_DAYS = 7.0


def _load_frame(sessions: Iterable[SessionRecord]) -> pd.DataFrame:
    rows = [{"date": pd.Timestamp(s.date), "load": s.load} for s in sessions]
    return pd.DataFrame(rows, columns=["date", "load"])


def daily_load(sessions: Iterable[SessionRecord], today: date, days: int) -> pd.Series:
    """Summed session load per calendar day for the ``days`` ending on ``today``."""
    idx = pd.date_range(end=pd.Timestamp(today), periods=days, freq="D")
    df = _load_frame(sessions)
    if df.empty:
        return pd.Series(0.0, index=idx)
    per_day = df.groupby("date")["load"].sum()
    return per_day.reindex(idx, fill_value=0.0).astype(float)


def classify_strain(ratio: float) -> StrainFlag:
    if ratio > HIGH_STRAIN:
        return StrainFlag.HIGH
    if ratio < LOW_STRAIN:
        return StrainFlag.LOW
    return StrainFlag.NORMAL


def compute_load_profile(sessions: Iterable[SessionRecord], today: Optional[date] = None) -> LoadProfile:
    today = today or date.today()
    sessions = list(sessions)
    window = daily_load(sessions, today, CHRONIC_DAYS)

    chronic = float(window.sum()) / CHRONIC_DAYS
    acute = float(window.iloc[-ACUTE_DAYS:].sum()) / ACUTE_DAYS

    start = today - timedelta(days=CHRONIC_DAYS - 1)
    in_window = sum(1 for s in sessions if start <= s.date <= today)

    # too little history to say anything about strain
    if chronic == 0 or in_window < MIN_SESSIONS_FOR_RATIO:
        ratio = 1.0
    else:
        ratio = round(acute / chronic, 3)

    # flag is taken from the reported (rounded) ratio
    return LoadProfile(
        acute_load=round(acute, 2),
        chronic_load=round(chronic, 2),
        strain_ratio=ratio,
        strain_flag=classify_strain(ratio),
    )


def fitness_fatigue(sessions: Iterable[SessionRecord], today: Optional[date] = None) -> Dict[str, float]:
    """Exponentially weighted fitness (CTL, 42d) and fatigue (ATL, 7d) from the first session to today."""
    today = today or date.today()
    sessions = [s for s in sessions if s.date <= today]
    if not sessions:
        return {"ctl": 0.0, "atl": 0.0, "tsb": 0.0}

    first = min(s.date for s in sessions)
    days = (today - first).days + 1
    loads = daily_load(sessions, today, days)

    ctl = atl = 0.0
    for load in loads.values:
        ctl += (load - ctl) / CTL_DAYS
        atl += (load - atl) / ATL_DAYS
    return {"ctl": round(ctl, 2), "atl": round(atl, 2), "tsb": round(ctl - atl, 2)}
