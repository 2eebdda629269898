"""
Daily readiness score (0-100).

Each input becomes a sub-score in [0, 1] where 0.5 is neutral:

    HRV       today vs rolling baseline, +-25% of baseline spans the range
    RHR       today vs rolling baseline, +-8 bpm spans the range (inverted)
    Sleep     hours / 8, clamped
    rmssd     like HRV, only when measured
    self      subjective readiness 1-10, only when reported

The composite is the weighted mean of the sub-scores (optional terms join the
mean only when present), scaled to 100, minus load and energy penalties.
Anything unmeasured sits at neutral, so an empty day scores 50.
"""
import logging
import math
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

import pandas as pd

from readiness_hub.records import BiometricSample, LoadProfile, StrainFlag

log = logging.getLogger(__name__)

BASELINE_DAYS = 28
MIN_BASELINE_SAMPLES = 7

POPULATION_HRV_MS = 50.0
POPULATION_RHR_BPM = 55.0
POPULATION_RMSSD_MS = 45.0

HRV_SPAN = 0.25
RHR_SPAN_BPM = 8.0
OPTIMAL_SLEEP_H = 8.0
NEUTRAL = 0.5

WEIGHTS = {
    "hrv": 0.40,
    "rhr": 0.20,
    "sleep": 0.25,
    "rmssd": 0.15,
    "subjective": 0.15,
}
CORE_SIGNALS = ("hrv", "rhr", "sleep")

LOAD_PENALTY = {
    StrainFlag.HIGH: 15.0,     # overreaching
    StrainFlag.LOW: 5.0,       # detraining
    StrainFlag.NORMAL: 0.0,
}

CRITICAL_DEFICIT_KCAL = -500.0
DEFICIT_PENALTY = 10.0


def _clamp(v: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return min(max(v, lo), hi)


def _measured(v: Any, positive: bool = True) -> Optional[float]:
    """Return ``v`` as a float when it is a usable measurement, else None."""
    if v is None:
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    if positive and f <= 0:
        return None
    return f


def rolling_baseline(
    history: Iterable[BiometricSample],
    field: str,
    today: date,
    population: float,
) -> Tuple[float, bool]:
    """Mean of ``field`` over the trailing window before ``today``.

    Falls back to ``population`` when fewer than MIN_BASELINE_SAMPLES valid
    values exist. Returns (baseline, is_personal).
    """
    df = pd.DataFrame(
        [{"date": s.date, "value": _measured(getattr(s, field))} for s in history],
        columns=["date", "value"],
    )
    if df.empty:
        return population, False
    start = today - timedelta(days=BASELINE_DAYS)
    window = df[(df["date"] >= start) & (df["date"] < today)]
    values = pd.to_numeric(window["value"], errors="coerce").dropna()
    if len(values) < MIN_BASELINE_SAMPLES:
        return population, False
    return float(values.mean()), True


def _relative_score(value: Optional[float], baseline: float, span: float) -> Optional[float]:
    if value is None:
        return None
    return _clamp(NEUTRAL + (value - baseline) / (2.0 * span * baseline))


def readiness_breakdown(
    today_sample: Optional[BiometricSample],
    history: Iterable[BiometricSample] = (),
    load_profile: Optional[LoadProfile] = None,
    net_energy_balance: Optional[float] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    today = today or (today_sample.date if today_sample else date.today())
    history = list(history or [])
    s = today_sample or BiometricSample(date=today)

    hrv_base, hrv_personal = rolling_baseline(history, "hrv", today, POPULATION_HRV_MS)
    rhr_base, rhr_personal = rolling_baseline(history, "resting_hr", today, POPULATION_RHR_BPM)
    rmssd_base, _ = rolling_baseline(history, "rmssd", today, POPULATION_RMSSD_MS)

    hrv = _measured(s.hrv)
    rhr = _measured(s.resting_hr)
    sleep = _measured(s.sleep_hours, positive=False)
    rmssd = _measured(s.rmssd)
    subjective = _measured(s.subjective_readiness)

    subs: Dict[str, Optional[float]] = {
        "hrv": _relative_score(hrv, hrv_base, HRV_SPAN),
        "rhr": None if rhr is None else _clamp(NEUTRAL - (rhr - rhr_base) / (2.0 * RHR_SPAN_BPM)),
        "sleep": None if sleep is None else _clamp(sleep / OPTIMAL_SLEEP_H),
        "rmssd": _relative_score(rmssd, rmssd_base, HRV_SPAN),
        "subjective": None if subjective is None else _clamp((subjective - 1.0) / 9.0),
    }

    num = den = 0.0
    for name, weight in WEIGHTS.items():
        sub = subs[name]
        if sub is None:
            if name not in CORE_SIGNALS:
                continue
            sub = NEUTRAL
        num += weight * sub
        den += weight
    composite = 100.0 * num / den

    flag = load_profile.strain_flag if load_profile else StrainFlag.NORMAL
    load_penalty = LOAD_PENALTY.get(flag, 0.0)

    net = _measured(net_energy_balance, positive=False)
    energy_penalty = DEFICIT_PENALTY if net is not None and net < CRITICAL_DEFICIT_KCAL else 0.0

    raw = _clamp(composite - load_penalty - energy_penalty, 0.0, 100.0)
    score = int(math.floor(raw + 0.5))

    return {
        "date": today.isoformat(),
        "score": score,
        "composite": round(composite, 2),
        "sub_scores": {k: (None if v is None else round(v, 3)) for k, v in subs.items()},
        "baselines": {
            "hrv_ms": round(hrv_base, 1),
            "hrv_personal": hrv_personal,
            "rhr_bpm": round(rhr_base, 1),
            "rhr_personal": rhr_personal,
            "rmssd_ms": round(rmssd_base, 1),
        },
        "penalties": {"load": load_penalty, "energy": energy_penalty},
        "strain_flag": flag.value,
    }


def compute_readiness(
    today_sample: Optional[BiometricSample],
    history: Iterable[BiometricSample] = (),
    load_profile: Optional[LoadProfile] = None,
    net_energy_balance: Optional[float] = None,
    today: Optional[date] = None,
) -> int:
    """Integer readiness score in [0, 100]. Never raises on missing or partial input."""
    b = readiness_breakdown(today_sample, history, load_profile, net_energy_balance, today)
    log.debug(f"readiness {b['date']}: {b['score']} (composite={b['composite']}, penalties={b['penalties']})")
    return b["score"]
