"""
Per-session analytics over raw telemetry.

Series are sequences of ``(timestamp, value)`` pairs with ``datetime``
timestamps, in any order; both functions sort before use.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple

import pandas as pd

from readiness_hub.records import SessionRecord, ZoneThresholds

Series = Sequence[Tuple[datetime, float]]

MIN_DECOUPLING_SAMPLES = 21
DECOUPLING_LIMIT_PCT = 5.0
MAX_GAP_SECONDS = 10.0
ZONES = ("Z1", "Z2", "Z3", "Z4", "Z5")


@dataclass(frozen=True)
class DecouplingResult:
    decoupling_pct: float
    ef_first_half: float
    ef_second_half: float

    @property
    def is_efficient(self) -> bool:
        return self.decoupling_pct <= DECOUPLING_LIMIT_PCT

    def to_dict(self):
        return {
            "decoupling_pct": round(self.decoupling_pct, 2),
            "ef_first_half": round(self.ef_first_half, 4),
            "ef_second_half": round(self.ef_second_half, 4),
            "is_efficient": self.is_efficient,
        }


def _values(series: Series) -> list:
    return [float(v) for _, v in sorted(series, key=lambda p: p[0])]


def _half_means(values: list) -> Tuple[float, float]:
    mid = len(values) // 2
    first, second = values[:mid], values[mid:]
    return sum(first) / len(first), sum(second) / len(second)


def aerobic_decoupling(hr: Series, power: Series) -> Optional[DecouplingResult]:
    """Pa:Hr decoupling between the first and second half of a session.

    Only meaningful for steady-state efforts; interval sessions give noise.
    Returns None when either series has fewer than 21 samples or the
    efficiency factor cannot be formed.
    """
    if len(hr) < MIN_DECOUPLING_SAMPLES or len(power) < MIN_DECOUPLING_SAMPLES:
        return None

    hr_first, hr_second = _half_means(_values(hr))
    pwr_first, pwr_second = _half_means(_values(power))
    if hr_first <= 0 or hr_second <= 0:
        return None

    ef_first = pwr_first / hr_first
    ef_second = pwr_second / hr_second
    if ef_first == 0:
        return None

    return DecouplingResult(
        decoupling_pct=(ef_first - ef_second) / ef_first * 100.0,
        ef_first_half=ef_first,
        ef_second_half=ef_second,
    )


def hr_zone_distribution(hr: Series, zones: Optional[ZoneThresholds] = None) -> Dict[str, float]:
    """Minutes per HR zone; each gap goes to the zone of the earlier sample, capped at 10s."""
    zones = zones or ZoneThresholds()
    if len(hr) < 2:
        return {}

    df = pd.DataFrame(list(hr), columns=["ts", "bpm"])
    df["ts"] = pd.to_datetime(df["ts"])
    df = df.sort_values("ts", kind="stable").reset_index(drop=True)

    gaps = df["ts"].shift(-1) - df["ts"]
    df["secs"] = gaps.dt.total_seconds().clip(upper=MAX_GAP_SECONDS)
    df = df.iloc[:-1].copy()
    df["zone"] = df["bpm"].astype(float).map(zones.zone_for)

    totals = df.groupby("zone")["secs"].sum()
    return {z: float(totals[z]) / 60.0 for z in ZONES if z in totals.index and totals[z] > 0}


def efficiency_factor(session: SessionRecord) -> Optional[float]:
    if session.avg_power is None or not session.average_hr or session.average_hr <= 0:
        return None
    return round(session.avg_power / session.average_hr, 3)


def power_to_weight(power: float, weight_kg: float) -> float:
    if not weight_kg or weight_kg <= 0:
        return 0.0
    return round(power / weight_kg, 2)


def efficiency_tier(ratio: float) -> str:
    if ratio < 2.5:
        return "BASE"
    if ratio < 3.5:
        return "DEVELOPING"
    if ratio < 4.5:
        return "ELITE"
    return "PRO"
