from typing import Any, Dict, Optional

from readiness_hub.analytics import Series, aerobic_decoupling
from readiness_hub.records import ScheduledDirective, SessionRecord


def _vector(series: Optional[Series], digits: Optional[int] = None) -> list:
    values = [v for _, v in sorted(series or [], key=lambda p: p[0])]
    if digits is None:
        return [int(round(v)) for v in values]
    return [round(float(v), digits) for v in values]


def session_export(
    session: SessionRecord,
    hr: Optional[Series] = None,
    power: Optional[Series] = None,
    cadence: Optional[Series] = None,
    gct: Optional[Series] = None,
    oscillation: Optional[Series] = None,
    readiness: Optional[int] = None,
    directive: Optional[ScheduledDirective] = None,
) -> Dict[str, Any]:
    """Session document for external analysis: metadata, averages and raw value vectors.

    Timestamps are stripped from the vectors. Values that were not measured
    or cannot be computed are exported as null.
    """
    decoupling = aerobic_decoupling(hr or [], power or [])
    return {
        "session_metadata": {
            "discipline": session.discipline.value,
            "date": session.date.isoformat(),
            "duration_minutes": session.duration_min,
            "distance_km": session.distance_km,
            "rpe": session.rpe,
            "morning_readiness_score": readiness,
        },
        "scalar_averages": {
            "avg_hr": int(round(session.average_hr)) if session.average_hr else None,
            "avg_power": None if session.avg_power is None else int(round(session.avg_power)),
            "avg_cadence": None if session.avg_cadence is None else int(round(session.avg_cadence)),
            "avg_gct_ms": None if session.ground_contact_ms is None else int(round(session.ground_contact_ms)),
            "avg_osc_cm": session.vertical_oscillation_cm,
            "elevation_gain_m": session.elevation_gain_m,
            "aerobic_decoupling_pct": None if decoupling is None else round(decoupling.decoupling_pct, 2),
        },
        "vector_time_series": {
            "hr_bpm_array": _vector(hr),
            "power_w_array": _vector(power),
            "cadence_spm_array": _vector(cadence),
            "gct_ms_array": _vector(gct),
            "oscillation_cm_array": _vector(oscillation, digits=1),
        },
        "mission_context": {
            "planned": directive.activity if directive else None,
            "goal": directive.power_target if directive else None,
        },
    }
