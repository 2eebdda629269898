"""
In-memory records handed to the engines.

The store adapter converts ORM rows into these before any computation runs,
so the engines only ever see immutable snapshots. Optional measurements are
``None`` when not taken; nothing here coalesces "not measured" to zero.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Discipline(str, Enum):
    RUN = "RUN"
    ROW = "ROW"
    SPIN = "SPIN"
    STRENGTH = "STRENGTH"


class StrainFlag(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class FuelTier(str, Enum):
    LOW = "LOW"
    MED = "MED"
    HIGH = "HIGH"
    RACE = "RACE"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "FuelTier":
        """Map a free-text tier ("🟢 LOW FUEL TIER (2200 kcal)") onto the enum."""
        text = (raw or "").upper()
        if "LOW" in text:
            return cls.LOW
        if "MED" in text:
            return cls.MED
        if "HIGH" in text:
            return cls.HIGH
        if "RACE" in text:
            return cls.RACE
        return cls.MED


@dataclass(frozen=True)
class BiometricSample:
    date: date
    hrv: Optional[float] = None
    resting_hr: Optional[float] = None
    sleep_hours: Optional[float] = None
    weight_kg: Optional[float] = None
    rmssd: Optional[float] = None
    subjective_readiness: Optional[int] = None   # 1-10 self report
    readiness_score: Optional[int] = None


@dataclass(frozen=True)
class SessionRecord:
    date: date
    discipline: Discipline
    duration_min: float
    distance_km: float = 0.0
    average_hr: float = 0.0
    rpe: int = 5
    avg_power: Optional[float] = None
    avg_cadence: Optional[float] = None
    ground_contact_ms: Optional[float] = None
    vertical_oscillation_cm: Optional[float] = None
    elevation_gain_m: Optional[float] = None
    linked_directive_id: Optional[int] = None
    coach_notes: str = ""
    started_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def load(self) -> float:
        return float(self.duration_min) * float(self.rpe)


@dataclass(frozen=True)
class ScheduledDirective:
    date: date
    activity: str
    power_target: str
    fuel_tier: FuelTier = FuelTier.MED
    coach_notes: str = ""
    id: Optional[int] = None


@dataclass(frozen=True)
class ZoneThresholds:
    zone1_max: int = 130
    zone2_max: int = 145
    zone3_max: int = 160
    zone4_max: int = 175
    ftp_w: int = 250
    target_weight_kg: float = 75.0

    def zone_for(self, bpm: float) -> str:
        if bpm <= self.zone1_max:
            return "Z1"
        if bpm <= self.zone2_max:
            return "Z2"
        if bpm <= self.zone3_max:
            return "Z3"
        if bpm <= self.zone4_max:
            return "Z4"
        return "Z5"


@dataclass(frozen=True)
class LoadProfile:
    acute_load: float = 0.0
    chronic_load: float = 0.0
    strain_ratio: float = 1.0
    strain_flag: StrainFlag = StrainFlag.NORMAL


@dataclass(frozen=True)
class PrescribedMission:
    title: str
    power_target: str
    fuel_tier: FuelTier
    coach_notes: str
    is_altered: bool = False


@dataclass
class DailyBriefing:
    date: date
    readiness: int
    load_profile: LoadProfile
    mission: PrescribedMission
    breakdown: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)
