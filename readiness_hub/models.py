from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, UniqueConstraint, func

from readiness_hub.db import Base


class DailyMetric(Base):
    __tablename__ = "daily_metric"
    __table_args__ = (UniqueConstraint("athlete_id", "date", name="uq_daily_metric_day"),)
    id = Column(Integer, primary_key=True)
    athlete_id = Column(Integer, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    hrv_ms = Column(Float)
    resting_hr_bpm = Column(Float)
    sleep_hours = Column(Float)
    weight_kg = Column(Float)
    rmssd_ms = Column(Float)
    subjective_readiness = Column(Integer)
    readiness_score = Column(Integer)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class TrainingSession(Base):
    __tablename__ = "training_session"
    id = Column(Integer, primary_key=True)
    athlete_id = Column(Integer, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    started_at = Column(DateTime)
    discipline = Column(String, nullable=False)
    duration_min = Column(Float, nullable=False)
    distance_km = Column(Float, default=0.0)
    avg_hr = Column(Float, default=0.0)
    rpe = Column(Integer, nullable=False)
    avg_power = Column(Float)
    avg_cadence = Column(Float)
    ground_contact_ms = Column(Float)
    vertical_oscillation_cm = Column(Float)
    elevation_gain_m = Column(Float)
    # weak link: no FK, a deleted directive leaves the id dangling
    linked_directive_id = Column(Integer)
    coach_notes = Column(Text, default="")


class Directive(Base):
    __tablename__ = "directive"
    __table_args__ = (UniqueConstraint("athlete_id", "date", name="uq_directive_day"),)
    id = Column(Integer, primary_key=True)
    athlete_id = Column(Integer, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    activity = Column(String, nullable=False)
    power_target = Column(String, nullable=False)
    fuel_tier = Column(String, default="MED")
    coach_notes = Column(Text, default="")
    created_at = Column(DateTime, server_default=func.now())


class ZoneSettings(Base):
    __tablename__ = "zone_settings"
    athlete_id = Column(Integer, primary_key=True)
    zone1_max = Column(Integer)
    zone2_max = Column(Integer)
    zone3_max = Column(Integer)
    zone4_max = Column(Integer)
    ftp_w = Column(Integer)
    target_weight_kg = Column(Float)
