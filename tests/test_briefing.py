from datetime import timedelta

from readiness_hub import store
from readiness_hub.briefing import daily_briefing
from readiness_hub.errors import PersistenceFault
from readiness_hub.records import FuelTier, ScheduledDirective, StrainFlag, ZoneThresholds
from readiness_hub.rules import default_mission

from conftest import TODAY, make_session

ATHLETE = 7


def test_empty_history(db_session):
    b = daily_briefing(db_session, ATHLETE, TODAY)
    assert b.readiness == 50
    assert b.load_profile.strain_flag == StrainFlag.NORMAL
    assert b.mission == default_mission()
    assert b.errors == []
    assert store.load_biometrics(db_session, ATHLETE)[0].readiness_score == 50


def test_wrecked_morning_downgrades_directive(db_session):
    store.save_directives(db_session, ATHLETE, [
        ScheduledDirective(date=TODAY, activity="Threshold 2x20", power_target="270W", fuel_tier=FuelTier.HIGH),
    ])
    store.upsert_biometric(db_session, ATHLETE, TODAY, {"hrv": 10.0, "resting_hr": 90.0, "sleep_hours": 2.0})
    b = daily_briefing(db_session, ATHLETE, TODAY)
    assert b.readiness < 40
    assert b.mission.is_altered is True
    assert b.mission.fuel_tier == FuelTier.LOW
    # default FTP of 250 W
    assert b.mission.power_target == "ZONE 1 FLUSH (< 138W)"


def test_uses_saved_ftp(db_session):
    store.save_zones(db_session, ATHLETE, ZoneThresholds(ftp_w=300))
    store.save_directives(db_session, ATHLETE, [ScheduledDirective(date=TODAY, activity="VO2", power_target="Z5")])
    store.upsert_biometric(db_session, ATHLETE, TODAY, {"sleep_hours": 0.0})
    b = daily_briefing(db_session, ATHLETE, TODAY, net_energy_balance=-900)
    assert b.readiness < 40
    assert b.mission.power_target == "ZONE 1 FLUSH (< 165W)"


def test_load_spike_reaches_readiness(db_session):
    for i in range(5):
        store.add_session(db_session, ATHLETE, make_session(TODAY - timedelta(days=i), 120, 9))
    b = daily_briefing(db_session, ATHLETE, TODAY)
    assert b.load_profile.strain_flag == StrainFlag.HIGH
    assert b.readiness == 35


def test_future_data_is_ignored(db_session):
    store.add_session(db_session, ATHLETE, make_session(TODAY + timedelta(days=1), 300, 10))
    store.upsert_biometric(db_session, ATHLETE, TODAY + timedelta(days=1), {"hrv": 5.0})
    assert daily_briefing(db_session, ATHLETE, TODAY).readiness == 50


def test_failed_save_still_returns_briefing(db_session, monkeypatch):
    def fail(*args, **kwargs):
        raise PersistenceFault("save_readiness", "disk full")

    monkeypatch.setattr(store, "save_readiness", fail)
    b = daily_briefing(db_session, ATHLETE, TODAY)
    assert b.readiness == 50
    assert b.errors == ["save_readiness_failed:disk full"]


def test_persist_false_writes_nothing(db_session):
    daily_briefing(db_session, ATHLETE, TODAY, persist=False)
    assert store.load_biometrics(db_session, ATHLETE) == []


def test_breakdown_matches_score(db_session):
    store.upsert_biometric(db_session, ATHLETE, TODAY, {"hrv": 40.0, "sleep_hours": 6.0})
    b = daily_briefing(db_session, ATHLETE, TODAY, net_energy_balance=-700)
    assert b.breakdown["score"] == b.readiness
    assert b.breakdown["penalties"]["energy"] == 10.0
    assert store.readiness_for(db_session, ATHLETE, TODAY) == b.readiness
