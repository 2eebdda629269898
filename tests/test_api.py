"""End-to-end tests through the FastAPI app with an in-memory database and a mocked provider."""
from datetime import date

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

from readiness_hub import config, store

DAY = "2026-03-10"


def log_metrics(client, athlete_id=1, **values):
    return client.post(f"/metrics/log?athlete_id={athlete_id}", json={"date": DAY, **values})


def ingest(client, records, athlete_id=1):
    return client.post(f"/directives/ingest?athlete_id={athlete_id}", json=records)


def add_session(client, athlete_id=1, **kw):
    body = {"date": DAY, "discipline": "SPIN", "duration_min": 60, "rpe": 6, "average_hr": 140, "avg_power": 200}
    body.update(kw)
    r = client.post(f"/sessions?athlete_id={athlete_id}", json=body)
    assert r.status_code == 200, r.text
    return r.json()["id"]


class TestMetricsLog:

    def test_log_returns_readiness(self, client):
        r = log_metrics(client, hrv=50.0, resting_hr=55.0, sleep_hours=8.0)
        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is True
        assert body["metrics"]["hrv"] == 50.0
        assert body["metrics"]["rmssd"] is None
        assert 0 <= body["readiness"] <= 100

    def test_empty_log_rejected(self, client):
        r = log_metrics(client)
        assert r.status_code == 400
        assert r.json()["detail"] == "no_values_provided"

    def test_out_of_range_rejected(self, client):
        assert log_metrics(client, sleep_hours=30).status_code == 422
        assert log_metrics(client, subjective_readiness=11).status_code == 422

    def test_api_key_enforced(self, client, monkeypatch):
        monkeypatch.setattr(config, "API_KEY", "secret")
        assert log_metrics(client, hrv=60.0).status_code == 401
        r = client.post("/metrics/log?athlete_id=1", json={"date": DAY, "hrv": 60.0}, headers={"x-api-key": "secret"})
        assert r.status_code == 200


class TestDirectives:

    def test_ingest_skips_bad_records(self, client):
        r = ingest(client, [
            {"date": "2026-03-09", "activity": "Easy Run", "powerTarget": "Z2"},
            {"date": "2026-03-10", "powerTarget": "Z4"},
            {"date": DAY, "activity": "Threshold", "powerTarget": "270W", "fuelTier": "🔴 HIGH FUEL TIER"},
        ])
        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is False
        assert body["success_count"] == 2
        assert body["fault_count"] == 1
        assert body["faults"][0]["index"] == 1

        d = client.get(f"/directives?athlete_id=1&day={DAY}").json()["directive"]
        assert d["activity"] == "Threshold"
        assert d["fuel_tier"] == "HIGH"

    def test_wrapped_payload(self, client):
        r = ingest(client, {"directives": [{"date": DAY, "activity": "Rest", "powerTarget": "-"}]})
        assert r.json()["success_count"] == 1

    def test_non_list_payload_rejected(self, client):
        r = ingest(client, {"date": DAY})
        assert r.status_code == 400
        assert r.json()["detail"].startswith("invalid_payload")

    def test_no_directive(self, client):
        assert client.get(f"/directives?athlete_id=1&day={DAY}").json()["directive"] is None


class TestMissionAndReadiness:

    def test_default_mission_without_directive(self, client):
        body = client.get(f"/mission/today?athlete_id=1&day={DAY}").json()
        assert body["readiness"] == 50
        assert body["mission"]["title"] == "Rest / Easy Spin"
        assert body["mission"]["is_altered"] is False

    def test_low_readiness_alters_mission(self, client):
        ingest(client, [{"date": DAY, "activity": "VO2 5x4", "powerTarget": "320W", "fuelTier": "HIGH"}])
        log_metrics(client, hrv=10.0, resting_hr=90.0, sleep_hours=2.0)
        body = client.get(f"/mission/today?athlete_id=1&day={DAY}").json()
        assert body["readiness"] < 40
        assert body["mission"]["is_altered"] is True
        assert body["mission"]["fuel_tier"] == "LOW"
        assert "VO2 5x4" in body["mission"]["title"]

    def test_readiness_breakdown_with_provider_energy(self, client):
        body = client.get(f"/readiness/today?athlete_id=1&day={DAY}&use_provider=true").json()
        assert body["readiness"]["score"] == 40
        assert body["readiness"]["penalties"]["energy"] == 10.0
        assert body["load"]["strain_flag"] == "normal"
        assert body["errors"] is None

    def test_explicit_net_energy_wins(self, client):
        body = client.get(f"/readiness/today?athlete_id=1&day={DAY}&net_energy=200&use_provider=true").json()
        assert body["readiness"]["score"] == 50

    def test_training_load(self, client):
        add_session(client, rpe=5)
        body = client.get(f"/training/load?athlete_id=1&day={DAY}").json()
        assert body["sessions_considered"] == 1
        assert body["profile"]["strain_ratio"] == 1.0
        assert body["fitness_fatigue"]["atl"] > body["fitness_fatigue"]["ctl"]


class TestZones:

    def test_defaults(self, client):
        zones = client.get("/zones?athlete_id=1").json()["zones"]
        assert zones["zone1_max"] == 130
        assert zones["ftp_w"] == 250

    def test_update(self, client):
        body = {"zone1_max": 125, "zone2_max": 140, "zone3_max": 155, "zone4_max": 170, "ftp_w": 280, "target_weight_kg": 70}
        assert client.put("/zones?athlete_id=1", json=body).status_code == 200
        assert client.get("/zones?athlete_id=1").json()["zones"]["ftp_w"] == 280

    def test_not_ascending(self, client):
        r = client.put("/zones?athlete_id=1", json={"zone1_max": 150, "zone2_max": 140})
        assert r.status_code == 422
        assert r.json()["detail"] == "zones_not_ascending"


class TestSessions:

    def test_create_returns_load(self, client):
        r = client.post("/sessions?athlete_id=1", json={"date": DAY, "discipline": "ROW", "duration_min": 40, "rpe": 7})
        assert r.json()["load"] == 280

    def test_invalid_discipline(self, client):
        r = client.post("/sessions?athlete_id=1", json={"date": DAY, "discipline": "SWIM", "duration_min": 40, "rpe": 7})
        assert r.status_code == 422

    def test_analytics(self, client):
        sid = add_session(client, linked_directive_id=999)
        body = client.get(f"/sessions/{sid}/analytics?athlete_id=1").json()
        assert body["aerobic_decoupling"]["decoupling_pct"] == 10.0
        assert body["aerobic_decoupling"]["is_efficient"] is False
        assert body["hr_zones_min"] == {"Z2": 2.42}
        assert body["efficiency_factor"] == 1.429
        assert body["power_to_weight"] == 2.67
        assert body["efficiency_tier"] == "DEVELOPING"
        assert body["directive"] is None
        assert body["errors"] is None

    def test_analytics_links_directive(self, client):
        ingest(client, [{"date": DAY, "activity": "Sweet Spot", "powerTarget": "230W"}])
        directive_id = client.get(f"/directives?athlete_id=1&day={DAY}").json()["directive"]["id"]
        sid = add_session(client, linked_directive_id=directive_id)
        body = client.get(f"/sessions/{sid}/analytics?athlete_id=1").json()
        assert body["directive"]["activity"] == "Sweet Spot"

    def test_unknown_session(self, client):
        r = client.get("/sessions/12345/analytics?athlete_id=1")
        assert r.status_code == 404
        assert r.json()["detail"] == "session_not_found"

    def test_other_athletes_session(self, client):
        sid = add_session(client, athlete_id=1)
        assert client.get(f"/sessions/{sid}/export?athlete_id=2").status_code == 404

    def test_export(self, client):
        client.get(f"/mission/today?athlete_id=1&day={DAY}")
        sid = add_session(client)
        doc = client.get(f"/sessions/{sid}/export?athlete_id=1").json()
        assert doc["session_metadata"]["discipline"] == "SPIN"
        assert doc["session_metadata"]["morning_readiness_score"] == 50
        assert doc["scalar_averages"]["aerobic_decoupling_pct"] == 10.0
        assert len(doc["vector_time_series"]["hr_bpm_array"]) == 30
        assert doc["vector_time_series"]["cadence_spm_array"] == []
        assert "cadence_unavailable:empty" in doc["errors"]


class TestProviderDown:

    @pytest.fixture
    def telemetry_handler(self):
        return lambda request: httpx.Response(503)

    def test_analytics_degrade(self, client):
        sid = add_session(client)
        r = client.get(f"/sessions/{sid}/analytics?athlete_id=1")
        assert r.status_code == 200
        body = r.json()
        assert body["aerobic_decoupling"] is None
        assert body["hr_zones_min"] == {}
        assert body["efficiency_factor"] == 1.429
        assert len(body["errors"]) == 2

    def test_export_decoupling_null(self, client):
        sid = add_session(client)
        doc = client.get(f"/sessions/{sid}/export?athlete_id=1").json()
        assert doc["scalar_averages"]["aerobic_decoupling_pct"] is None
        assert doc["vector_time_series"]["power_w_array"] == []
        assert len(doc["errors"]) == 5

    def test_readiness_without_energy(self, client):
        body = client.get(f"/readiness/today?athlete_id=1&day={DAY}&use_provider=true").json()
        assert body["readiness"]["score"] == 50
        assert len(body["errors"]) == 1
        assert body["errors"][0].startswith("energy_history_unavailable:")


class TestSingleReadinessWriter:

    def test_readiness_and_mission_persist_same_score(self, client, engine):
        log_metrics(client, hrv=48.0, resting_hr=57.0, sleep_hours=7.0)
        Session = sessionmaker(bind=engine)

        r1 = client.get(f"/readiness/today?athlete_id=1&day={DAY}&net_energy=-900").json()
        with Session() as db:
            after_readiness = store.readiness_for(db, 1, date(2026, 3, 10))

        r2 = client.get(f"/mission/today?athlete_id=1&day={DAY}&net_energy=-900").json()
        with Session() as db:
            after_mission = store.readiness_for(db, 1, date(2026, 3, 10))

        assert r1["readiness"]["score"] == r2["readiness"]
        assert after_readiness == after_mission == r2["readiness"]
        assert r1["mission"] == r2["mission"]


class TestCsvUpload:

    def test_upload_block(self, client):
        csv = (
            "date,activity,intensity,fuel,notes\n"
            "Week 1,,,,\n"
            f"{DAY},Threshold,270W,HIGH,\"Hold it, don't surge\"\n"
            "2026-03-11,,Z2,,\n"
        )
        r = client.post("/directives/ingest/csv?athlete_id=1", files={"file": ("block.csv", csv.encode(), "text/csv")})
        assert r.status_code == 200
        body = r.json()
        assert body["success_count"] == 1
        assert body["fault_count"] == 1
        d = client.get(f"/directives?athlete_id=1&day={DAY}").json()["directive"]
        assert d["coach_notes"] == "Hold it, don't surge"

    def test_upload_without_date_column(self, client):
        r = client.post("/directives/ingest/csv?athlete_id=1", files={"file": ("block.csv", b"activity\nEasy\n", "text/csv")})
        assert r.status_code == 400
        assert r.json()["detail"].startswith("invalid_payload")
