# scripts/backfill_readiness.py
import os
from datetime import datetime, timedelta
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")

from garminconnect import Garmin  # noqa: E402

from readiness_hub import models  # noqa: E402,F401
from readiness_hub import store  # noqa: E402
from readiness_hub.db import Base, SessionLocal, engine  # noqa: E402
from readiness_hub.briefing import daily_briefing  # noqa: E402

# ---------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------
BACKFILL_DAYS = int(os.getenv("GARMIN_BACKFILL_DAYS", "30"))

ATHLETE_ID = os.getenv("ATHLETE_ID")
if not ATHLETE_ID:
    raise RuntimeError("ATHLETE_ID not set in .env")
ATHLETE_ID = int(ATHLETE_ID)

GARMIN_USER = os.getenv("GARMIN_USERNAME")
GARMIN_PASS = os.getenv("GARMIN_PASSWORD")
if not GARMIN_USER or not GARMIN_PASS:
    raise RuntimeError("Set GARMIN_USERNAME and GARMIN_PASSWORD in .env")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def login() -> Garmin:
    g = Garmin(GARMIN_USER, GARMIN_PASS)
    g.login()   # may prompt for 2FA the first time
    return g


def fetch_daily_metrics(g: Garmin, days: int = BACKFILL_DAYS) -> pd.DataFrame:
    end = datetime.now().date()
    start = end - timedelta(days=days - 1)
    rows = []

    for d in pd.date_range(start, end, freq="D"):
        d_str = d.strftime("%Y-%m-%d")
        sleep_h = rhr = hrv_ms = weight = None

        try:
            sleep = g.get_sleep_data(d_str)
            if isinstance(sleep, dict):
                secs = sleep.get("dailySleepDTO", {}).get("sleepTimeSeconds")
                sleep_h = secs / 3600.0 if secs else None
        except Exception as e:
            print(f"{d_str}: sleep unavailable ({e})")

        try:
            stats = g.get_stats_and_body(d_str)
            if isinstance(stats, dict):
                rhr = stats.get("restingHeartRate")
                grams = stats.get("weight")
                weight = grams / 1000.0 if grams else None
        except Exception as e:
            print(f"{d_str}: stats unavailable ({e})")

        try:
            hrv = g.get_hrv_data(d_str)  # not available to all accounts
            if isinstance(hrv, dict):
                hrv_ms = (hrv.get("hrvSummary") or {}).get("lastNightAvg")
        except Exception as e:
            print(f"{d_str}: hrv unavailable ({e})")

        rows.append({
            "date": d.date(),
            "hrv": hrv_ms,
            "resting_hr": rhr,
            "sleep_hours": sleep_h,
            "weight_kg": weight,
        })

    df = pd.DataFrame(rows)
    for c in ["hrv", "resting_hr", "sleep_hours", "weight_kg"]:
        df[c] = pd.to_numeric(df[c], errors="coerce")
    return df


def backfill(df: pd.DataFrame) -> int:
    """Upsert each day, then score it against the history that preceded it."""
    db = SessionLocal()
    try:
        days = []
        for rec in df.to_dict("records"):
            vals = {k: v for k, v in rec.items() if k != "date" and pd.notnull(v)}
            if vals:
                store.upsert_biometric(db, ATHLETE_ID, rec["date"], vals)
                days.append(rec["date"])

        errors = 0
        for day in sorted(days):
            b = daily_briefing(db, ATHLETE_ID, day)
            if b.errors:
                print(f"{day}: readiness {b.readiness} not saved ({b.errors[0]})")
                errors += 1
        return len(days) - errors
    finally:
        db.close()


# ---------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------
if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    g = login()
    dm = fetch_daily_metrics(g)
    if dm.empty:
        print("No daily metrics fetched.")
    else:
        n = backfill(dm)
        print(f"Backfilled {len(dm)} days, scored readiness for {n}.")
