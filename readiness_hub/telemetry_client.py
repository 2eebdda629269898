"""
Read-only client for the biometric/telemetry provider.

Every fetch degrades instead of raising: on HTTP, timeout or decoding
failure it returns an empty/neutral value and records a DataUnavailableFault
in ``faults`` so callers can report what was missing.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from readiness_hub.config import API_KEY, TELEMETRY_BASE_URL, TELEMETRY_TIMEOUT
from readiness_hub.errors import DataUnavailableFault

log = logging.getLogger(__name__)

METRICS = ("heart_rate", "power", "cadence", "ground_contact_time", "vertical_oscillation")
NO_MACROS = {"protein": 0.0, "carbs": 0.0, "fat": 0.0}


def _parse_ts(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


class TelemetryClient:
    def __init__(
        self,
        base_url: str = TELEMETRY_BASE_URL,
        api_key: str = API_KEY,
        timeout: float = TELEMETRY_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"x-api-key": api_key} if api_key else {}
        self.timeout = timeout
        self.transport = transport
        self.faults: List[DataUnavailableFault] = []

    async def _fetch_json(self, path: str, params: Dict[str, Any], label: str) -> Tuple[Optional[Any], Optional[str]]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(f"{self.base_url}{path}", params=params, headers=self.headers)
                r.raise_for_status()
                try:
                    return r.json(), None
                except ValueError:
                    return None, f"{label}_invalid_json"
        except httpx.HTTPError as e:
            return None, f"{label}_http_error:{e}"

    def _fault(self, label: str, detail: str) -> None:
        fault = DataUnavailableFault(label, detail)
        log.warning(f"Telemetry unavailable: {fault}")
        self.faults.append(fault)

    async def fetch_latest_workout_summary(self) -> Optional[Dict[str, Any]]:
        data, err = await self._fetch_json("/workouts/latest", {}, "workout_summary")
        if err or not isinstance(data, dict) or not data:
            self._fault("workout_summary", err or "empty")
            return None
        return data

    async def fetch_time_series(self, metric: str, start: datetime, duration_min: float) -> List[Tuple[datetime, float]]:
        """Ordered ``(timestamp, value)`` samples; malformed samples are dropped."""
        data, err = await self._fetch_json(
            "/timeseries",
            {"metric": metric, "start": start.isoformat(), "duration_min": duration_min},
            metric,
        )
        if err:
            self._fault(metric, err)
            return []
        items = data.get("samples") if isinstance(data, dict) else data
        out: List[Tuple[datetime, float]] = []
        for it in items or []:
            if not isinstance(it, dict):
                continue
            ts = _parse_ts(it.get("ts") or it.get("timestamp"))
            try:
                value = float(it.get("value"))
            except (TypeError, ValueError):
                continue
            if ts is not None:
                out.append((ts, value))
        if not out:
            self._fault(metric, "empty")
        return sorted(out, key=lambda p: p[0])

    async def fetch_daily_macros(self) -> Dict[str, float]:
        data, err = await self._fetch_json("/nutrition/macros", {}, "macros")
        if err or not isinstance(data, dict):
            self._fault("macros", err or "empty")
            return dict(NO_MACROS)
        try:
            return {k: float(data.get(k) or 0.0) for k in ("protein", "carbs", "fat")}
        except (TypeError, ValueError):
            self._fault("macros", "invalid_value")
            return dict(NO_MACROS)

    async def fetch_energy_balance(self) -> Optional[Dict[str, float]]:
        data, err = await self._fetch_json("/energy/today", {}, "energy_balance")
        if err or not isinstance(data, dict) or data.get("net") is None:
            self._fault("energy_balance", err or "empty")
            return None
        try:
            return {k: float(data.get(k) or 0.0) for k in ("intake", "burned", "net")}
        except (TypeError, ValueError):
            self._fault("energy_balance", "invalid_value")
            return None

    async def fetch_historical_energy_balance(self, days_back: int = 7) -> List[Dict[str, Any]]:
        data, err = await self._fetch_json("/energy/history", {"days_back": days_back}, "energy_history")
        if err or not isinstance(data, list):
            self._fault("energy_history", err or "empty")
            return []
        out = []
        for it in data:
            try:
                out.append({"date": date.fromisoformat(str(it["date"])[:10]), "net": float(it["net"])})
            except (KeyError, TypeError, ValueError):
                continue
        return sorted(out, key=lambda r: r["date"])

    async def net_balance_for(self, day: date) -> Optional[float]:
        """Net energy balance recorded for ``day``, if the provider has it."""
        for rec in await self.fetch_historical_energy_balance(days_back=7):
            if rec["date"] == day:
                return rec["net"]
        return None


def get_telemetry() -> TelemetryClient:
    return TelemetryClient()
