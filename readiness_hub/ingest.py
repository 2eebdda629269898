"""
Bulk directive ingestion.

Policy is skip-and-report: every well-formed record is accepted, every
malformed one produces a ValidationFault naming its position and field, and
the batch as a whole only fails when it is not a list of records (or not
readable CSV) at all.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from readiness_hub.errors import ValidationFault
from readiness_hub.records import FuelTier, ScheduledDirective

log = logging.getLogger(__name__)


class DirectiveIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    date: date
    activity: str = Field(min_length=1)
    power_target: str = Field(alias="powerTarget", min_length=1)
    fuel_tier: str = Field("MED", alias="fuelTier")
    coach_notes: str = Field("", alias="coachNotes")

    @field_validator("fuel_tier", "coach_notes", mode="before")
    @classmethod
    def _none_to_default(cls, v, info):
        if v is None:
            return "MED" if info.field_name == "fuel_tier" else ""
        return v

    def to_record(self) -> ScheduledDirective:
        return ScheduledDirective(
            date=self.date,
            activity=self.activity,
            power_target=self.power_target,
            fuel_tier=FuelTier.parse(self.fuel_tier),
            coach_notes=self.coach_notes,
        )


@dataclass
class IngestReport:
    accepted: List[ScheduledDirective] = field(default_factory=list)
    faults: List[ValidationFault] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.accepted)

    def to_dict(self):
        return {
            "success_count": self.success_count,
            "fault_count": len(self.faults),
            "faults": [f.to_dict() for f in self.faults],
        }


def _first_error(exc: ValidationError, index: int) -> ValidationFault:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or None
    return ValidationFault(err.get("msg", "invalid record"), index=index, field=loc)


def _ingest(rows: Iterable[Tuple[int, Any]]) -> IngestReport:
    report = IngestReport()
    seen: set = set()
    for i, raw in rows:
        if not isinstance(raw, dict):
            report.faults.append(ValidationFault("record must be an object", index=i))
            continue
        try:
            rec = DirectiveIn.model_validate(raw)
        except ValidationError as e:
            report.faults.append(_first_error(e, i))
            continue
        if rec.date in seen:
            report.faults.append(ValidationFault(f"duplicate directive for {rec.date.isoformat()}", index=i, field="date"))
            continue
        seen.add(rec.date)
        report.accepted.append(rec.to_record())
    return report


def ingest_directives(records: Any) -> IngestReport:
    if not isinstance(records, list):
        raise ValidationFault("payload must be a list of directive records")

    report = _ingest(enumerate(records))
    log.info(f"Directive ingest: accepted={report.success_count}, faults={len(report.faults)}")
    return report


def ingest_json(payload: Union[str, bytes]) -> IngestReport:
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise ValidationFault(f"invalid JSON: {e}")
    if isinstance(data, dict) and isinstance(data.get("directives"), list):
        data = data["directives"]
    return ingest_directives(data)


# ---------------- CSV training blocks ----------------
CSV_COLUMNS = {
    "powertarget": "power_target",
    "intensity": "power_target",
    "fueltier": "fuel_tier",
    "fuel": "fuel_tier",
    "coachnotes": "coach_notes",
    "notes": "coach_notes",
}


def _with_year(raw: str, year: int) -> str:
    """``Mar 09`` -> ``2026-03-09``; anything else is left for validation to judge."""
    raw = raw.strip()
    try:
        return date.fromisoformat(raw).isoformat()
    except ValueError:
        pass
    try:
        return datetime.strptime(f"{raw} {year}", "%b %d %Y").date().isoformat()
    except ValueError:
        return raw


def ingest_csv(source: Any, year: Optional[int] = None) -> IngestReport:
    """Import a training block from CSV (path, buffer or open file).

    Expects a header row with at least date, activity and power_target
    (``intensity``/``notes``/``fuel`` are accepted as column names too).
    Quoted fields may contain commas. Blank rows and ``Week ...`` section
    rows are skipped; a ``strength`` column other than "rest" is prefixed to
    the coach notes. Fault indexes are the data row positions (header excluded).
    Rows with more fields than the header are reported without an index.
    With ``year`` set, short dates like ``Mar 09`` are accepted.
    """
    bad_lines: List[List[str]] = []

    def _bad_line(fields: List[str]) -> None:
        bad_lines.append(fields)
        return None

    try:
        df = pd.read_csv(
            source,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            engine="python",
            on_bad_lines=_bad_line,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ValidationFault(f"invalid CSV: {e}")

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    df = df.rename(columns=CSV_COLUMNS)
    if "date" not in df.columns:
        raise ValidationFault("CSV needs a date column", field="date")

    rows = []
    for i, rec in enumerate(df.to_dict("records")):
        rec = {k: (None if pd.isna(v) else str(v).strip()) for k, v in rec.items()}
        if not any(rec.values()) or (rec.get("date") or "").lower().startswith("week"):
            continue
        strength = rec.pop("strength", None) or ""
        if strength and strength.lower() != "rest":
            rec["coach_notes"] = f"STRUCTURAL LOAD: {strength}. {rec.get('coach_notes') or ''}".strip()
        if year and rec.get("date"):
            rec["date"] = _with_year(rec["date"], year)
        rows.append((i, {k: v for k, v in rec.items() if v not in ("", None)}))

    report = _ingest(rows)
    for fields in bad_lines:
        report.faults.append(ValidationFault(f"malformed row: {','.join(fields)}"))
    log.info(f"CSV directive ingest: accepted={report.success_count}, faults={len(report.faults)}")
    return report
