# route_planner/manifest.py
from __future__ import annotations
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Tuple
import io
import logging
import re

import pandas as pd

logger = logging.getLogger(__name__)

PICKUP = "pickup"
DROPOFF = "dropoff"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

@dataclass(frozen=True)
class ColumnMap:
    job_date: str = "JobDate"
    id_number: str = "ID Number"
    cust_name: str = "CustName"
    phone: str = "Phone"
    booking_purpose: str = "Booking Purpose"
    pu_addr: str = "PUAddr"
    pu_unit: str = "PU Unit"
    pickup_city: str = "PickupCity"
    pu_state: str = "PUState"
    pick_zip: str = "PickZip"
    do_addr: str = "DOAddr"
    do_unit: str = "DO Unit"
    drop_city: str = "DropCity"
    do_state: str = "DOState"
    drop_zip: str = "DropZip"
    assistive_device: str = "Assistive Device"
    n_total_wheelchairs: str = "nTotalWheelChairs"
    n_total_passengers: str = "nTotalPassengers"
    sch_pu: str = "SchPU"
    apt_time: str = "AptTime"
    notes: str = "Notes"
    job_id: str = "JobID"

_INT_FIELDS = ("n_total_wheelchairs", "n_total_passengers")

@dataclass(frozen=True)
class ManifestJobRow:
    """One manifest line. Created once at upload and never mutated."""
    job_id: str
    cust_name: str
    job_date: str = ""
    id_number: str = ""
    phone: str = ""
    booking_purpose: str = ""
    pu_addr: str = ""
    pu_unit: str = ""
    pickup_city: str = ""
    pu_state: str = ""
    pick_zip: str = ""
    do_addr: str = ""
    do_unit: str = ""
    drop_city: str = ""
    do_state: str = ""
    drop_zip: str = ""
    assistive_device: str = ""
    n_total_wheelchairs: int = 0
    n_total_passengers: int = 0
    sch_pu: str = ""
    apt_time: str = ""
    notes: str = ""

    @property
    def leg_type(self) -> str:
        return classify_leg(self.job_id)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["leg_type"] = self.leg_type
        return d

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ManifestJobRow":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for k, v in payload.items():
            if k not in known:
                continue
            kwargs[k] = _coerce_int(v) if k in _INT_FIELDS else _clean(v)
        return cls(**kwargs)


def classify_leg(job_id: str) -> str:
    """
    Leg direction from the JobID suffix: "-B" is a dropoff.
    Everything else, "-A" and unsuffixed ids included, is treated as a pickup;
    the manifest exports omit the suffix for one-way pickups.
    """
    upper = str(job_id or "").strip().upper()
    if upper.endswith("-B"):
        return DROPOFF
    return PICKUP


def _clean(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        # short rows are padded with NaN even with keep_default_na=False
        return ""
    return str(value).strip()


def _coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    m = _LEADING_INT.match(str(value if value is not None else ""))
    if not m:
        return default
    return int(m.group(1))


def parse_manifest_csv(csv_text: str, column_map: ColumnMap | None = None) -> Tuple[List[ManifestJobRow], List[str]]:
    """
    Parse manifest CSV text into typed rows plus human-readable errors.
    Bad rows are reported and skipped; the batch is never aborted for one row.
    """
    col = column_map or ColumnMap()
    errors: List[str] = []

    try:
        raw = pd.read_csv(
            io.StringIO(csv_text or ""),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            # trailing delimiters must not turn the first column into an index;
            # fields beyond the header are dropped
            index_col=False,
        )
    except pd.errors.EmptyDataError:
        return [], ["CSV is empty"]
    except (pd.errors.ParserError, ValueError) as e:
        return [], [f"CSV parse error: {e}"]

    raw.columns = [str(c).strip() for c in raw.columns]

    def get(rec: Dict[str, Any], attr: str) -> str:
        return _clean(rec.get(getattr(col, attr), ""))

    rows: List[ManifestJobRow] = []
    for i, rec in enumerate(raw.to_dict(orient="records")):
        row_num = i + 2  # header is line 1
        job_id = get(rec, "job_id")
        cust_name = get(rec, "cust_name")
        if not job_id:
            errors.append(f"Row {row_num}: Missing JobID, skipping")
            continue
        if not cust_name:
            errors.append(f"Row {row_num}: Missing CustName, skipping")
            continue

        values: Dict[str, Any] = {}
        for f in fields(ManifestJobRow):
            if f.name in _INT_FIELDS:
                values[f.name] = _coerce_int(rec.get(getattr(col, f.name), ""))
            else:
                values[f.name] = get(rec, f.name)
        rows.append(ManifestJobRow(**values))

    if errors:
        logger.info("Manifest parse: %d rows accepted, %d errors", len(rows), len(errors))
    return rows, errors


def unique_passenger_count(rows: List[ManifestJobRow]) -> int:
    return len({r.id_number for r in rows})
