from __future__ import annotations
from typing import Iterable

from ..manifest import ManifestJobRow, PICKUP
from .models import Passenger


def join_address(*parts: str) -> str:
    """Join the non-empty address components with ", " (no stray commas)."""
    return ", ".join(p.strip() for p in parts if p and p.strip())


def time_field(leg_type: str) -> str:
    # Pickups are driven by the appointment time, dropoffs by the scheduled pickup.
    return "apt_time" if leg_type == PICKUP else "sch_pu"


def row_time(row: ManifestJobRow, leg_type: str | None = None) -> str:
    return getattr(row, time_field(leg_type or row.leg_type))


def row_to_passenger(row: ManifestJobRow) -> Passenger:
    return Passenger(
        name=row.cust_name,
        address=join_address(row.pu_addr, row.pu_unit, row.pickup_city, row.pu_state, row.pick_zip),
        dest_address=join_address(row.do_addr, row.do_unit, row.drop_city, row.do_state, row.drop_zip),
        time=row_time(row),
        purpose=row.booking_purpose,
        phone=row.phone,
        notes=row.notes,
        assistive_device=row.assistive_device,
    )


def split_by_leg(rows: Iterable[ManifestJobRow]):
    pickups, dropoffs = [], []
    for row in rows:
        (pickups if row.leg_type == PICKUP else dropoffs).append(row)
    return pickups, dropoffs
