"""
Fallback trip builder used when no external optimizer is configured.

Pipeline per leg direction:
  1. hub separation   - rows whose far end is the facility vs. everything else
  2. clustering       - hub-bound rows grouped by zip cluster ("Other" if unknown)
  3. packing          - large clusters chunked, small clusters merged with neighbours
  4. trip assembly    - time-sorted passengers, time-of-day label, palette colour

Everything here is deterministic: identical input gives identical trips.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ..manifest import ManifestJobRow, PICKUP, DROPOFF
from ..timeparse import average_time_label, time_sort_key
from .clusters import ClusterTables, DEFAULT_CLUSTER_TABLES, OTHER_CLUSTER, VARIOUS_DESTINATIONS, color_for
from .models import Trip
from .passengers import row_to_passenger, row_time, split_by_leg


@dataclass
class PackedGroup:
    area: str
    rows: List[ManifestJobRow]


def _squash(addr: str) -> str:
    return " ".join((addr or "").split())


def is_hub_bound(row: ManifestJobRow, tables: ClusterTables = DEFAULT_CLUSTER_TABLES) -> bool:
    """True when the far end of the leg is the hub (dest for pickups, origin for dropoffs)."""
    far_end = _squash(row.do_addr if row.leg_type == PICKUP else row.pu_addr)
    return tables.hub_street_number in far_end and tables.hub_street_name.lower() in far_end.lower()


def separate_hub_rows(
    rows: Sequence[ManifestJobRow], tables: ClusterTables = DEFAULT_CLUSTER_TABLES
) -> Tuple[List[ManifestJobRow], List[ManifestJobRow]]:
    hub_rows: List[ManifestJobRow] = []
    other_rows: List[ManifestJobRow] = []
    for row in rows:
        (hub_rows if is_hub_bound(row, tables) else other_rows).append(row)
    return hub_rows, other_rows


def cluster_rows(
    rows: Sequence[ManifestJobRow], leg_type: str, tables: ClusterTables = DEFAULT_CLUSTER_TABLES
) -> Dict[str, List[ManifestJobRow]]:
    """Group by the home zip of the leg; dict insertion order is first-seen order."""
    clustered: Dict[str, List[ManifestJobRow]] = {}
    for row in rows:
        zip_code = row.pick_zip if leg_type == PICKUP else row.drop_zip
        cluster = tables.cluster_for_zip(zip_code) or OTHER_CLUSTER
        clustered.setdefault(cluster, []).append(row)
    return clustered


def _chunks(rows: Sequence[ManifestJobRow], size: int) -> List[List[ManifestJobRow]]:
    return [list(rows[i:i + size]) for i in range(0, len(rows), size)]


def pack_trips(
    clustered: Dict[str, List[ManifestJobRow]], tables: ClusterTables = DEFAULT_CLUSTER_TABLES
) -> List[PackedGroup]:
    max_stops = tables.max_stops
    # sorted() is stable, so equal-size clusters keep insertion order
    ordered = sorted(clustered.items(), key=lambda kv: len(kv[1]), reverse=True)

    packed: List[PackedGroup] = []
    small: List[Tuple[str, List[ManifestJobRow]]] = []

    for cluster, rows in ordered:
        if len(rows) >= tables.large_cluster_min:
            for chunk in _chunks(rows, max_stops):
                packed.append(PackedGroup(area=cluster, rows=chunk))
        else:
            small.append((cluster, rows))

    small_by_name = dict(small)
    merged: set[str] = set()

    for cluster, rows in small:
        if cluster in merged:
            continue
        merged.add(cluster)
        trip_rows = list(rows)
        areas = [cluster]

        for neighbour in tables.neighbours(cluster):
            if neighbour in merged or neighbour not in small_by_name:
                continue
            neighbour_rows = small_by_name[neighbour]
            if len(trip_rows) + len(neighbour_rows) <= max_stops:
                trip_rows.extend(neighbour_rows)
                areas.append(neighbour)
                merged.add(neighbour)

        if trip_rows:
            packed.append(PackedGroup(area=" / ".join(areas), rows=trip_rows))

    return packed


def _sorted_by_time(rows: Sequence[ManifestJobRow], leg_type: str) -> List[ManifestJobRow]:
    return sorted(rows, key=lambda r: time_sort_key(row_time(r, leg_type)))


def _make_trip(leg_type: str, seq: int, area: str, rows: List[ManifestJobRow], with_time_label: bool) -> Trip:
    if with_time_label:
        label = average_time_label(row_time(r, leg_type) for r in rows)
        if label:
            area = f"{area} ({label})"
    return Trip(
        id=f"{leg_type}-{seq + 1}",
        type=leg_type,
        area=area,
        color=color_for(seq),
        passengers=[row_to_passenger(r) for r in rows],
        directions=None,
    )


def build_trips_for_direction(
    rows: Sequence[ManifestJobRow], leg_type: str, tables: ClusterTables = DEFAULT_CLUSTER_TABLES
) -> List[Trip]:
    hub_rows, other_rows = separate_hub_rows(rows, tables)
    packed = pack_trips(cluster_rows(hub_rows, leg_type, tables), tables)

    trips: List[Trip] = []
    for group in packed:
        ordered = _sorted_by_time(group.rows, leg_type)
        trips.append(_make_trip(leg_type, len(trips), group.area, ordered, with_time_label=True))

    for chunk in _chunks(other_rows, tables.max_stops):
        ordered = _sorted_by_time(chunk, leg_type)
        trips.append(_make_trip(leg_type, len(trips), VARIOUS_DESTINATIONS, ordered, with_time_label=False))

    return trips


def build_optimized_routes(
    rows: Sequence[ManifestJobRow], tables: ClusterTables = DEFAULT_CLUSTER_TABLES
) -> Tuple[List[Trip], List[Trip]]:
    pickup_rows, dropoff_rows = split_by_leg(rows)
    return (
        build_trips_for_direction(pickup_rows, PICKUP, tables),
        build_trips_for_direction(dropoff_rows, DROPOFF, tables),
    )
