from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import MAX_STOPS

OTHER_CLUSTER = "Other"
VARIOUS_DESTINATIONS = "Various Destinations"

TRIP_COLORS: Tuple[str, ...] = (
    "#e6194b", "#3cb44b", "#4363d8", "#f58231", "#911eb4",
    "#42d4f4", "#f032e6", "#bfef45", "#fabed4", "#469990",
    "#dcbeff", "#9A6324", "#fffac8", "#800000", "#aaffc3",
    "#808000", "#ffd8b1", "#000075", "#a9a9a9", "#000000",
)


def color_for(index: int) -> str:
    return TRIP_COLORS[index % len(TRIP_COLORS)]


@dataclass(frozen=True)
class ClusterTables:
    """
    Deployment data for the fallback packer: zip clusters, which clusters are
    neighbours, the per-trip stop cap and the hub's street text. Swap the whole
    object per deployment or test instead of editing module globals.
    """
    clusters: Mapping[str, Tuple[str, ...]]
    adjacency: Mapping[str, Tuple[str, ...]]
    max_stops: int = MAX_STOPS
    large_cluster_min: int = 5
    hub_street_number: str = "1839"
    hub_street_name: str = "valley"
    _zip_index: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        index: Dict[str, str] = {}
        for name, zips in self.clusters.items():
            for z in zips:
                # first cluster listing a zip wins
                index.setdefault(z, name)
        object.__setattr__(self, "_zip_index", MappingProxyType(index))

    @classmethod
    def from_dicts(
        cls,
        clusters: Mapping[str, Sequence[str]],
        adjacency: Mapping[str, Sequence[str]],
        **kwargs,
    ) -> "ClusterTables":
        return cls(
            clusters=MappingProxyType({k: tuple(v) for k, v in clusters.items()}),
            adjacency=MappingProxyType({k: tuple(v) for k, v in adjacency.items()}),
            **kwargs,
        )

    def cluster_for_zip(self, zip_code: Optional[str]) -> Optional[str]:
        z = (zip_code or "").strip()
        if not z:
            return None
        return self._zip_index.get(z)

    def neighbours(self, cluster: str) -> List[str]:
        return list(self.adjacency.get(cluster, ()))


DEFAULT_CLUSTER_TABLES = ClusterTables.from_dicts(
    clusters={
        "Monterey Park": ["91754", "91755"],
        "San Gabriel": ["91775", "91776"],
        "Arcadia/San Marino": ["91006", "91007", "91108"],
        "Rosemead": ["91770"],
        "Alhambra": ["91801", "91803"],
        "Pasadena": ["91101", "91103", "91105"],
        "Temple City": ["91780"],
        "El Monte": ["91731", "91732", "91733"],
        "DTLA": ["90014", "90015", "90032", "90033"],
    },
    adjacency={
        "Alhambra": ["Monterey Park", "San Gabriel", "Pasadena"],
        "Monterey Park": ["Alhambra", "Rosemead", "El Monte"],
        "San Gabriel": ["Alhambra", "Rosemead", "Temple City", "Arcadia/San Marino"],
        "Rosemead": ["Monterey Park", "San Gabriel", "Temple City", "El Monte"],
        "Temple City": ["San Gabriel", "Rosemead", "Arcadia/San Marino"],
        "Arcadia/San Marino": ["San Gabriel", "Temple City", "Pasadena"],
        "Pasadena": ["Alhambra", "Arcadia/San Marino"],
        "El Monte": ["Monterey Park", "Rosemead"],
        "DTLA": ["Alhambra"],
    },
)
