"""
Cosmogony Result

The final zone snapshot, its source metadata and the run statistics, plus
the pruning step that produces it.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .zone import Zone, ZoneIndex

logger = logging.getLogger(__name__)


@dataclass
class CosmogonyStats:
    """
    Run statistics.

    Classification failures are accumulated into a fresh instance by the
    zone typer and merged by the caller; the distributions are computed on
    the final zone set.
    """

    zone_without_country: int = 0
    zone_with_unknown_country_rules: Dict[str, int] = field(default_factory=dict)
    unhandled_admin_level: Dict[str, Dict[int, int]] = field(default_factory=dict)
    zone_type_counts: Dict[str, int] = field(default_factory=dict)
    level_counts: Dict[int, int] = field(default_factory=dict)
    zone_with_boundary: int = 0
    zone_with_wikidata: int = 0

    def record_invalid_country(self, country: str) -> None:
        self.zone_with_unknown_country_rules[country] = self.zone_with_unknown_country_rules.get(country, 0) + 1

    def record_unknown_level(self, country: str, level: Optional[int]) -> None:
        # a missing admin level is counted as level 0
        levels = self.unhandled_admin_level.setdefault(country, {})
        key = level if level is not None else 0
        levels[key] = levels.get(key, 0) + 1

    def merge(self, other: "CosmogonyStats") -> None:
        """Add the failure counters of `other` to this instance."""
        self.zone_without_country += other.zone_without_country
        for country, count in other.zone_with_unknown_country_rules.items():
            self.zone_with_unknown_country_rules[country] = self.zone_with_unknown_country_rules.get(country, 0) + count
        for country, levels in other.unhandled_admin_level.items():
            mine = self.unhandled_admin_level.setdefault(country, {})
            for level, count in levels.items():
                mine[level] = mine.get(level, 0) + count

    def compute(self, zones: Sequence[Zone]) -> None:
        """Compute the distributions over the final zone set."""
        self.zone_type_counts = dict(Counter(z.zone_type.value for z in zones if z.zone_type is not None))
        self.level_counts = dict(Counter(z.admin_level for z in zones if z.admin_level is not None))
        self.zone_with_boundary = sum(1 for z in zones if z.boundary is not None)
        self.zone_with_wikidata = sum(1 for z in zones if z.wikidata)

    @property
    def dropped_zones(self) -> int:
        """
        Number of zones left untyped by classification.

        Relations skipped at ingestion (no name, unreadable tags, not an
        administrative boundary) never become zones and are not counted.
        """
        return (
            self.zone_without_country
            + sum(self.zone_with_unknown_country_rules.values())
            + sum(sum(levels.values()) for levels in self.unhandled_admin_level.values())
        )

    def type_distribution(self) -> pd.DataFrame:
        """Zone counts by type, largest first."""
        frame = pd.DataFrame(
            sorted(self.zone_type_counts.items()),
            columns=["zone_type", "count"],
        )
        return frame.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)

    def unhandled_levels(self) -> pd.DataFrame:
        """One row per (country, admin level) that no rule could type."""
        rows = [
            (country, level, count)
            for country, levels in sorted(self.unhandled_admin_level.items())
            for level, count in sorted(levels.items())
        ]
        return pd.DataFrame(rows, columns=["country", "admin_level", "count"])

    def to_dict(self) -> Dict:
        return {
            "zone_without_country": self.zone_without_country,
            "zone_with_unknown_country_rules": dict(self.zone_with_unknown_country_rules),
            "unhandled_admin_level": {c: dict(levels) for c, levels in self.unhandled_admin_level.items()},
            "zone_type_counts": dict(self.zone_type_counts),
            "level_counts": dict(self.level_counts),
            "zone_with_boundary": self.zone_with_boundary,
            "zone_with_wikidata": self.zone_with_wikidata,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CosmogonyStats":
        """Inverse of to_dict. JSON turns integer keys into strings, they are converted back."""
        return cls(
            zone_without_country=data.get("zone_without_country", 0),
            zone_with_unknown_country_rules=dict(data.get("zone_with_unknown_country_rules", {})),
            unhandled_admin_level={
                country: {int(level): count for level, count in levels.items()}
                for country, levels in data.get("unhandled_admin_level", {}).items()
            },
            zone_type_counts=dict(data.get("zone_type_counts", {})),
            level_counts={int(level): count for level, count in data.get("level_counts", {}).items()},
            zone_with_boundary=data.get("zone_with_boundary", 0),
            zone_with_wikidata=data.get("zone_with_wikidata", 0),
        )


@dataclass(frozen=True)
class CosmogonyMetadata:
    osm_filename: str
    stats: CosmogonyStats
    with_geom: bool = True
    country_code: Optional[str] = None


@dataclass(frozen=True)
class Cosmogony:
    """Typed, hierarchical, labeled zones of one extract."""

    zones: Tuple[Zone, ...]
    meta: CosmogonyMetadata

    def get_zone(self, osm_id: str) -> Optional[Zone]:
        return next((z for z in self.zones if z.osm_id == osm_id), None)

    def roots(self) -> List[Zone]:
        return [z for z in self.zones if z.parent is None]


def clean_untagged_zones(zones: Sequence[Zone]) -> List[Zone]:
    """
    Drop every zone without a type and remap the indexes of the others.

    A surviving zone whose parent is dropped is attached to its nearest
    surviving ancestor. Children lists are rebuilt from the new parents.
    Zone indexes from before the call are meaningless afterwards.
    """
    remap: Dict[ZoneIndex, ZoneIndex] = {}
    kept: List[Zone] = []
    for zone in zones:
        if zone.zone_type is not None:
            remap[zone.index] = len(kept)
            kept.append(zone)

    for zone in kept:
        parent = zone.parent
        while parent is not None and parent not in remap:
            parent = zones[parent].parent
        zone.parent = remap[parent] if parent is not None else None
        zone.index = remap[zone.index]
        zone.children = []

    for zone in kept:
        if zone.parent is not None:
            kept[zone.parent].children.append(zone.index)

    logger.info("%d zones kept, %d untyped zones removed", len(kept), len(zones) - len(kept))
    return kept
