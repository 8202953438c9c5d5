"""
Inclusion Resolver

Finds, for every zone, the zones whose boundary contains it. Candidates come
from an STRtree bounding-box query; only those go through the exact test.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from shapely.errors import GEOSException
from shapely.prepared import prep
from shapely.strtree import STRtree

from .config import INCLUSION_THRESHOLD
from .zone import Zone, ZoneIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InclusionEdge:
    """`zone` lies inside `ancestor`; `strength` is the covered share of its area."""

    zone: ZoneIndex
    ancestor: ZoneIndex
    strength: float


class InclusionResolver:
    """Spatial index over every zone that has a boundary."""

    def __init__(self, zones: Sequence[Zone], threshold: float = INCLUSION_THRESHOLD):
        self.zones = zones
        self.threshold = threshold
        self._candidates = [z for z in zones if z.boundary is not None]
        self._tree = STRtree([z.boundary for z in self._candidates]) if self._candidates else None
        self._prepared: Dict[ZoneIndex, object] = {}

    def edges_for(self, zone: Zone) -> List[InclusionEdge]:
        """
        Inclusion edges of one zone, tightest ancestor first.

        Ties on area are broken on the containment strength, then on the
        ancestor's stable id.
        """
        if self._tree is None:
            return []

        geometry = zone.boundary if zone.boundary is not None else zone.center
        if geometry is None:
            return []

        point = zone.representative_point()
        edges = []
        for position in self._tree.query(geometry):
            candidate = self._candidates[int(position)]
            if candidate.index == zone.index:
                continue
            strength = self._containment(zone, point, candidate)
            if strength is not None:
                edges.append(InclusionEdge(zone.index, candidate.index, strength))

        edges.sort(key=lambda e: (self.zones[e.ancestor].area, -e.strength, self.zones[e.ancestor].id_key))
        return edges

    def _containment(self, zone: Zone, point, candidate: Zone) -> Optional[float]:
        prepared = self._prepared.get(candidate.index)
        if prepared is None:
            prepared = self._prepared[candidate.index] = prep(candidate.boundary)

        if zone.boundary is None:
            return 1.0 if prepared.covers(point) else None

        if candidate.area < zone.area * self.threshold:
            return None
        if prepared.covers(zone.boundary):
            return 1.0
        # shared borders are often digitized slightly differently
        if not prepared.contains(point):
            return None
        try:
            covered = candidate.boundary.intersection(zone.boundary).area / zone.area
        except GEOSException as e:
            logger.debug("inclusion test %s in %s failed: %s", zone.osm_id, candidate.osm_id, e)
            return None
        return covered if covered >= self.threshold else None


def find_inclusion_edges(zones: Sequence[Zone]) -> List[List[InclusionEdge]]:
    """Inclusion edges for every zone, indexed like `zones`."""
    logger.info("computing inclusions of %d zones", len(zones))
    resolver = InclusionResolver(zones)
    edges = [resolver.edges_for(zone) for zone in zones]
    logger.info("inclusions done, %d edges", sum(len(e) for e in edges))
    return edges


def find_inclusions(zones: Sequence[Zone]) -> List[List[ZoneIndex]]:
    """Candidate ancestors of every zone, tightest first, country-level last."""
    return [[edge.ancestor for edge in edges] for edges in find_inclusion_edges(zones)]
