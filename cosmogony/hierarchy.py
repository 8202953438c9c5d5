"""
Hierarchy Builder

Gives every zone at most one parent, picked from its inclusion candidates.
"""

import logging
from typing import Iterator, Sequence

from .zone import Zone, ZoneIndex

logger = logging.getLogger(__name__)


def ancestors(zones: Sequence[Zone], index: ZoneIndex) -> Iterator[ZoneIndex]:
    """Indexes of the parent chain of a zone, closest first."""
    parent = zones[index].parent
    while parent is not None:
        yield parent
        parent = zones[parent].parent


def is_ancestor(zones: Sequence[Zone], ancestor: ZoneIndex, index: ZoneIndex) -> bool:
    """True if `ancestor` is in the parent chain of `index`."""
    return any(a == ancestor for a in ancestors(zones, index))


def build_hierarchy(zones: Sequence[Zone], inclusions: Sequence[Sequence[ZoneIndex]]) -> None:
    """
    Set the parent and children of every zone.

    The parent is the first candidate, tightest first, that is neither the
    zone itself nor one of its descendants. Candidates that would close a
    cycle (reciprocal inclusion in the source data) are skipped. One pass is
    enough since a candidate list never depends on other zones' parents.
    """
    roots = 0
    for zone in zones:
        zone.parent = None
        zone.children = []

    for zone in zones:
        parent = None
        for candidate in inclusions[zone.index]:
            if candidate == zone.index:
                continue
            if is_ancestor(zones, zone.index, candidate):
                logger.debug("%s is a descendant of %s, skipped as parent", zones[candidate].osm_id, zone.osm_id)
                continue
            parent = candidate
            break

        if parent is None:
            roots += 1
            continue
        zone.parent = parent
        zones[parent].children.append(zone.index)

    for zone in zones:
        zone.children.sort()
    logger.info("hierarchy built, %d roots", roots)
