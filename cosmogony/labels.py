"""
Label Composer

Builds the display label of every zone: its name, suffixed with the name of
the closest ancestor that tells it apart from the other zones of the same
name.

Labels are computed against an immutable snapshot of the zones and written
back one zone at a time through an ExclusiveAccess, which gives shared read
access to every other zone and write access to a single label.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .zone import Zone, ZoneIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoneSnapshot:
    """Read-only view of the zone fields label composition needs."""

    index: ZoneIndex
    name: str
    parent: Optional[ZoneIndex]

    @classmethod
    def take(cls, zones: Sequence[Zone]) -> Tuple["ZoneSnapshot", ...]:
        return tuple(cls(z.index, z.name, z.parent) for z in zones)


class ExclusiveAccess:
    """
    Split access over one zone list: zone `index` is held for writing, every
    other zone can be read through the shared snapshot.

    Reading the held zone through the shared side raises ValueError.
    """

    def __init__(self, zones: Sequence[Zone], snapshot: Sequence[ZoneSnapshot], index: ZoneIndex):
        if len(zones) != len(snapshot):
            raise ValueError("snapshot does not match the zone list")
        self._zones = zones
        self._snapshot = snapshot
        self.index = index

    @property
    def own(self) -> ZoneSnapshot:
        """The held zone, as it was when the snapshot was taken."""
        return self._snapshot[self.index]

    def get(self, index: ZoneIndex) -> ZoneSnapshot:
        if index == self.index:
            raise ValueError(f"zone {index} is held exclusively, use `own`")
        return self._snapshot[index]

    def ancestors(self) -> List[ZoneSnapshot]:
        """Parent chain of the held zone, closest first."""
        chain = []
        parent = self.own.parent
        while parent is not None:
            ancestor = self.get(parent)
            chain.append(ancestor)
            parent = ancestor.parent
        return chain

    def write_label(self, label: str) -> None:
        self._zones[self.index].label = label


class LabelComposer:
    """Computes labels from a snapshot taken once for the whole zone list."""

    def __init__(self, zones: Sequence[Zone]):
        self.zones = zones
        self.snapshot = ZoneSnapshot.take(zones)
        self._homonyms: Dict[str, List[ZoneIndex]] = defaultdict(list)
        for zone in self.snapshot:
            self._homonyms[zone.name].append(zone.index)
        self._chain_names: Dict[ZoneIndex, FrozenSet[str]] = {}

    def access(self, index: ZoneIndex) -> ExclusiveAccess:
        return ExclusiveAccess(self.zones, self.snapshot, index)

    def _names_above(self, index: ZoneIndex) -> FrozenSet[str]:
        names = self._chain_names.get(index)
        if names is None:
            chain = set()
            parent = self.snapshot[index].parent
            while parent is not None:
                chain.add(self.snapshot[parent].name)
                parent = self.snapshot[parent].parent
            names = self._chain_names[index] = frozenset(chain)
        return names

    def compose(self, access: ExclusiveAccess) -> str:
        """Label of the held zone; only reads its ancestors."""
        own = access.own
        others = [i for i in self._homonyms[own.name] if i != own.index]
        if not others:
            return own.name

        for ancestor in access.ancestors():
            if not ancestor.name or ancestor.name == own.name:
                continue
            if all(ancestor.name not in self._names_above(other) for other in others):
                return f"{own.name}, {ancestor.name}"

        logger.debug("no ancestor tells %s apart from its %d homonyms", own.name, len(others))
        return own.name

    def compute_labels(self) -> None:
        labels = []
        for zone in self.zones:
            access = self.access(zone.index)
            labels.append((access, self.compose(access)))
        for access, label in labels:
            access.write_label(label)


def compute_labels(zones: Sequence[Zone]) -> None:
    """Set the label of every zone. The hierarchy must be built first."""
    LabelComposer(zones).compute_labels()
    logger.info("labels computed for %d zones", len(zones))
