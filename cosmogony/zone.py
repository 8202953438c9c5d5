"""
Zone Model

A zone is one administrative area read from the boundary extract. Its
country, type, parent/children and label are filled in by the later stages
of the pipeline, in that order.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from shapely import wkt
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

# Position of a zone in the active zone list. Pruning invalidates it.
ZoneIndex = int


class ZoneType(Enum):
    """Semantic zone type, using the libpostal boundary names."""

    SUBURB = "suburb"
    CITY_DISTRICT = "city_district"
    CITY = "city"
    STATE_DISTRICT = "state_district"
    STATE = "state"
    COUNTRY_REGION = "country_region"
    COUNTRY = "country"
    NON_ADMINISTRATIVE = "non_administrative"

    @classmethod
    def parse(cls, value: str) -> Optional["ZoneType"]:
        """Return the type named `value`, or None if it is not one of ours."""
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def rank(self) -> Optional[int]:
        """Nesting depth rank, 0 for the finest. NonAdministrative has none."""
        return _RANKS.get(self)

    def finer(self) -> Optional["ZoneType"]:
        """The type one rank finer, if any."""
        rank = self.rank
        if not rank:
            return None
        return _RANKED[rank - 1]


_RANKED = (
    ZoneType.SUBURB,
    ZoneType.CITY_DISTRICT,
    ZoneType.CITY,
    ZoneType.STATE_DISTRICT,
    ZoneType.STATE,
    ZoneType.COUNTRY_REGION,
    ZoneType.COUNTRY,
)
_RANKS = {zone_type: rank for rank, zone_type in enumerate(_RANKED)}


@dataclass(frozen=True)
class RawRelation:
    """
    One boundary relation as handed over by the boundary reader.

    Attributes:
        id: OSM relation id
        tags: OSM tags
        geometry: Assembled boundary as WKT (None if not assembled)
        center: Admin centre or label point as WKT (None if unknown)
    """

    id: int
    tags: Dict[str, str]
    geometry: Optional[str] = None
    center: Optional[str] = None


@dataclass
class Zone:
    """One administrative zone of the cosmogony."""

    index: ZoneIndex
    osm_id: str
    name: str
    admin_level: Optional[int] = None
    boundary: Optional[MultiPolygon] = None
    center: Optional[Point] = None
    tags: Dict[str, str] = field(default_factory=dict)
    wikidata: Optional[str] = None
    zip_codes: List[str] = field(default_factory=list)
    country_code: Optional[str] = None
    zone_type: Optional[ZoneType] = None
    parent: Optional[ZoneIndex] = None
    children: List[ZoneIndex] = field(default_factory=list)
    label: Optional[str] = None

    @classmethod
    def from_relation(cls, relation: RawRelation, index: ZoneIndex, with_geom: bool = True) -> Optional["Zone"]:
        """
        Build a zone from a raw relation.

        Args:
            relation: Relation read from the extract
            index: Position the zone will take in the zone list
            with_geom: If False, the boundary is not parsed (lightweight mode)

        Returns:
            Zone, or None if the relation has no name
        """
        tags = relation.tags
        name = tags.get("name")
        if not name:
            logger.debug("relation/%s: administrative region without name, skipped", relation.id)
            return None

        osm_id = f"relation:{relation.id}"
        boundary = _parse_boundary(relation.geometry, osm_id) if with_geom else None

        return cls(
            index=index,
            osm_id=osm_id,
            name=name,
            admin_level=parse_admin_level(tags.get("admin_level")),
            boundary=boundary,
            center=_parse_center(relation.center, osm_id),
            tags=dict(tags),
            wikidata=tags.get("wikidata"),
            zip_codes=parse_zip_codes(tags),
        )

    @property
    def bbox(self) -> Optional[Tuple[float, float, float, float]]:
        """(minx, miny, maxx, maxy) of the boundary, or None."""
        if self.boundary is None:
            return None
        return self.boundary.bounds

    @property
    def area(self) -> float:
        return self.boundary.area if self.boundary is not None else 0.0

    def representative_point(self) -> Optional[Point]:
        """
        A point guaranteed to lie in the zone.

        Uses an interior point of the boundary, falling back to the centre
        when the zone has no boundary.
        """
        if self.boundary is not None:
            return self.boundary.representative_point()
        return self.center

    @property
    def id_key(self) -> Tuple[str, int]:
        """Sort key on the stable id: ('relation', 7444) sorts before ('relation', 10000)."""
        kind, _, number = self.osm_id.partition(":")
        try:
            return kind, int(number)
        except ValueError:
            return self.osm_id, 0

    def is_typed(self) -> bool:
        return self.zone_type is not None


def parse_admin_level(value: Optional[str]) -> Optional[int]:
    """Parse the admin_level tag. Values like '4;6' or 'x' give None."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.debug("invalid admin_level %r ignored", value)
        return None


def parse_zip_codes(tags: Dict[str, str]) -> List[str]:
    """Postcodes from `addr:postcode` or `postal_code`, sorted and unique."""
    raw = tags.get("addr:postcode") or tags.get("postal_code") or ""
    return sorted({code.strip() for code in raw.split(";") if code.strip()})


def _parse_boundary(text: Optional[str], osm_id: str) -> Optional[MultiPolygon]:
    """Parse a WKT boundary into a MultiPolygon. Anything unusable gives None."""
    if not text:
        return None
    try:
        geometry = wkt.loads(text)
    except (GEOSException, ValueError) as e:
        logger.warning("%s: unreadable boundary, zone kept without it: %s", osm_id, e)
        return None

    boundary = _as_multipolygon(geometry)
    if boundary is None or boundary.is_empty:
        logger.warning("%s: boundary is not a polygon, zone kept without it", osm_id)
        return None
    if not boundary.is_valid:
        logger.warning("%s: invalid boundary, zone kept without it", osm_id)
        return None
    return boundary


def _as_multipolygon(geometry: BaseGeometry) -> Optional[MultiPolygon]:
    if isinstance(geometry, MultiPolygon):
        return geometry
    if isinstance(geometry, Polygon):
        return MultiPolygon([geometry])
    polygons = [g for g in getattr(geometry, "geoms", []) if isinstance(g, Polygon)]
    return MultiPolygon(polygons) if polygons else None


def _parse_center(text: Optional[str], osm_id: str) -> Optional[Point]:
    if not text:
        return None
    try:
        point = wkt.loads(text)
    except (GEOSException, ValueError) as e:
        logger.warning("%s: unreadable center ignored: %s", osm_id, e)
        return None
    return point if isinstance(point, Point) and not point.is_empty else None
