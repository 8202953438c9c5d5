"""
Country Locator

Resolves the country of a zone, either from an explicit country code or by
looking up which country-level boundary contains the zone.
"""

import logging
from typing import Dict, List, Optional, Sequence

from shapely.prepared import prep
from shapely.strtree import STRtree

from .config import COUNTRY_ADMIN_LEVEL, COUNTRY_CODE_TAGS
from .errors import NoCountryContextError
from .zone import Zone

logger = logging.getLogger(__name__)


def country_code_of(zone: Zone) -> Optional[str]:
    """Country code carried by a zone's tags, upper-cased."""
    for tag in COUNTRY_CODE_TAGS:
        value = zone.tags.get(tag)
        if value and value.strip():
            return value.strip().upper()
    return None


class CountryLocator:
    """Spatial index of the country-level zones of an extract."""

    def __init__(self, zones: Sequence[Zone], explicit_country: Optional[str] = None):
        """
        Args:
            zones: Full zone list
            explicit_country: Country code that overrides any spatial lookup
        """
        self.explicit_country = explicit_country.upper() if explicit_country else None
        self._countries: List[Zone] = []
        self._codes: Dict[int, str] = {}

        for zone in zones:
            if zone.admin_level != COUNTRY_ADMIN_LEVEL or zone.boundary is None:
                continue
            code = country_code_of(zone)
            if code is None:
                logger.info("country %s has no country code, not indexed", zone.name)
                continue
            self._codes[zone.index] = code
            self._countries.append(zone)

        self._tree = STRtree([z.boundary for z in self._countries]) if self._countries else None
        self._prepared = [prep(z.boundary) for z in self._countries]
        logger.info("%d countries indexed", len(self._countries))

    def is_empty(self) -> bool:
        return not self._countries

    def resolve(self, zone: Zone) -> Optional[str]:
        """
        Country code of a zone.

        The explicit country always wins. Otherwise the country whose
        boundary contains the zone's representative point is used; when
        several do, the smallest one, then the lowest id.
        """
        if self.explicit_country:
            return self.explicit_country
        if self._tree is None:
            return None

        point = zone.representative_point()
        if point is None:
            return None

        matches = [
            self._countries[int(pos)]
            for pos in self._tree.query(point)
            if self._prepared[int(pos)].covers(point)
        ]
        if not matches:
            return None
        best = min(matches, key=lambda z: (z.area, z.id_key))
        return self._codes[best.index]


def ensure_country_context(locator: CountryLocator) -> None:
    """Fail before any classification when no country can ever be resolved."""
    if locator.explicit_country is None and locator.is_empty():
        raise NoCountryContextError()
