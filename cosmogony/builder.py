"""
Cosmogony Builder

Runs the whole pipeline on one extract:

    read → inclusions → countries + types → hierarchy → labels → prune → stats
"""

import logging
import os
from typing import List, Optional, Tuple

from .boundary_reader import read_zones
from .config import RULES_DIR
from .cosmogony import Cosmogony, CosmogonyMetadata, CosmogonyStats, clean_untagged_zones
from .country_finder import CountryLocator, ensure_country_context
from .hierarchy import build_hierarchy
from .inclusion import find_inclusions
from .labels import compute_labels
from .zone import Zone
from .zone_typer import CountryRuleTable, ZoneTyper, type_zones

logger = logging.getLogger(__name__)


def create_ontology(
    zones: List[Zone],
    rule_table: CountryRuleTable,
    country_code: Optional[str] = None,
) -> Tuple[List[Zone], CosmogonyStats]:
    """
    Type, link and label the zones, then drop the untyped ones.

    Args:
        zones: Zones as read from the extract, `zones[i].index == i`
        rule_table: Per-country classification rules
        country_code: Country forced on every zone, if given

    Returns:
        (pruned zones with remapped indexes, stats of the classification)

    Raises:
        NoCountryContextError: No country code given and no country in the zones
    """
    inclusions = find_inclusions(zones)

    locator = CountryLocator(zones, explicit_country=country_code)
    ensure_country_context(locator)

    stats = CosmogonyStats()
    typing = type_zones(zones, ZoneTyper(rule_table), locator, inclusions)
    typing.apply(zones)
    stats.merge(typing.stats)

    build_hierarchy(zones, inclusions)

    compute_labels(zones)

    # indexes of the full list are invalid past this point
    return clean_untagged_zones(zones), stats


def build_cosmogony(
    source_path: str,
    with_geom: bool = True,
    rules_dir: str = RULES_DIR,
    country_code: Optional[str] = None,
) -> Cosmogony:
    """
    Build the cosmogony of a boundary extract.

    Args:
        source_path: Parquet extract of boundary relations
        with_geom: If False, boundaries are neither read nor kept
        rules_dir: Directory of per-country rule files
        country_code: Country forced on every zone, if given

    Raises:
        FatalInputError: Extract or rules missing/unreadable
        NoCountryContextError: No country can be resolved
    """
    rule_table = CountryRuleTable.load(rules_dir)
    zones = read_zones(source_path, with_geom=with_geom)

    zones, stats = create_ontology(zones, rule_table, country_code)
    stats.compute(zones)

    return Cosmogony(
        zones=tuple(zones),
        meta=CosmogonyMetadata(
            osm_filename=os.path.basename(source_path) or "invalid file name",
            stats=stats,
            with_geom=with_geom,
            country_code=country_code.upper() if country_code else None,
        ),
    )
