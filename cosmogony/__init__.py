"""
Cosmogony Builder - Core Modules

Turns a flat extract of OpenStreetMap administrative boundaries into typed,
hierarchical, labeled zones.
"""

__version__ = "0.1.0"

from .builder import build_cosmogony, create_ontology
from .cosmogony import Cosmogony, CosmogonyMetadata, CosmogonyStats
from .storage import CosmogonyStorage
from .zone import Zone, ZoneIndex, ZoneType
from .zone_typer import CountryRuleTable, ZoneTyper

__all__ = [
    'build_cosmogony',
    'create_ontology',
    'Cosmogony',
    'CosmogonyMetadata',
    'CosmogonyStats',
    'CosmogonyStorage',
    'CountryRuleTable',
    'Zone',
    'ZoneIndex',
    'ZoneType',
    'ZoneTyper',
]
