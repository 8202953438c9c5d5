"""
Shared pytest configuration and fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

from shapely.geometry import MultiPolygon, Point, box

# Add project root and tests directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from cosmogony.storage import CosmogonyStorage
from cosmogony.zone import Zone
from cosmogony.zone_typer import CountryRuleTable
from generate_test_data import generate_test_parquet


# ============ Zone Factory ============

@pytest.fixture
def make_zone():
    """
    Factory building a zone with a rectangular boundary.

    make_zone(index, relation_id, name, admin_level, bounds=(minx, miny, maxx, maxy), **tags)
    bounds=None gives a zone without boundary; `center` sets its centre.
    """
    def _make(index, relation_id, name, admin_level=None, bounds=None, center=None, **tags):
        tags = {'boundary': 'administrative', 'name': name, **tags}
        if admin_level is not None:
            tags['admin_level'] = str(admin_level)
        return Zone(
            index=index,
            osm_id=f"relation:{relation_id}",
            name=name,
            admin_level=admin_level,
            boundary=MultiPolygon([box(*bounds)]) if bounds is not None else None,
            center=Point(*center) if center is not None else None,
            tags=tags,
            wikidata=tags.get('wikidata'),
        )
    return _make


# ============ Sample Rule Data ============

@pytest.fixture
def fr_rules_data():
    """French admin levels, without tag fallback."""
    return {
        'admin_level': {'2': 'country', '4': 'state', '8': 'city', '10': 'suburb'},
    }


@pytest.fixture
def rule_table(fr_rules_data):
    """Rule table knowing FR and US."""
    return CountryRuleTable.from_mapping({
        'fr': fr_rules_data,
        'us': {'admin_level': {'2': 'country', '4': 'state', '6': 'state_district', '8': 'city'}},
    })


# ============ Sample Zone Data ============

@pytest.fixture
def france_zones(make_zone):
    """
    A country with two regions, one city in each, both named Springfield,
    and a level 11 zone that no rule types.
    """
    return [
        make_zone(0, 1, "France", 2, (0, 0, 100, 100), **{'ISO3166-1:alpha2': 'FR', 'wikidata': 'Q142'}),
        make_zone(1, 2, "Île-de-France", 4, (0, 0, 50, 50)),
        make_zone(2, 4, "Springfield", 8, (10, 10, 20, 20)),
        make_zone(3, 5, "Bretagne", 4, (50, 0, 100, 50)),
        make_zone(4, 6, "Springfield", 8, (60, 10, 70, 20)),
        make_zone(5, 9, "Quartier Inconnu", 11, (11, 11, 12, 12)),
    ]


# ============ Infrastructure ============

@pytest.fixture
def test_parquet(tmp_path):
    """Sample boundary extract in Parquet."""
    return generate_test_parquet(str(tmp_path / "test_boundaries.parquet"))


@pytest.fixture
def test_storage(tmp_path):
    """Create a temporary SQLite cosmogony database for testing."""
    storage = CosmogonyStorage(str(tmp_path / "cosmogony.db"))
    yield storage
    storage.close()
