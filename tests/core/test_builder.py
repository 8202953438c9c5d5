"""
Tests for the ontology pipeline over in-memory zones.
"""
import pytest

from cosmogony.builder import create_ontology
from cosmogony.errors import NoCountryContextError
from cosmogony.zone import ZoneType


def by_name(zones):
    return {z.label: z for z in zones}


@pytest.mark.unit
class TestCreateOntology:
    """Test typing, hierarchy, labels and pruning together."""

    def test_untyped_zone_is_dropped(self, france_zones, rule_table):
        zones, stats = create_ontology(france_zones, rule_table)

        assert len(zones) == 5
        assert "Quartier Inconnu" not in [z.name for z in zones]
        assert stats.unhandled_admin_level == {"FR": {11: 1}}
        assert stats.dropped_zones == 1

    def test_homonyms_are_labeled_by_region(self, france_zones, rule_table):
        zones, _ = create_ontology(france_zones, rule_table)
        labels = by_name(zones)

        assert labels["Springfield, Île-de-France"].zone_type == ZoneType.CITY
        assert labels["Springfield, Bretagne"].zone_type == ZoneType.CITY
        assert labels["France"].zone_type == ZoneType.COUNTRY

    def test_every_survivor_is_typed(self, france_zones, rule_table):
        zones, _ = create_ontology(france_zones, rule_table)

        assert all(z.zone_type is not None for z in zones)
        assert all(z.country_code == "FR" for z in zones)

    def test_links_are_consistent(self, france_zones, rule_table):
        zones, _ = create_ontology(france_zones, rule_table)

        for i, zone in enumerate(zones):
            assert zone.index == i
            if zone.parent is not None:
                assert i in zones[zone.parent].children
                assert zones[zone.parent].boundary.covers(zone.boundary)
            for child in zone.children:
                assert zones[child].parent == i

    def test_hierarchy_is_acyclic(self, france_zones, rule_table):
        zones, _ = create_ontology(france_zones, rule_table)

        for zone in zones:
            seen = {zone.index}
            parent = zone.parent
            while parent is not None:
                assert parent not in seen
                seen.add(parent)
                parent = zones[parent].parent

    def test_zone_without_boundary_is_kept(self, france_zones, rule_table, make_zone):
        zones = france_zones + [make_zone(6, 10, "Centre", 10, center=(15, 15))]
        zones, _ = create_ontology(zones, rule_table)
        centre = by_name(zones)["Centre"]

        assert centre.zone_type == ZoneType.SUBURB
        assert centre.boundary is None
        assert zones[centre.parent].label == "Springfield, Île-de-France"

    def test_explicit_country_without_country_boundary(self, rule_table, make_zone):
        zones = [
            make_zone(0, 2, "Île-de-France", 4, (0, 0, 50, 50)),
            make_zone(1, 4, "Springfield", 8, (10, 10, 20, 20)),
        ]
        zones, stats = create_ontology(zones, rule_table, country_code="fr")

        assert [z.zone_type for z in zones] == [ZoneType.STATE, ZoneType.CITY]
        assert zones[1].parent == 0
        assert stats.dropped_zones == 0

    def test_single_country_with_explicit_code(self, rule_table, make_zone):
        """A lone level 2 zone without ISO tag becomes a country root."""
        zones, stats = create_ontology([make_zone(0, 1, "France", 2, (0, 0, 10, 10))], rule_table, country_code="FR")

        assert len(zones) == 1
        assert zones[0].zone_type == ZoneType.COUNTRY
        assert zones[0].parent is None
        assert zones[0].label == "France"
        assert stats.dropped_zones == 0

    def test_zone_without_level_is_pruned(self, france_zones, rule_table, make_zone):
        zones = france_zones[:1] + [make_zone(1, 20, "Sans niveau", bounds=(1, 1, 2, 2))]
        zones, stats = create_ontology(zones, rule_table)

        assert [z.name for z in zones] == ["France"]
        assert stats.unhandled_admin_level == {"FR": {0: 1}}

    def test_no_country_context_raises(self, rule_table, make_zone):
        zones = [make_zone(0, 4, "Springfield", 8, (10, 10, 20, 20))]

        with pytest.raises(NoCountryContextError):
            create_ontology(zones, rule_table)

    def test_result_does_not_depend_on_input_order(self, france_zones, rule_table, make_zone):
        def run(zones):
            for i, zone in enumerate(zones):
                zone.index = i
            result, stats = create_ontology(zones, rule_table)
            parents = {
                z.osm_id: result[z.parent].osm_id if z.parent is not None else None
                for z in result
            }
            return {z.osm_id: (z.label, z.zone_type) for z in result}, parents, stats.to_dict()

        forward = run(list(france_zones))
        reverse_zones = [
            make_zone(0, int(z.osm_id.split(":")[1]), z.name, z.admin_level, z.boundary.bounds,
                      **{k: v for k, v in z.tags.items() if k not in ('name', 'admin_level', 'boundary')})
            for z in reversed(france_zones)
        ]
        backward = run(reverse_zones)

        assert forward == backward
