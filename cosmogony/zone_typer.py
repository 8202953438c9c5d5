"""
Zone Typer

Classifies zones into ZoneTypes with per-country admin level rules. The
rules follow the libpostal boundary files: one YAML file per country,
mapping admin levels to zone types, with optional overrides by relation id
or by containing relation.

The rule table is loaded once and never modified afterwards.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from .country_finder import CountryLocator
from .cosmogony import CosmogonyStats
from .errors import InvalidCountry, RuleTableError, UnknownLevel
from .zone import Zone, ZoneIndex, ZoneType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountryRules:
    """Classification rules of one country."""

    admin_levels: Mapping[int, ZoneType] = field(default_factory=lambda: MappingProxyType({}))
    id_overrides: Mapping[str, ZoneType] = field(default_factory=lambda: MappingProxyType({}))
    contained_by: Mapping[str, Mapping[int, ZoneType]] = field(default_factory=lambda: MappingProxyType({}))
    tag_fallbacks: Tuple[Tuple[str, str, ZoneType], ...] = ()

    @classmethod
    def from_dict(cls, data: Dict, source: str = "<dict>") -> "CountryRules":
        """
        Build rules from a parsed libpostal boundary file.

        Unknown zone type names are skipped with a warning.

        Raises:
            RuleTableError: If a section does not have the expected structure
        """
        if not isinstance(data, dict):
            raise RuleTableError("rule file must contain a mapping", stage="rules", resource=source)

        overrides = _section(data, "overrides", source)
        id_overrides = {
            f"relation:{osm_id}": zone_type
            for osm_id, zone_type in _typed_items(
                _section(_section(overrides, "id", source), "relation", source), source
            )
        }
        contained_by = {
            f"relation:{osm_id}": MappingProxyType(
                _levels(_section(rules, "admin_level", source) if rules is not None else None, source)
            )
            for osm_id, rules in _section(_section(overrides, "contained_by", source), "relation", source).items()
        }

        raw_fallbacks = data.get("tag_fallbacks") or []
        if not isinstance(raw_fallbacks, list):
            raise RuleTableError("'tag_fallbacks' must be a list", stage="rules", resource=source)

        fallbacks = []
        for rule in raw_fallbacks:
            if not isinstance(rule, dict):
                raise RuleTableError(f"tag fallback {rule!r} must be a mapping", stage="rules", resource=source)
            zone_type = ZoneType.parse(str(rule.get("zone_type", "")))
            if zone_type is None or "key" not in rule:
                logger.warning("%s: invalid tag fallback %r skipped", source, rule)
                continue
            fallbacks.append((str(rule["key"]), str(rule.get("value", "")), zone_type))

        return cls(
            admin_levels=MappingProxyType(_levels(data.get("admin_level"), source)),
            id_overrides=MappingProxyType(id_overrides),
            contained_by=MappingProxyType(contained_by),
            tag_fallbacks=tuple(fallbacks),
        )

    def tag_fallback(self, tags: Mapping[str, str]) -> Optional[ZoneType]:
        """Type of the first fallback rule matching the tags. An empty value matches any value."""
        for key, value, zone_type in self.tag_fallbacks:
            if key in tags and (not value or tags[key] == value):
                return zone_type
        return None


def _section(data: Dict, name: str, source: str) -> Dict:
    """Sub-mapping `name` of `data`; a missing or empty section gives {}."""
    if not isinstance(data, dict):
        raise RuleTableError(f"section containing '{name}' must be a mapping", stage="rules", resource=source)
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise RuleTableError(f"'{name}' must be a mapping", stage="rules", resource=source)
    return value


def _typed_items(mapping: Optional[Dict], source: str):
    if mapping is not None and not isinstance(mapping, dict):
        raise RuleTableError(f"expected a mapping of zone types, got {mapping!r}", stage="rules", resource=source)
    for key, value in (mapping or {}).items():
        zone_type = ZoneType.parse(str(value))
        if zone_type is None:
            logger.warning("%s: unknown zone type %r for %s skipped", source, value, key)
            continue
        yield str(key), zone_type


def _levels(mapping: Optional[Dict], source: str) -> Dict[int, ZoneType]:
    levels = {}
    for key, zone_type in _typed_items(mapping, source):
        try:
            levels[int(key)] = zone_type
        except ValueError:
            logger.warning("%s: invalid admin level %r skipped", source, key)
    return levels


class CountryRuleTable:
    """Immutable mapping of country code to CountryRules."""

    def __init__(self, rules: Mapping[str, CountryRules]):
        self._rules = MappingProxyType({code.upper(): r for code, r in rules.items()})

    @classmethod
    def load(cls, directory: str) -> "CountryRuleTable":
        """
        Load every `<country_code>.yaml` file of a directory.

        Raises:
            RuleTableError: If the directory or one of its files can't be read
        """
        if not os.path.isdir(directory):
            raise RuleTableError("rule directory not found", stage="rules", resource=directory)

        rules = {}
        for filename in sorted(os.listdir(directory)):
            country, ext = os.path.splitext(filename)
            if ext not in (".yaml", ".yml"):
                continue
            path = os.path.join(directory, filename)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise RuleTableError(f"unreadable rule file: {e}", stage="rules", resource=path) from e
            rules[country] = CountryRules.from_dict(data, source=path)

        logger.info("rules loaded for %d countries from %s", len(rules), directory)
        return cls(rules)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Dict]) -> "CountryRuleTable":
        """Build a table from already-parsed rule dicts keyed by country code."""
        return cls({code: CountryRules.from_dict(rules, source=code) for code, rules in data.items()})

    def get(self, country: str) -> Optional[CountryRules]:
        return self._rules.get(country.upper())

    def countries(self) -> List[str]:
        return sorted(self._rules)

    def __contains__(self, country: str) -> bool:
        return country.upper() in self._rules

    def __len__(self) -> int:
        return len(self._rules)


class ZoneTyper:
    """Classifies single zones against a CountryRuleTable."""

    def __init__(self, rule_table: CountryRuleTable):
        self.rule_table = rule_table

    def classify(self, zone: Zone, country: str, ancestors: Sequence[Zone]) -> ZoneType:
        """
        Zone type of `zone` in `country`.

        Args:
            zone: Zone to classify
            country: Country code of the zone
            ancestors: Candidate ancestors, tightest first

        Raises:
            InvalidCountry: No rules for the country
            UnknownLevel: No rule could type the zone
        """
        rules = self.rule_table.get(country)
        if rules is None:
            raise InvalidCountry(country)

        override = rules.id_overrides.get(zone.osm_id)
        if override is not None:
            return override

        level = zone.admin_level
        if level is not None:
            for ancestor in ancestors:
                contained = rules.contained_by.get(ancestor.osm_id)
                if contained and level in contained:
                    return contained[level]

            direct = rules.admin_levels.get(level)
            if direct is not None:
                return direct

            inferred = _infer_from_ancestors(level, rules, ancestors)
            if inferred is not None:
                return inferred
        else:
            fallback = rules.tag_fallback(zone.tags)
            if fallback is not None:
                return fallback

        raise UnknownLevel(level, country)


def _infer_from_ancestors(level: int, rules: CountryRules, ancestors: Sequence[Zone]) -> Optional[ZoneType]:
    """
    One rank finer than the nearest typed ancestor, when that is unambiguous.

    The nearest typed, ranked ancestor with a lower level is used. No ruled
    level may sit between it and the zone, and the next ruled level below
    the zone must map to a finer type than the one inferred.
    """
    nearest = next(
        (
            a for a in ancestors
            if a.zone_type is not None and a.zone_type.rank is not None
            and a.admin_level is not None and a.admin_level < level
        ),
        None,
    )
    if nearest is None:
        return None

    inferred = nearest.zone_type.finer()
    if inferred is None:
        return None

    ranked = sorted(lvl for lvl, t in rules.admin_levels.items() if t.rank is not None)
    if any(nearest.admin_level < lvl < level for lvl in ranked):
        return None
    deeper = [lvl for lvl in ranked if lvl > level]
    if deeper and rules.admin_levels[deeper[0]].rank >= inferred.rank:
        return None
    return inferred


@dataclass
class TypingResult:
    """Countries and types computed for every zone, plus the stats delta."""

    countries: List[Optional[str]]
    types: List[Optional[ZoneType]]
    stats: CosmogonyStats

    def apply(self, zones: Sequence[Zone]) -> None:
        for zone, country, zone_type in zip(zones, self.countries, self.types):
            zone.country_code = country
            zone.zone_type = zone_type


def type_zones(
    zones: Sequence[Zone],
    typer: ZoneTyper,
    locator: CountryLocator,
    inclusions: Sequence[Sequence[ZoneIndex]],
) -> TypingResult:
    """
    Classify every zone without modifying the zones.

    The first pass uses direct rules only. Zones left on an unknown level are
    retried once with their ancestors carrying first-pass types, so the
    outcome never depends on zone order. Failures are counted in the
    returned stats.
    """
    stats = CosmogonyStats()
    countries: List[Optional[str]] = [None] * len(zones)
    types: List[Optional[ZoneType]] = [None] * len(zones)
    untyped = [replace(z, zone_type=None) for z in zones]
    retry: List[ZoneIndex] = []

    for i, zone in enumerate(zones):
        country = locator.resolve(zone)
        if country is None:
            logger.info("impossible to find a country for %s, skipping", zone.name)
            stats.zone_without_country += 1
            continue
        countries[i] = country
        logger.debug("country of %s is %s", zone.name, country)

        try:
            types[i] = typer.classify(zone, country, [untyped[a] for a in inclusions[i]])
        except InvalidCountry as e:
            logger.info("impossible to find rules for country %s", e.country)
            stats.record_invalid_country(e.country)
        except UnknownLevel:
            retry.append(i)

    first_pass = [replace(z, zone_type=t) for z, t in zip(untyped, types)]
    for i in retry:
        try:
            types[i] = typer.classify(zones[i], countries[i], [first_pass[a] for a in inclusions[i]])
        except UnknownLevel as e:
            logger.info("impossible to find a rule for level %s for country %s", e.level, e.country)
            stats.record_unknown_level(e.country, e.level)

    return TypingResult(countries=countries, types=types, stats=stats)
