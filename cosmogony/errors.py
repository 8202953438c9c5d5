"""
Error Types

Fatal errors abort a run; zone typer errors are per-zone and only counted.
"""

from typing import Optional


class CosmogonyError(Exception):
    """Base class for all cosmogony errors."""


class FatalInputError(CosmogonyError):
    """Source extract or rule table is missing or unreadable."""

    def __init__(self, message: str, stage: Optional[str] = None, resource: Optional[str] = None):
        self.stage = stage
        self.resource = resource
        context = [part for part in (stage, resource) if part]
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class RuleTableError(FatalInputError):
    """A country rule file could not be loaded."""


class NoCountryContextError(CosmogonyError):
    """No explicit country and no country-level boundary in the extract."""

    def __init__(self):
        super().__init__(
            "no country_code has been provided and no country has been found, "
            "we won't be able to make a cosmogony"
        )


class ZoneTyperError(CosmogonyError):
    """A single zone could not be classified."""


class InvalidCountry(ZoneTyperError):
    """No rules are known for the zone's country."""

    def __init__(self, country: str):
        self.country = country
        super().__init__(f"no rules for country {country}")


class UnknownLevel(ZoneTyperError):
    """The country rules have nothing for the zone's admin level."""

    def __init__(self, level: Optional[int], country: str):
        self.level = level
        self.country = country
        super().__init__(f"no rule for admin level {level} in country {country}")
