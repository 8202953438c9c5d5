"""
Configuration Constants

Shared configuration values used across the cosmogony builder.
"""

import os

# Database configuration
DB_PATH = os.getenv("COSMOGONY_DB_PATH", "./data/cosmogony.db")

# Per-country admin level rules (libpostal format), bundled with the package
RULES_DIR = os.getenv(
    "COSMOGONY_RULES_DIR",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "rules"),
)

# Share of a zone's area that must lie inside a candidate to count as included
INCLUSION_THRESHOLD = 0.99

# Values of the `boundary` tag read from the extract
ADMIN_BOUNDARY_VALUES = ("administrative",)

# Country detection
COUNTRY_ADMIN_LEVEL = 2
COUNTRY_CODE_TAGS = ("ISO3166-1:alpha2", "ISO3166-1", "country_code")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
