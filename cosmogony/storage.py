"""
SQLite storage for cosmogony results.
Zones are stored with their hierarchy, label and GeoJSON geometry.
"""

import json
import os
import sqlite3
from typing import Any, Dict, List, Optional

import pandas as pd
from shapely.geometry import mapping

from .config import DB_PATH
from .cosmogony import Cosmogony, CosmogonyStats


class CosmogonyStorage:
    """
    SQLite storage for built cosmogonies.
    Several runs can live in the same database, each with its own zones.
    """

    def __init__(self, db_path: str = None):
        """Initialize database connection and create tables if needed."""
        self.db_path = db_path if db_path is not None else DB_PATH
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = self._dict_factory
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_db()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - commit or rollback."""
        if exc_type is None:
            self.conn.commit()
        else:
            self.conn.rollback()
        self.close()
        return False

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    # ============ Cosmogony Operations ============

    def save_cosmogony(self, cosmogony: Cosmogony) -> int:
        """
        Store a cosmogony and all its zones. Returns the cosmogony ID.
        """
        meta = cosmogony.meta
        cursor = self.conn.execute(
            """
            INSERT INTO cosmogonies (osm_filename, with_geom, country_code, stats_json)
            VALUES (?, ?, ?, ?)
            """,
            (meta.osm_filename, int(meta.with_geom), meta.country_code, json.dumps(meta.stats.to_dict())),
        )
        cosmogony_id = cursor.lastrowid

        self.conn.executemany(
            """
            INSERT INTO zones
            (cosmogony_id, idx, osm_id, name, label, zone_type, admin_level, country_code,
             parent_idx, wikidata, zip_codes, center_json, geometry_json, tags_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    cosmogony_id,
                    zone.index,
                    zone.osm_id,
                    zone.name,
                    zone.label,
                    zone.zone_type.value,
                    zone.admin_level,
                    zone.country_code,
                    zone.parent,
                    zone.wikidata,
                    ";".join(zone.zip_codes),
                    json.dumps(mapping(zone.center)) if zone.center is not None else None,
                    json.dumps(mapping(zone.boundary)) if zone.boundary is not None else None,
                    json.dumps(zone.tags, ensure_ascii=False),
                )
                for zone in cosmogony.zones
            ],
        )
        self.conn.commit()
        return cosmogony_id

    def get_cosmogonies(self) -> List[Dict]:
        """All stored runs, newest first."""
        return self._execute(
            "SELECT id, osm_filename, with_geom, country_code, created_at FROM cosmogonies ORDER BY id DESC",
            fetch_all=True,
        )

    def get_metadata(self, cosmogony_id: int) -> Optional[Dict]:
        """Run metadata, with stats parsed back into CosmogonyStats."""
        result = self._execute(
            "SELECT * FROM cosmogonies WHERE id = ?",
            (cosmogony_id,),
            fetch_one=True,
        )
        if result:
            result["stats"] = CosmogonyStats.from_dict(json.loads(result.pop("stats_json")))
            result["with_geom"] = bool(result["with_geom"])
        return result

    # ============ Zone Operations ============

    def get_zone(self, cosmogony_id: int, idx: int) -> Optional[Dict]:
        """Get zone by index within a cosmogony."""
        result = self._execute(
            "SELECT * FROM zones WHERE cosmogony_id = ? AND idx = ?",
            (cosmogony_id, idx),
            fetch_one=True,
        )
        return self._parse_zone(result) if result else None

    def get_zone_by_osm_id(self, cosmogony_id: int, osm_id: str) -> Optional[Dict]:
        """Get zone by OSM id, e.g. 'relation:7444'."""
        result = self._execute(
            "SELECT * FROM zones WHERE cosmogony_id = ? AND osm_id = ?",
            (cosmogony_id, osm_id),
            fetch_one=True,
        )
        return self._parse_zone(result) if result else None

    def get_children(self, cosmogony_id: int, idx: Optional[int]) -> List[Dict]:
        """Direct children of a zone, or the roots when idx is None."""
        if idx is None:
            results = self._execute(
                "SELECT * FROM zones WHERE cosmogony_id = ? AND parent_idx IS NULL ORDER BY label",
                (cosmogony_id,),
                fetch_all=True,
            )
        else:
            results = self._execute(
                "SELECT * FROM zones WHERE cosmogony_id = ? AND parent_idx = ? ORDER BY label",
                (cosmogony_id, idx),
                fetch_all=True,
            )
        return [self._parse_zone(r) for r in results]

    def get_all_zones(self, cosmogony_id: int) -> List[Dict]:
        """Get all zones of a cosmogony, in index order."""
        results = self._execute(
            "SELECT * FROM zones WHERE cosmogony_id = ? ORDER BY idx",
            (cosmogony_id,),
            fetch_all=True,
        )
        return [self._parse_zone(r) for r in results]

    def get_zones_frame(self, cosmogony_id: int) -> pd.DataFrame:
        """Zones without geometry as a DataFrame, for tables and charts."""
        columns = ["idx", "osm_id", "name", "label", "zone_type", "admin_level", "country_code", "parent_idx", "wikidata"]
        rows = self._execute(
            f"SELECT {', '.join(columns)} FROM zones WHERE cosmogony_id = ? ORDER BY idx",
            (cosmogony_id,),
            fetch_all=True,
        )
        return pd.DataFrame(rows, columns=columns)

    # ============ Helper Methods ============

    @staticmethod
    def _parse_zone(row: Dict) -> Dict:
        """Decode the JSON columns of a zone row."""
        for column, key in (("geometry_json", "geometry"), ("center_json", "center"), ("tags_json", "tags")):
            raw = row.pop(column, None)
            row[key] = json.loads(raw) if raw else None
        row["zip_codes"] = row["zip_codes"].split(";") if row.get("zip_codes") else []
        return row

    def _init_db(self):
        """Create all tables if they don't exist."""
        schema_path = os.path.join(
            os.path.dirname(__file__), "sql", "schema.sql"
        )
        with open(schema_path, "r") as f:
            schema_sql = f.read()
        self.conn.executescript(schema_sql)
        self.conn.commit()

    def _execute(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False,
        fetch_all: bool = False,
    ) -> Any:
        """Execute SQL with automatic row factory (returns dicts)."""
        cursor = self.conn.execute(query, params)
        if fetch_one:
            return cursor.fetchone()
        elif fetch_all:
            return cursor.fetchall()
        return cursor

    @staticmethod
    def _dict_factory(cursor, row) -> dict:
        """Convert SQLite row to dict."""
        return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}
