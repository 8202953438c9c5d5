"""
DuckDB Boundary Reader

Reads boundary relations from a Parquet extract. The extract holds
relations whose multipolygon rings have already been assembled:

    id        BIGINT   OSM relation id
    tags      VARCHAR  JSON object of the OSM tags
    geometry  VARCHAR  boundary as WKT, NULL when not assembled
    center    VARCHAR  optional, admin centre / label point as WKT
"""

import json
import logging
import os
from typing import Dict, List, Optional

import duckdb

from .config import ADMIN_BOUNDARY_VALUES
from .errors import FatalInputError
from .zone import RawRelation, Zone

logger = logging.getLogger(__name__)


def is_admin(tags: Dict[str, str]) -> bool:
    """True for relations tagged as one of the read boundary kinds."""
    return tags.get("boundary") in ADMIN_BOUNDARY_VALUES


class BoundaryReader:
    """Reads raw relations from a Parquet extract."""

    def __init__(self, parquet_path: str):
        """
        Initialize the reader.

        Args:
            parquet_path: Path to the Parquet extract
        """
        self.parquet_path = parquet_path
        self.conn = None

    def _get_connection(self):
        """Get or create DuckDB connection."""
        if self.conn is None:
            self.conn = duckdb.connect(database=':memory:')
        return self.conn

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    @property
    def _sql_path(self) -> str:
        """Path as a SQL string literal body."""
        return self.parquet_path.replace("'", "''")

    def _columns(self) -> List[str]:
        conn = self._get_connection()
        rows = conn.execute(f"DESCRIBE SELECT * FROM read_parquet('{self._sql_path}')").fetchall()
        return [row[0] for row in rows]

    def read_relations(self, with_geom: bool = True) -> List[RawRelation]:
        """
        Read every administrative relation, ordered by id.

        Args:
            with_geom: If False, boundaries are not read

        Returns:
            List of RawRelation

        Raises:
            FatalInputError: If the extract is missing or can't be read
        """
        if not os.path.exists(self.parquet_path):
            raise FatalInputError("no boundary extract", stage="read", resource=self.parquet_path)

        try:
            columns = self._columns()
            missing = {"id", "tags"} - set(columns)
            if missing:
                raise FatalInputError(
                    f"invalid boundary extract, missing columns {sorted(missing)}",
                    stage="read",
                    resource=self.parquet_path,
                )
            geometry = "geometry" if with_geom and "geometry" in columns else "NULL"
            center = "center" if "center" in columns else "NULL"
            query = f"""
                SELECT id, tags, {geometry} AS geometry, {center} AS center
                FROM read_parquet('{self._sql_path}')
                ORDER BY id
            """
            rows = self._get_connection().execute(query).fetchall()
        except duckdb.Error as e:
            raise FatalInputError(f"invalid boundary extract: {e}", stage="read", resource=self.parquet_path) from e

        relations = []
        for relation_id, raw_tags, geometry_wkt, center_wkt in rows:
            tags = _parse_tags(raw_tags, relation_id)
            if tags is None or not is_admin(tags):
                continue
            relations.append(RawRelation(int(relation_id), tags, geometry_wkt, center_wkt))

        logger.info("%d administrative relations read from %s", len(relations), self.parquet_path)
        return relations


def _parse_tags(raw, relation_id) -> Optional[Dict[str, str]]:
    if isinstance(raw, dict):
        return {str(k): str(v) for k, v in raw.items()}
    try:
        tags = json.loads(raw) if raw else {}
    except (json.JSONDecodeError, TypeError):
        logger.warning("relation/%s: unreadable tags, skipped", relation_id)
        return None
    if not isinstance(tags, dict):
        logger.warning("relation/%s: tags are not an object, skipped", relation_id)
        return None
    return {str(k): str(v) for k, v in tags.items()}


def read_zones(parquet_path: str, with_geom: bool = True) -> List[Zone]:
    """
    Read the zones of an extract.

    Relations without a name are dropped. In lightweight mode
    (with_geom=False) zones keep their centre but get no boundary.
    """
    reader = BoundaryReader(parquet_path)
    try:
        relations = reader.read_relations(with_geom=with_geom)
    finally:
        reader.close()

    zones: List[Zone] = []
    for relation in relations:
        zone = Zone.from_relation(relation, index=len(zones), with_geom=with_geom)
        if zone is not None:
            zones.append(zone)
    logger.info("%d zones built", len(zones))
    return zones
