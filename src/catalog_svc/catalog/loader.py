"""Snapshot loader - loads scanned warehouse metadata from YAML/JSON files."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any

import yaml

from ..db import transaction, utc_now
from ..errors import ValidationError

logger = logging.getLogger(__name__)

SNAPSHOT_USER = "SYSTEM"


class SnapshotLoader:
    """
    Loads a metadata snapshot into the catalog store.

    Scanned tables, columns and snapshot column-attribute links are
    replaced wholesale. Links made by users are kept while their column
    still exists. Glossary attributes are only inserted when missing, so
    approved glossary edits survive a reload.

    File format:
    ```yaml
    tables:
      - database: SALES
        schema: PUBLIC
        name: ORDERS
        type: BASE TABLE
        owner: JANE.DOE
        comment: One row per order
        row_count: 120000
        columns:
          - name: ORDER_ID
            data_type: NUMBER
            nullable: false
          - name: REGION
            data_type: VARCHAR
            attribute: region

    glossary:
      - name: region
        display_name: Sales Region
        description: Geographic sales region
        enumerations:
          - code: NA
            description: North America
    ```
    """

    def load_file(self, path: str | Path) -> dict[str, Any]:
        """Read a snapshot file into a dictionary."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Snapshot file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if data is not None and not isinstance(data, dict):
            raise ValidationError(f"Snapshot file must contain a mapping: {path}")
        return data or {}

    def apply_file(self, conn: sqlite3.Connection, path: str | Path) -> dict[str, int]:
        return self.apply(conn, self.load_file(path))

    def apply(self, conn: sqlite3.Connection, data: dict[str, Any]) -> dict[str, int]:
        """Apply a snapshot in a single transaction.

        Returns:
            Counts of tables, columns, links and newly inserted attributes.
        """
        tables = data.get("tables") or []
        glossary = data.get("glossary") or []
        stats = {"tables": 0, "columns": 0, "links": 0, "attributes": 0, "enumerations": 0}
        now = utc_now()

        with transaction(conn):
            conn.execute("DELETE FROM column_attributes WHERE linked_by = ?", (SNAPSHOT_USER,))
            conn.execute("DELETE FROM catalog_columns")
            conn.execute("DELETE FROM catalog_tables")

            for table_data in tables:
                full_name = self._insert_table(conn, table_data, now)
                stats["tables"] += 1
                for position, column_data in enumerate(table_data.get("columns") or [], start=1):
                    self._insert_column(conn, full_name, column_data, position)
                    stats["columns"] += 1
                    attribute = column_data.get("attribute")
                    if attribute:
                        conn.execute("""
                            INSERT OR IGNORE INTO column_attributes (
                                table_full_name, column_name, attribute_name, linked_by, linked_at
                            ) VALUES (?, ?, ?, ?, ?)
                        """, (full_name, column_data["name"], attribute, SNAPSHOT_USER, now))
                        stats["links"] += 1

            # User links whose column is gone
            conn.execute("""
                DELETE FROM column_attributes
                WHERE NOT EXISTS (
                    SELECT 1 FROM catalog_columns c
                    WHERE c.table_full_name = column_attributes.table_full_name
                      AND c.column_name = column_attributes.column_name
                )
            """)

            for attr_data in glossary:
                inserted, enum_count = self._seed_attribute(conn, attr_data, now)
                stats["attributes"] += inserted
                stats["enumerations"] += enum_count

        logger.info(
            f"Loaded snapshot: {stats['tables']} tables, {stats['columns']} columns, "
            f"{stats['attributes']} new attributes"
        )
        return stats

    def _insert_table(self, conn: sqlite3.Connection, data: dict[str, Any], now: str) -> str:
        try:
            database = data["database"]
            schema = data["schema"]
            name = data["name"]
        except KeyError as e:
            raise ValidationError(f"Snapshot table is missing {e.args[0]!r}: {data}") from e

        full_name = f"{database}.{schema}.{name}"
        conn.execute("""
            INSERT INTO catalog_tables (
                full_name, database_name, schema_name, table_name, table_type,
                row_count, bytes, comment, owner, created, last_altered, refreshed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            full_name, database, schema, name,
            data.get("type"),
            data.get("row_count"),
            data.get("bytes"),
            data.get("comment"),
            data.get("owner"),
            data.get("created"),
            data.get("last_altered"),
            now,
        ))
        logger.debug(f"Loaded table: {full_name}")
        return full_name

    def _insert_column(
        self, conn: sqlite3.Connection, full_name: str, data: dict[str, Any], position: int
    ) -> None:
        if "name" not in data:
            raise ValidationError(f"Snapshot column of {full_name} is missing 'name'")
        nullable = data.get("nullable", True)
        conn.execute("""
            INSERT INTO catalog_columns (
                table_full_name, column_name, data_type, is_nullable, comment, ordinal_position
            ) VALUES (?, ?, ?, ?, ?, ?)
        """, (
            full_name,
            data["name"],
            data.get("data_type"),
            "YES" if nullable else "NO",
            data.get("comment"),
            data.get("ordinal_position", position),
        ))

    def _seed_attribute(
        self, conn: sqlite3.Connection, data: dict[str, Any], now: str
    ) -> tuple[int, int]:
        name = data.get("name")
        if not name:
            raise ValidationError(f"Glossary attribute is missing 'name': {data}")

        cursor = conn.execute("""
            INSERT OR IGNORE INTO attribute_definitions (
                attribute_name, display_name, description, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?)
        """, (name, data.get("display_name") or name, data.get("description"), SNAPSHOT_USER, now))
        if cursor.rowcount == 0:
            return 0, 0

        enumerations = data.get("enumerations") or []
        for order, enum_data in enumerate(enumerations, start=1):
            if not isinstance(enum_data, dict) or enum_data.get("code") is None:
                raise ValidationError(
                    f"Enumeration of glossary attribute {name} is missing 'code': {enum_data}"
                )
            conn.execute("""
                INSERT INTO attribute_enumerations (
                    enumeration_id, attribute_name, value_code, value_description,
                    sort_order, is_active, created_by, created_at
                ) VALUES (?, ?, ?, ?, ?, 1, ?, ?)
            """, (
                str(uuid.uuid4()), name, str(enum_data["code"]), enum_data.get("description"),
                enum_data.get("sort_order", order), SNAPSHOT_USER, now,
            ))
        return 1, len(enumerations)
