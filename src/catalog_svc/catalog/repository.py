"""Repository layer for catalog content.

Reads serve the browse endpoints. Writes to moderated content are only
called from the change-request workflow while it holds a transaction;
ratings and comments are written directly by their authors.
"""

from __future__ import annotations

import sqlite3
import uuid
from typing import Any

from ..db import utc_now
from ..errors import ValidationError
from .types import (
    Attribute,
    CatalogColumn,
    CatalogTable,
    ColumnAttributeLink,
    Comment,
    Description,
    Enumeration,
    Rating,
    RatingSummary,
    TagReference,
)


def _row_to_table(row: sqlite3.Row) -> CatalogTable:
    return CatalogTable(
        full_name=row["full_name"],
        database_name=row["database_name"],
        schema_name=row["schema_name"],
        table_name=row["table_name"],
        table_type=row["table_type"],
        row_count=row["row_count"],
        bytes=row["bytes"],
        comment=row["comment"],
        owner=row["owner"],
        created=row["created"],
        last_altered=row["last_altered"],
        refreshed_at=row["refreshed_at"],
        view_count=row["view_count"],
    )


def _row_to_tag(row: sqlite3.Row) -> TagReference:
    return TagReference(
        tag_id=row["tag_id"],
        table_full_name=row["table_full_name"],
        tag_name=row["tag_name"],
        tag_value=row["tag_value"],
        created_by=row["created_by"],
        created_at=row["created_at"],
    )


def _row_to_enumeration(row: sqlite3.Row) -> Enumeration:
    return Enumeration(
        enumeration_id=row["enumeration_id"],
        attribute_name=row["attribute_name"],
        value_code=row["value_code"],
        value_description=row["value_description"],
        sort_order=row["sort_order"],
        is_active=bool(row["is_active"]),
    )


class CatalogContentRepository:
    """Repository for catalog content database operations."""

    def __init__(self, conn: sqlite3.Connection):
        """Initialize the repository.

        Args:
            conn: SQLite database connection.
        """
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # =========================================================================
    # Scanned metadata (read-only here)
    # =========================================================================

    def list_tables(
        self,
        database: str | None = None,
        schema: str | None = None,
        search: str | None = None,
        limit: int = 500,
        offset: int = 0,
        by_popularity: bool = False,
    ) -> list[CatalogTable]:
        """List tables with optional filters.

        Args:
            database: Filter by database name.
            schema: Filter by schema name.
            search: Case-insensitive match on table name, scanned comment
                or approved user description.
            limit: Maximum number of results.
            offset: Offset for pagination.
            by_popularity: Most viewed first instead of by name.
        """
        conditions = []
        params: list[Any] = []

        if database:
            conditions.append("t.database_name = ?")
            params.append(database)
        if schema:
            conditions.append("t.schema_name = ?")
            params.append(schema)
        if search:
            conditions.append(
                "(t.table_name LIKE ? OR t.comment LIKE ? OR d.user_description LIKE ?)"
            )
            pattern = f"%{search}%"
            params.extend([pattern, pattern, pattern])

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        order_by = "view_count DESC, t.full_name" if by_popularity else "t.full_name"
        query = f"""
            SELECT t.*, COALESCE(p.view_count, 0) AS view_count
            FROM catalog_tables t
            LEFT JOIN table_descriptions d ON d.table_full_name = t.full_name
            LEFT JOIN table_popularity p ON p.table_full_name = t.full_name
            {where_clause}
            ORDER BY {order_by}
            LIMIT ? OFFSET ?
        """
        params.extend([limit, offset])
        return [_row_to_table(row) for row in self.conn.execute(query, params).fetchall()]

    def get_table(self, full_name: str) -> CatalogTable | None:
        row = self.conn.execute(
            """
            SELECT t.*, COALESCE(p.view_count, 0) AS view_count
            FROM catalog_tables t
            LEFT JOIN table_popularity p ON p.table_full_name = t.full_name
            WHERE t.full_name = ?
            """,
            (full_name,),
        ).fetchone()
        return _row_to_table(row) if row else None

    def table_exists(self, full_name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM catalog_tables WHERE full_name = ?", (full_name,)
        ).fetchone()
        return row is not None

    def column_exists(self, table_full_name: str, column_name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM catalog_columns WHERE table_full_name = ? AND column_name = ?",
            (table_full_name, column_name),
        ).fetchone()
        return row is not None

    def list_databases(self) -> list[dict[str, Any]]:
        cursor = self.conn.execute("""
            SELECT database_name, COUNT(*) AS table_count
            FROM catalog_tables
            GROUP BY database_name
            ORDER BY database_name
        """)
        return [
            {"database_name": row["database_name"], "table_count": row["table_count"]}
            for row in cursor.fetchall()
        ]

    def list_schemas(self, database: str | None = None) -> list[dict[str, Any]]:
        params: list[Any] = []
        where_clause = ""
        if database:
            where_clause = "WHERE database_name = ?"
            params.append(database)
        cursor = self.conn.execute(f"""
            SELECT database_name, schema_name, COUNT(*) AS table_count
            FROM catalog_tables
            {where_clause}
            GROUP BY database_name, schema_name
            ORDER BY database_name, schema_name
        """, params)
        return [
            {
                "database_name": row["database_name"],
                "schema_name": row["schema_name"],
                "table_count": row["table_count"],
            }
            for row in cursor.fetchall()
        ]

    def list_columns(self, table_full_name: str) -> list[CatalogColumn]:
        """Columns of a table, with approved user descriptions merged in."""
        cursor = self.conn.execute("""
            SELECT c.*, d.description AS user_description
            FROM catalog_columns c
            LEFT JOIN column_descriptions d
              ON d.table_full_name = c.table_full_name AND d.column_name = c.column_name
            WHERE c.table_full_name = ?
            ORDER BY c.ordinal_position, c.column_name
        """, (table_full_name,))
        return [
            CatalogColumn(
                table_full_name=row["table_full_name"],
                column_name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=row["is_nullable"],
                comment=row["comment"],
                ordinal_position=row["ordinal_position"],
                user_description=row["user_description"],
            )
            for row in cursor.fetchall()
        ]

    # =========================================================================
    # Descriptions
    # =========================================================================

    def get_table_description(self, full_name: str) -> Description | None:
        row = self.conn.execute(
            "SELECT * FROM table_descriptions WHERE table_full_name = ?", (full_name,)
        ).fetchone()
        if not row:
            return None
        return Description(
            target=row["table_full_name"],
            text=row["user_description"],
            last_updated_by=row["last_updated_by"],
            updated_at=row["updated_at"],
        )

    def get_column_description(self, column_full_name: str) -> Description | None:
        row = self.conn.execute(
            "SELECT * FROM column_descriptions WHERE column_full_name = ?", (column_full_name,)
        ).fetchone()
        if not row:
            return None
        return Description(
            target=row["column_full_name"],
            text=row["description"],
            last_updated_by=row["last_updated_by"],
            updated_at=row["updated_at"],
        )

    def upsert_table_description(self, full_name: str, text: str, user: str) -> None:
        self.conn.execute("""
            INSERT INTO table_descriptions (table_full_name, user_description, last_updated_by, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(table_full_name) DO UPDATE SET
                user_description = excluded.user_description,
                last_updated_by = excluded.last_updated_by,
                updated_at = excluded.updated_at
        """, (full_name, text, user, utc_now()))

    def upsert_column_description(
        self, table_full_name: str, column_name: str, text: str, user: str
    ) -> None:
        self.conn.execute("""
            INSERT INTO column_descriptions (
                column_full_name, table_full_name, column_name, description,
                last_updated_by, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(column_full_name) DO UPDATE SET
                description = excluded.description,
                last_updated_by = excluded.last_updated_by,
                updated_at = excluded.updated_at
        """, (f"{table_full_name}.{column_name}", table_full_name, column_name, text, user, utc_now()))

    # =========================================================================
    # Tags
    # =========================================================================

    def list_tags(self, table_full_name: str) -> list[TagReference]:
        cursor = self.conn.execute(
            "SELECT * FROM table_tags WHERE table_full_name = ? ORDER BY created_at DESC, tag_name",
            (table_full_name,),
        )
        return [_row_to_tag(row) for row in cursor.fetchall()]

    def get_tag(self, tag_id: str) -> TagReference | None:
        row = self.conn.execute(
            "SELECT * FROM table_tags WHERE tag_id = ?", (tag_id,)
        ).fetchone()
        return _row_to_tag(row) if row else None

    def find_tag(self, table_full_name: str, tag_name: str) -> TagReference | None:
        row = self.conn.execute(
            "SELECT * FROM table_tags WHERE table_full_name = ? AND tag_name = ?",
            (table_full_name, tag_name),
        ).fetchone()
        return _row_to_tag(row) if row else None

    def add_tag(
        self, table_full_name: str, tag_name: str, tag_value: str | None, user: str
    ) -> TagReference:
        """Attach a tag to a table; returns the existing association if present."""
        existing = self.find_tag(table_full_name, tag_name)
        if existing:
            return existing
        tag = TagReference(
            tag_id=str(uuid.uuid4()),
            table_full_name=table_full_name,
            tag_name=tag_name,
            tag_value=tag_value,
            created_by=user,
            created_at=utc_now(),
        )
        self.conn.execute("""
            INSERT INTO table_tags (tag_id, table_full_name, tag_name, tag_value, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (tag.tag_id, tag.table_full_name, tag.tag_name, tag.tag_value, tag.created_by, tag.created_at))
        return tag

    def remove_tag(self, tag_id: str) -> bool:
        cursor = self.conn.execute("DELETE FROM table_tags WHERE tag_id = ?", (tag_id,))
        return cursor.rowcount > 0

    # =========================================================================
    # Glossary attributes and enumerations
    # =========================================================================

    def list_attributes(self) -> list[Attribute]:
        cursor = self.conn.execute("""
            SELECT a.*, COUNT(DISTINCT l.link_id) AS usage_count
            FROM attribute_definitions a
            LEFT JOIN column_attributes l ON l.attribute_name = a.attribute_name
            GROUP BY a.attribute_name
            ORDER BY a.display_name
        """)
        return [self._row_to_attribute(row) for row in cursor.fetchall()]

    def get_attribute(self, name: str, with_enumerations: bool = False) -> Attribute | None:
        row = self.conn.execute("""
            SELECT a.*, COUNT(DISTINCT l.link_id) AS usage_count
            FROM attribute_definitions a
            LEFT JOIN column_attributes l ON l.attribute_name = a.attribute_name
            WHERE a.attribute_name = ?
            GROUP BY a.attribute_name
        """, (name,)).fetchone()
        if not row:
            return None
        attribute = self._row_to_attribute(row)
        if with_enumerations:
            attribute.enumerations = self.list_enumerations(name, include_inactive=True)
        return attribute

    def attribute_exists(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM attribute_definitions WHERE attribute_name = ?", (name,)
        ).fetchone()
        return row is not None

    def create_attribute(
        self, name: str, display_name: str, description: str | None, user: str
    ) -> bool:
        """Insert an attribute definition.

        Returns:
            False if an attribute with this name already exists (nothing written).
        """
        cursor = self.conn.execute("""
            INSERT OR IGNORE INTO attribute_definitions (
                attribute_name, display_name, description, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?)
        """, (name, display_name, description, user, utc_now()))
        return cursor.rowcount > 0

    def update_attribute(
        self,
        name: str,
        user: str,
        display_name: str | None = None,
        description: str | None = None,
    ) -> bool:
        assignments = ["updated_by = ?", "updated_at = ?"]
        params: list[Any] = [user, utc_now()]
        if display_name is not None:
            assignments.append("display_name = ?")
            params.append(display_name)
        if description is not None:
            assignments.append("description = ?")
            params.append(description)
        params.append(name)
        cursor = self.conn.execute(
            f"UPDATE attribute_definitions SET {', '.join(assignments)} WHERE attribute_name = ?",
            params,
        )
        return cursor.rowcount > 0

    def list_enumerations(self, attribute_name: str, include_inactive: bool = False) -> list[Enumeration]:
        query = "SELECT * FROM attribute_enumerations WHERE attribute_name = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY sort_order, value_code"
        cursor = self.conn.execute(query, (attribute_name,))
        return [_row_to_enumeration(row) for row in cursor.fetchall()]

    def get_enumeration(self, enumeration_id: str) -> Enumeration | None:
        row = self.conn.execute(
            "SELECT * FROM attribute_enumerations WHERE enumeration_id = ?", (enumeration_id,)
        ).fetchone()
        return _row_to_enumeration(row) if row else None

    def find_enumeration(self, attribute_name: str, value_code: str) -> Enumeration | None:
        """Look up a value by code, active or not."""
        row = self.conn.execute(
            "SELECT * FROM attribute_enumerations WHERE attribute_name = ? AND value_code = ?",
            (attribute_name, value_code),
        ).fetchone()
        return _row_to_enumeration(row) if row else None

    def next_sort_order(self, attribute_name: str) -> int:
        row = self.conn.execute(
            "SELECT COALESCE(MAX(sort_order), 0) AS max_order FROM attribute_enumerations WHERE attribute_name = ?",
            (attribute_name,),
        ).fetchone()
        return row["max_order"] + 1

    def add_enumeration(
        self,
        attribute_name: str,
        value_code: str,
        value_description: str | None,
        sort_order: int,
        user: str,
    ) -> Enumeration:
        enumeration = Enumeration(
            enumeration_id=str(uuid.uuid4()),
            attribute_name=attribute_name,
            value_code=value_code,
            value_description=value_description,
            sort_order=sort_order,
        )
        self.conn.execute("""
            INSERT INTO attribute_enumerations (
                enumeration_id, attribute_name, value_code, value_description,
                sort_order, is_active, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, 1, ?, ?)
        """, (
            enumeration.enumeration_id, attribute_name, value_code, value_description,
            sort_order, user, utc_now(),
        ))
        return enumeration

    def update_enumeration(self, enumeration_id: str, user: str, **fields: Any) -> bool:
        """Update any of value_code, value_description, sort_order, is_active."""
        allowed = ("value_code", "value_description", "sort_order", "is_active")
        assignments = ["updated_by = ?", "updated_at = ?"]
        params: list[Any] = [user, utc_now()]
        for name in allowed:
            value = fields.get(name)
            if value is None:
                continue
            assignments.append(f"{name} = ?")
            params.append(int(value) if name == "is_active" else value)
        params.append(enumeration_id)
        cursor = self.conn.execute(
            f"UPDATE attribute_enumerations SET {', '.join(assignments)} WHERE enumeration_id = ?",
            params,
        )
        return cursor.rowcount > 0

    def list_column_attributes(self, table_full_name: str) -> list[ColumnAttributeLink]:
        cursor = self.conn.execute("""
            SELECT l.table_full_name, l.column_name, l.attribute_name, l.linked_by,
                   a.display_name, a.description
            FROM column_attributes l
            JOIN attribute_definitions a ON a.attribute_name = l.attribute_name
            WHERE l.table_full_name = ?
            ORDER BY l.column_name
        """, (table_full_name,))
        return [
            ColumnAttributeLink(
                table_full_name=row["table_full_name"],
                column_name=row["column_name"],
                attribute_name=row["attribute_name"],
                display_name=row["display_name"],
                description=row["description"],
                linked_by=row["linked_by"],
            )
            for row in cursor.fetchall()
        ]

    def link_column_attribute(
        self, table_full_name: str, column_name: str, attribute_name: str, user: str
    ) -> bool:
        """Link a column to a glossary attribute. Returns False if already linked."""
        cursor = self.conn.execute("""
            INSERT OR IGNORE INTO column_attributes (
                table_full_name, column_name, attribute_name, linked_by, linked_at
            ) VALUES (?, ?, ?, ?, ?)
        """, (table_full_name, column_name, attribute_name, user, utc_now()))
        return cursor.rowcount > 0

    def unlink_column_attribute(self, table_full_name: str, column_name: str, attribute_name: str) -> bool:
        cursor = self.conn.execute("""
            DELETE FROM column_attributes
            WHERE table_full_name = ? AND column_name = ? AND attribute_name = ?
        """, (table_full_name, column_name, attribute_name))
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_attribute(row: sqlite3.Row) -> Attribute:
        return Attribute(
            name=row["attribute_name"],
            display_name=row["display_name"],
            description=row["description"],
            usage_count=row["usage_count"],
            created_by=row["created_by"],
            created_at=row["created_at"],
            updated_by=row["updated_by"],
            updated_at=row["updated_at"],
        )

    # =========================================================================
    # Popularity
    # =========================================================================

    def record_view(self, table_full_name: str) -> int:
        """Count one view of a table and return the new total."""
        self.conn.execute("""
            INSERT INTO table_popularity (table_full_name, view_count, last_viewed)
            VALUES (?, 1, ?)
            ON CONFLICT(table_full_name) DO UPDATE SET
                view_count = view_count + 1,
                last_viewed = excluded.last_viewed
        """, (table_full_name, utc_now()))
        row = self.conn.execute(
            "SELECT view_count FROM table_popularity WHERE table_full_name = ?", (table_full_name,)
        ).fetchone()
        return row["view_count"]

    # =========================================================================
    # Ratings and comments (unmoderated, append-only)
    # =========================================================================

    def add_rating(self, table_full_name: str, user: str, rating: int) -> Rating:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError(f"Rating must be an integer from 1 to 5, got: {rating}")
        now = utc_now()
        self.conn.execute(
            "INSERT INTO user_ratings (table_full_name, user_name, rating, created_at) VALUES (?, ?, ?, ?)",
            (table_full_name, user, rating, now),
        )
        return Rating(table_full_name=table_full_name, user_name=user, rating=rating, created_at=now)

    def list_ratings(self, table_full_name: str) -> list[Rating]:
        cursor = self.conn.execute(
            "SELECT * FROM user_ratings WHERE table_full_name = ? ORDER BY id DESC",
            (table_full_name,),
        )
        return [
            Rating(
                table_full_name=row["table_full_name"],
                user_name=row["user_name"],
                rating=row["rating"],
                created_at=row["created_at"],
            )
            for row in cursor.fetchall()
        ]

    def rating_summary(self, table_full_name: str) -> RatingSummary:
        """Average of each user's most recent rating."""
        row = self.conn.execute("""
            SELECT AVG(rating) AS avg_rating, COUNT(*) AS rating_count
            FROM user_ratings
            WHERE id IN (
                SELECT MAX(id) FROM user_ratings
                WHERE table_full_name = ?
                GROUP BY user_name
            )
        """, (table_full_name,)).fetchone()
        return RatingSummary(average=row["avg_rating"], count=row["rating_count"])

    def add_comment(self, table_full_name: str, user: str, text: str) -> Comment:
        if not text or not text.strip():
            raise ValidationError("Comment text is required")
        text = text.strip()
        now = utc_now()
        cursor = self.conn.execute(
            "INSERT INTO user_comments (table_full_name, user_name, comment_text, created_at) VALUES (?, ?, ?, ?)",
            (table_full_name, user, text, now),
        )
        return Comment(
            comment_id=cursor.lastrowid,
            table_full_name=table_full_name,
            user_name=user,
            comment_text=text,
            created_at=now,
        )

    def list_comments(self, table_full_name: str) -> list[Comment]:
        cursor = self.conn.execute(
            "SELECT * FROM user_comments WHERE table_full_name = ? ORDER BY comment_id DESC",
            (table_full_name,),
        )
        return [
            Comment(
                comment_id=row["comment_id"],
                table_full_name=row["table_full_name"],
                user_name=row["user_name"],
                comment_text=row["comment_text"],
                created_at=row["created_at"],
            )
            for row in cursor.fetchall()
        ]
