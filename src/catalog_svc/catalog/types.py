"""Catalog content types - scanned metadata plus curated content."""

from __future__ import annotations

from dataclasses import dataclass, field


def split_table_name(full_name: str) -> tuple[str, str, str]:
    """Split ``DB.SCHEMA.TABLE`` into its three parts."""
    parts = full_name.split(".")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Expected DATABASE.SCHEMA.TABLE, got: {full_name}")
    return parts[0], parts[1], parts[2]


def split_column_name(column_full_name: str) -> tuple[str, str]:
    """Split ``DB.SCHEMA.TABLE.COLUMN`` into (table full name, column)."""
    table_name, _, column = column_full_name.rpartition(".")
    if not table_name or not column:
        raise ValueError(f"Expected DATABASE.SCHEMA.TABLE.COLUMN, got: {column_full_name}")
    split_table_name(table_name)
    return table_name, column


@dataclass(slots=True)
class CatalogTable:
    """A table or view as last seen by the metadata scan."""
    full_name: str
    database_name: str
    schema_name: str
    table_name: str
    table_type: str | None = None
    row_count: int | None = None
    bytes: int | None = None
    comment: str | None = None
    owner: str | None = None          # owner / steward contact, used for reviewer assignment
    created: str | None = None
    last_altered: str | None = None
    refreshed_at: str | None = None
    view_count: int = 0               # times opened in the catalog browser


@dataclass(slots=True)
class CatalogColumn:
    """A column as last seen by the metadata scan."""
    table_full_name: str
    column_name: str
    data_type: str | None = None
    is_nullable: str | None = None
    comment: str | None = None
    ordinal_position: int | None = None
    user_description: str | None = None  # approved column description, if any


@dataclass(frozen=True, slots=True)
class Description:
    """Approved user-authored description of a table or column."""
    target: str               # DB.SCHEMA.TABLE or DB.SCHEMA.TABLE.COLUMN
    text: str
    last_updated_by: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True, slots=True)
class TagReference:
    """A tag attached to a table."""
    tag_id: str
    table_full_name: str
    tag_name: str
    tag_value: str | None = None
    created_by: str | None = None
    created_at: str | None = None


@dataclass(slots=True)
class Enumeration:
    """One allowed value of a glossary attribute."""
    enumeration_id: str
    attribute_name: str
    value_code: str
    value_description: str | None = None
    sort_order: int = 0
    is_active: bool = True


@dataclass(slots=True)
class Attribute:
    """A business-glossary attribute definition."""
    name: str
    display_name: str
    description: str | None = None
    usage_count: int = 0      # derived: number of linked columns
    created_by: str | None = None
    created_at: str | None = None
    updated_by: str | None = None
    updated_at: str | None = None
    enumerations: list[Enumeration] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ColumnAttributeLink:
    table_full_name: str
    column_name: str
    attribute_name: str
    display_name: str | None = None
    description: str | None = None
    linked_by: str | None = None


@dataclass(frozen=True, slots=True)
class Rating:
    table_full_name: str
    user_name: str
    rating: int
    created_at: str | None = None


@dataclass(frozen=True, slots=True)
class RatingSummary:
    """Average over each user's most recent rating."""
    average: float | None
    count: int


@dataclass(frozen=True, slots=True)
class Comment:
    comment_id: int
    table_full_name: str
    user_name: str
    comment_text: str
    created_at: str | None = None
