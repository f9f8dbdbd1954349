"""
Catalog Content Projection

Scanned warehouse metadata (tables, columns, column-attribute links)
plus the curated content users add to it. Descriptions, tags, glossary
attributes and enumerations change only through approved change
requests; ratings and comments are written by their authors.
"""

from .types import (
    Attribute,
    CatalogColumn,
    CatalogTable,
    Comment,
    Description,
    Enumeration,
    Rating,
    RatingSummary,
    TagReference,
    split_column_name,
    split_table_name,
)
from .repository import CatalogContentRepository
from .loader import SnapshotLoader
from .refresh import MetadataRefresher, SnapshotRefresher

__all__ = [
    "Attribute",
    "CatalogColumn",
    "CatalogTable",
    "Comment",
    "Description",
    "Enumeration",
    "Rating",
    "RatingSummary",
    "TagReference",
    "split_column_name",
    "split_table_name",
    "CatalogContentRepository",
    "SnapshotLoader",
    "MetadataRefresher",
    "SnapshotRefresher",
]
