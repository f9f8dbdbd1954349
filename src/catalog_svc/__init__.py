"""
Data Catalog Service - curated metadata over a scanned data warehouse

Provides:
- Browsing of database/table/column metadata scanned from the warehouse
- Human-curated content: descriptions, tags, ratings, comments, glossary attributes
- A change-request approval workflow gating edits to official metadata
- A parallel access-request workflow for table-level read grants
"""

__version__ = "0.1.0"
