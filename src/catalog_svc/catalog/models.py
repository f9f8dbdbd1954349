"""Pydantic models for the catalog browse API."""

from __future__ import annotations

from ..envelope import ApiModel


# =============================================================================
# Request Body Models
# =============================================================================

class DescriptionBody(ApiModel):
    """Proposed table description; becomes a DESCRIPTION change request."""
    description: str = ""
    justification: str = ""


class AddTagBody(ApiModel):
    table_full_name: str = ""
    tag_name: str = ""
    tag_value: str | None = None
    justification: str = ""


class RemoveTagBody(ApiModel):
    justification: str = ""


class ColumnAttributeBody(ApiModel):
    """Identifies one column-attribute link."""
    table_full_name: str = ""
    column_name: str = ""
    attribute_name: str = ""


class RatingBody(ApiModel):
    table: str = ""
    rating: int


class CommentBody(ApiModel):
    table: str = ""
    comment: str = ""


# =============================================================================
# Response Models
# =============================================================================

class TableModel(ApiModel):
    """A scanned table with its approved user description."""
    full_name: str
    database_name: str
    schema_name: str
    table_name: str
    table_type: str | None = None
    row_count: int | None = None
    bytes: int | None = None
    comment: str | None = None
    owner: str | None = None
    created: str | None = None
    last_altered: str | None = None
    user_description: str | None = None
    view_count: int = 0


class TagModel(ApiModel):
    tag_id: str
    table_full_name: str
    tag_name: str
    tag_value: str | None = None
    created_by: str | None = None
    created_at: str | None = None


class RatingSummaryModel(ApiModel):
    average: float | None = None
    count: int = 0


class TableDetailModel(TableModel):
    """Table detail: scanned metadata plus curated content."""
    tags: list[TagModel] = []
    rating: RatingSummaryModel = RatingSummaryModel()


class ColumnModel(ApiModel):
    column_name: str
    data_type: str | None = None
    is_nullable: str | None = None
    comment: str | None = None
    ordinal_position: int | None = None
    user_description: str | None = None


class DatabaseModel(ApiModel):
    database_name: str
    table_count: int


class SchemaModel(ApiModel):
    database_name: str
    schema_name: str
    table_count: int


class DescriptionModel(ApiModel):
    target: str
    description: str
    last_updated_by: str | None = None
    updated_at: str | None = None


class EnumerationModel(ApiModel):
    enumeration_id: str
    value_code: str
    value_description: str | None = None
    sort_order: int
    is_active: bool


class AttributeModel(ApiModel):
    name: str
    display_name: str
    description: str | None = None
    usage_count: int = 0
    created_by: str | None = None
    created_at: str | None = None
    updated_by: str | None = None
    updated_at: str | None = None


class ColumnAttributeModel(ApiModel):
    column_name: str
    attribute_name: str
    display_name: str | None = None
    description: str | None = None
    linked_by: str | None = None


class PopularityModel(ApiModel):
    table_full_name: str
    view_count: int


class RatingModel(ApiModel):
    user_name: str
    rating: int
    created_at: str | None = None


class RatingsModel(ApiModel):
    summary: RatingSummaryModel
    ratings: list[RatingModel]


class CommentModel(ApiModel):
    comment_id: int
    table_full_name: str
    user_name: str
    comment_text: str
    created_at: str | None = None
