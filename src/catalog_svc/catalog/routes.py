"""FastAPI routes for browsing catalog content.

Moderated content (descriptions, tags) is never written here: the write
endpoints create change requests. Ratings and comments are written
directly by their authors.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Query, Request

from ..context import open_db, resolve_caller
from ..envelope import ApiResponse
from ..errors import ConfigurationError, NotFoundError, ValidationError
from ..permissions.types import Capability
from ..requests.models import ChangeRequestModel
from ..requests.types import RequestType
from ..requests.workflow import ChangeRequestWorkflow
from .models import (
    AddTagBody,
    AttributeModel,
    ColumnAttributeBody,
    ColumnAttributeModel,
    ColumnModel,
    CommentBody,
    CommentModel,
    DatabaseModel,
    DescriptionBody,
    DescriptionModel,
    EnumerationModel,
    PopularityModel,
    RatingBody,
    RatingModel,
    RatingsModel,
    RatingSummaryModel,
    RemoveTagBody,
    SchemaModel,
    TableDetailModel,
    TableModel,
    TagModel,
)
from .refresh import MetadataRefresher
from .repository import CatalogContentRepository
from .types import CatalogTable, RatingSummary, TagReference, split_table_name

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["Catalog"])

# Configuration - set during app startup
_refresher: MetadataRefresher | None = None


def configure(refresher: MetadataRefresher | None) -> None:
    """Configure the refresh passthrough."""
    global _refresher
    _refresher = refresher


def _table_fields(table: CatalogTable, user_description: str | None) -> dict[str, Any]:
    return dict(
        full_name=table.full_name,
        database_name=table.database_name,
        schema_name=table.schema_name,
        table_name=table.table_name,
        table_type=table.table_type,
        row_count=table.row_count,
        bytes=table.bytes,
        comment=table.comment,
        owner=table.owner,
        created=table.created,
        last_altered=table.last_altered,
        user_description=user_description,
        view_count=table.view_count,
    )


def _tag_to_model(tag: TagReference) -> TagModel:
    return TagModel(
        tag_id=tag.tag_id,
        table_full_name=tag.table_full_name,
        tag_name=tag.tag_name,
        tag_value=tag.tag_value,
        created_by=tag.created_by,
        created_at=tag.created_at,
    )


def _summary_to_model(summary: RatingSummary) -> RatingSummaryModel:
    average = round(summary.average, 2) if summary.average is not None else None
    return RatingSummaryModel(average=average, count=summary.count)


def _require_table(repo: CatalogContentRepository, full_name: str) -> None:
    try:
        split_table_name(full_name)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if not repo.table_exists(full_name):
        raise NotFoundError(f"Table not found: {full_name}")


# =============================================================================
# Browse
# =============================================================================

@router.get("/catalog", response_model=ApiResponse[list[TableModel]])
async def list_tables(
    database: str | None = None,
    schema: str | None = None,
    search: str | None = None,
    limit: int = Query(default=500, ge=1, le=5000),
    offset: int = Query(default=0, ge=0),
    sort: Literal["name", "popularity"] = "name",
):
    """List scanned tables with their approved descriptions, by name or most viewed first."""
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        tables = repo.list_tables(
            database=database, schema=schema, search=search, limit=limit, offset=offset,
            by_popularity=sort == "popularity",
        )
        models = []
        for table in tables:
            description = repo.get_table_description(table.full_name)
            models.append(TableModel(**_table_fields(table, description.text if description else None)))
        return ApiResponse(data=models)


@router.get("/catalog/{database}/{schema}/{table}", response_model=ApiResponse[TableDetailModel])
async def get_table(database: str, schema: str, table: str):
    """Table detail with description, tags and rating summary."""
    full_name = f"{database}.{schema}.{table}"
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        found = repo.get_table(full_name)
        if found is None:
            raise NotFoundError(f"Table not found: {full_name}")
        description = repo.get_table_description(full_name)
        return ApiResponse(data=TableDetailModel(
            **_table_fields(found, description.text if description else None),
            tags=[_tag_to_model(t) for t in repo.list_tags(full_name)],
            rating=_summary_to_model(repo.rating_summary(full_name)),
        ))


@router.post("/popularity/{database}/{schema}/{table}", response_model=ApiResponse[PopularityModel])
async def record_view(database: str, schema: str, table: str, request: Request):
    """Count a view of the table detail page."""
    full_name = f"{database}.{schema}.{table}"
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.APP_ACCESS, "browse the catalog")
        repo = CatalogContentRepository(conn)
        _require_table(repo, full_name)
        return ApiResponse(data=PopularityModel(table_full_name=full_name, view_count=repo.record_view(full_name)))


@router.get("/columns/{database}/{schema}/{table}", response_model=ApiResponse[list[ColumnModel]])
async def list_columns(database: str, schema: str, table: str):
    full_name = f"{database}.{schema}.{table}"
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        _require_table(repo, full_name)
        return ApiResponse(data=[
            ColumnModel(
                column_name=c.column_name,
                data_type=c.data_type,
                is_nullable=c.is_nullable,
                comment=c.comment,
                ordinal_position=c.ordinal_position,
                user_description=c.user_description,
            )
            for c in repo.list_columns(full_name)
        ])


def _link_models(repo: CatalogContentRepository, full_name: str) -> list[ColumnAttributeModel]:
    return [
        ColumnAttributeModel(
            column_name=link.column_name,
            attribute_name=link.attribute_name,
            display_name=link.display_name,
            description=link.description,
            linked_by=link.linked_by,
        )
        for link in repo.list_column_attributes(full_name)
    ]


@router.get(
    "/columns/{database}/{schema}/{table}/attributes",
    response_model=ApiResponse[list[ColumnAttributeModel]],
)
async def list_column_attributes(database: str, schema: str, table: str):
    """Glossary attributes linked to the table's columns."""
    full_name = f"{database}.{schema}.{table}"
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        _require_table(repo, full_name)
        return ApiResponse(data=_link_models(repo, full_name))


def _check_link_body(body: ColumnAttributeBody) -> tuple[str, str, str]:
    table = body.table_full_name.strip()
    column = body.column_name.strip()
    attribute = body.attribute_name.strip()
    if not table or not column or not attribute:
        raise ValidationError("tableFullName, columnName and attributeName are required")
    return table, column, attribute


@router.post("/columns/link-attribute", response_model=ApiResponse[list[ColumnAttributeModel]])
async def link_column_attribute(body: ColumnAttributeBody, request: Request):
    """Attach a glossary attribute to a column. Returns the table's links."""
    table, column, attribute = _check_link_body(body)
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.CREATE_REQUESTS, "link columns to attributes")
        repo = CatalogContentRepository(conn)
        _require_table(repo, table)
        if not repo.column_exists(table, column):
            raise NotFoundError(f"Column not found: {table}.{column}")
        if not repo.attribute_exists(attribute):
            raise NotFoundError(f"Attribute not found: {attribute}")
        if repo.link_column_attribute(table, column, attribute, caller.user):
            logger.info(f"{caller.user} linked {table}.{column} to {attribute}")
        return ApiResponse(data=_link_models(repo, table), message="Column linked to attribute")


@router.post("/columns/unlink-attribute", response_model=ApiResponse[list[ColumnAttributeModel]])
async def unlink_column_attribute(body: ColumnAttributeBody, request: Request):
    table, column, attribute = _check_link_body(body)
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.CREATE_REQUESTS, "unlink columns from attributes")
        repo = CatalogContentRepository(conn)
        if not repo.unlink_column_attribute(table, column, attribute):
            raise NotFoundError(f"{table}.{column} is not linked to {attribute}")
        logger.info(f"{caller.user} unlinked {table}.{column} from {attribute}")
        return ApiResponse(data=_link_models(repo, table), message="Column unlinked from attribute")


@router.get("/databases", response_model=ApiResponse[list[DatabaseModel]])
async def list_databases():
    with open_db() as conn:
        rows = CatalogContentRepository(conn).list_databases()
        return ApiResponse(data=[DatabaseModel(**row) for row in rows])


@router.get("/schemas", response_model=ApiResponse[list[SchemaModel]])
async def list_schemas(database: str | None = None):
    with open_db() as conn:
        rows = CatalogContentRepository(conn).list_schemas(database)
        return ApiResponse(data=[SchemaModel(**row) for row in rows])


# =============================================================================
# Glossary
# =============================================================================

@router.get("/attributes", response_model=ApiResponse[list[AttributeModel]])
async def list_attributes():
    """Glossary attributes with the number of columns linked to each."""
    with open_db() as conn:
        attributes = CatalogContentRepository(conn).list_attributes()
        return ApiResponse(data=[
            AttributeModel(
                name=a.name,
                display_name=a.display_name,
                description=a.description,
                usage_count=a.usage_count,
                created_by=a.created_by,
                created_at=a.created_at,
                updated_by=a.updated_by,
                updated_at=a.updated_at,
            )
            for a in attributes
        ])


@router.get("/attributes/{name}/enumerations", response_model=ApiResponse[list[EnumerationModel]])
async def list_enumerations(name: str, include_inactive: bool = False):
    """Allowed values of an attribute in sort order."""
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        if not repo.attribute_exists(name):
            raise NotFoundError(f"Attribute not found: {name}")
        return ApiResponse(data=[
            EnumerationModel(
                enumeration_id=e.enumeration_id,
                value_code=e.value_code,
                value_description=e.value_description,
                sort_order=e.sort_order,
                is_active=e.is_active,
            )
            for e in repo.list_enumerations(name, include_inactive=include_inactive)
        ])


# =============================================================================
# Descriptions and tags (moderated)
# =============================================================================

@router.get("/description/{table}", response_model=ApiResponse[DescriptionModel | None])
async def get_description(table: str):
    """Approved description of a table, or null if none was approved yet."""
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        _require_table(repo, table)
        description = repo.get_table_description(table)
        if description is None:
            return ApiResponse(data=None)
        return ApiResponse(data=DescriptionModel(
            target=description.target,
            description=description.text,
            last_updated_by=description.last_updated_by,
            updated_at=description.updated_at,
        ))


@router.put("/description/{table}", response_model=ApiResponse[ChangeRequestModel])
async def propose_description(table: str, body: DescriptionBody, request: Request):
    """Propose a new table description; it is applied once a reviewer approves it."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        created = ChangeRequestWorkflow(conn).submit(
            caller,
            request_type=RequestType.DESCRIPTION,
            target_object=table,
            justification=body.justification,
            proposed_change={"description": body.description},
        )
        return ApiResponse(data=ChangeRequestModel.from_request(created), message="Description change submitted for review")


@router.get("/tags/{database}/{schema}/{table}", response_model=ApiResponse[list[TagModel]])
async def list_tags(database: str, schema: str, table: str):
    full_name = f"{database}.{schema}.{table}"
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        _require_table(repo, full_name)
        return ApiResponse(data=[_tag_to_model(t) for t in repo.list_tags(full_name)])


@router.post("/tags", response_model=ApiResponse[ChangeRequestModel])
async def propose_tag(body: AddTagBody, request: Request):
    """Propose attaching a tag to a table."""
    proposed: dict[str, Any] = {"tag_name": body.tag_name}
    if body.tag_value is not None:
        proposed["tag_value"] = body.tag_value
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        created = ChangeRequestWorkflow(conn).submit(
            caller,
            request_type=RequestType.TAG_ADD,
            target_object=body.table_full_name,
            justification=body.justification,
            proposed_change=proposed,
        )
        return ApiResponse(data=ChangeRequestModel.from_request(created), message="Tag change submitted for review")


@router.delete("/tags/{tag_id}", response_model=ApiResponse[ChangeRequestModel])
async def propose_tag_removal(tag_id: str, body: RemoveTagBody, request: Request):
    """Propose removing a tag from its table."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        tag = CatalogContentRepository(conn).get_tag(tag_id)
        if tag is None:
            raise NotFoundError(f"Tag not found: {tag_id}")
        created = ChangeRequestWorkflow(conn).submit(
            caller,
            request_type=RequestType.TAG_REMOVE,
            target_object=tag.table_full_name,
            justification=body.justification,
            proposed_change={"tag_name": tag.tag_name, "tag_id": tag.tag_id},
        )
        return ApiResponse(data=ChangeRequestModel.from_request(created), message="Tag removal submitted for review")


# =============================================================================
# Ratings and comments (unmoderated)
# =============================================================================

@router.post("/ratings", response_model=ApiResponse[RatingSummaryModel])
async def add_rating(body: RatingBody, request: Request):
    """Rate a table 1-5. Returns the updated summary."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.APP_ACCESS, "rate tables")
        repo = CatalogContentRepository(conn)
        _require_table(repo, body.table)
        repo.add_rating(body.table, caller.user, body.rating)
        return ApiResponse(data=_summary_to_model(repo.rating_summary(body.table)), message="Rating saved")


@router.get("/ratings/{table}", response_model=ApiResponse[RatingsModel])
async def get_ratings(table: str):
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        _require_table(repo, table)
        return ApiResponse(data=RatingsModel(
            summary=_summary_to_model(repo.rating_summary(table)),
            ratings=[
                RatingModel(user_name=r.user_name, rating=r.rating, created_at=r.created_at)
                for r in repo.list_ratings(table)
            ],
        ))


@router.post("/comments", response_model=ApiResponse[CommentModel])
async def add_comment(body: CommentBody, request: Request):
    with open_db() as conn:
        caller = resolve_caller(request, conn)
        caller.require(Capability.APP_ACCESS, "comment on tables")
        repo = CatalogContentRepository(conn)
        _require_table(repo, body.table)
        comment = repo.add_comment(body.table, caller.user, body.comment)
        return ApiResponse(data=CommentModel(
            comment_id=comment.comment_id,
            table_full_name=comment.table_full_name,
            user_name=comment.user_name,
            comment_text=comment.comment_text,
            created_at=comment.created_at,
        ), message="Comment added")


@router.get("/comments/{table}", response_model=ApiResponse[list[CommentModel]])
async def list_comments(table: str):
    """Comments on a table, newest first."""
    with open_db() as conn:
        repo = CatalogContentRepository(conn)
        _require_table(repo, table)
        return ApiResponse(data=[
            CommentModel(
                comment_id=c.comment_id,
                table_full_name=c.table_full_name,
                user_name=c.user_name,
                comment_text=c.comment_text,
                created_at=c.created_at,
            )
            for c in repo.list_comments(table)
        ])


# =============================================================================
# Refresh passthrough
# =============================================================================

@router.post("/refresh-catalog", response_model=ApiResponse[dict[str, Any]])
async def refresh_catalog(request: Request):
    """Reload scanned metadata and wait for it to finish."""
    with open_db() as conn:
        caller = resolve_caller(request, conn)
    caller.require(Capability.APP_ACCESS, "refresh the catalog")
    if _refresher is None:
        raise ConfigurationError("Catalog refresh is not configured")

    logger.info(f"Catalog refresh requested by {caller.user}")
    result = await _refresher.refresh()
    return ApiResponse(data=result, message="Catalog refreshed")
