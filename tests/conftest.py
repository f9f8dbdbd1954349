"""Shared test fixtures for the data catalog service.

Every test gets its own SQLite file under tmp_path, loaded with a small
metadata snapshot.
"""

import copy

import pytest

from catalog_svc.catalog.loader import SnapshotLoader
from catalog_svc.db import connect, init_db
from catalog_svc.permissions.types import CallerContext, CapabilitySet


SNAPSHOT = {
    "tables": [
        {
            "database": "DB",
            "schema": "SCHEMA",
            "name": "ORDERS",
            "type": "BASE TABLE",
            "owner": "JANE.DOE",
            "comment": "Raw orders feed",
            "row_count": 100,
            "columns": [
                {"name": "ORDER_ID", "data_type": "NUMBER", "nullable": False},
                {"name": "STATUS", "data_type": "VARCHAR", "comment": "Order status code"},
                {"name": "REGION", "data_type": "VARCHAR", "attribute": "sales_region"},
            ],
        },
        {
            "database": "DB",
            "schema": "SCHEMA",
            "name": "CUSTOMERS",
            "type": "BASE TABLE",
            "columns": [
                {"name": "CUSTOMER_ID", "data_type": "NUMBER", "nullable": False},
                {"name": "REGION", "data_type": "VARCHAR", "attribute": "sales_region"},
            ],
        },
        {
            "database": "FINANCE",
            "schema": "REPORTING",
            "name": "FILINGS",
            "type": "VIEW",
            "owner": "FIN.OPS",
            "columns": [
                {"name": "FILING_ID", "data_type": "VARCHAR"},
            ],
        },
    ],
    "glossary": [
        {
            "name": "sales_region",
            "display_name": "Sales Region",
            "description": "Region an order is booked against",
            "enumerations": [
                {"code": "NA", "description": "North America"},
                {"code": "EMEA", "description": "Europe, Middle East and Africa"},
            ],
        },
    ],
}

ROLES = {
    "PUBLIC": ["APP_ACCESS"],
    "ANALYST": ["APP_ACCESS", "CREATE_REQUESTS"],
    "STEWARD": ["APP_ACCESS", "CREATE_REQUESTS", "APPROVE_GLOSSARY"],
    "SECURITY": ["APP_ACCESS", "APPROVE_DATA_ACCESS"],
    "ADMIN": [
        "APP_ACCESS", "CREATE_REQUESTS", "APPROVE_GLOSSARY",
        "APPROVE_DATA_ACCESS", "MANAGE_ROLES",
    ],
}


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def snapshot_data() -> dict:
    """A fresh copy of the test snapshot."""
    return copy.deepcopy(SNAPSHOT)


@pytest.fixture
def role_grants() -> dict:
    return copy.deepcopy(ROLES)


@pytest.fixture
def db_path(tmp_path):
    """Path to an initialized, snapshot-loaded database."""
    path = tmp_path / "catalog.db"
    conn = init_db(path)
    try:
        SnapshotLoader().apply(conn, copy.deepcopy(SNAPSHOT))
    finally:
        conn.close()
    return path


@pytest.fixture
def conn(db_path):
    """A connection to the test database."""
    connection = connect(db_path)
    yield connection
    connection.close()


# =============================================================================
# Caller Fixtures
# =============================================================================

@pytest.fixture
def requester() -> CallerContext:
    """An analyst who may submit requests but not approve them."""
    return CallerContext(
        user="ALICE",
        role="ANALYST",
        capabilities=CapabilitySet(has_app_access=True, can_create_requests=True),
    )


@pytest.fixture
def other_requester() -> CallerContext:
    return CallerContext(
        user="CAROL",
        role="ANALYST",
        capabilities=CapabilitySet(has_app_access=True, can_create_requests=True),
    )


@pytest.fixture
def reviewer() -> CallerContext:
    """A data steward who reviews change requests."""
    return CallerContext(
        user="BOB",
        role="STEWARD",
        capabilities=CapabilitySet(
            has_app_access=True, can_create_requests=True, can_approve_glossary=True,
        ),
    )


@pytest.fixture
def access_approver() -> CallerContext:
    """Security admin who decides data-access requests only."""
    return CallerContext(
        user="SAM",
        role="SECURITY",
        capabilities=CapabilitySet(has_app_access=True, can_approve_data_access=True),
    )


@pytest.fixture
def viewer() -> CallerContext:
    """Read-only user."""
    return CallerContext(
        user="VIC",
        role="PUBLIC",
        capabilities=CapabilitySet(has_app_access=True),
    )
