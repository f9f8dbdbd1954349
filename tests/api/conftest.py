"""Fixtures for HTTP API tests."""

import pytest
import yaml
from fastapi.testclient import TestClient

from catalog_svc.config import Config
from catalog_svc.main import create_app


@pytest.fixture
def client(tmp_path, snapshot_data, role_grants):
    """A TestClient against a fresh store seeded from the test snapshot."""
    snapshot = tmp_path / "snapshot.yaml"
    snapshot.write_text(yaml.safe_dump(snapshot_data))
    config = Config.from_dict({
        "store": {"db_path": str(tmp_path / "api.db")},
        "permissions": {"default_role": "PUBLIC", "roles": role_grants},
        "catalog": {"snapshot_file": str(snapshot), "seed_on_startup": True},
    })
    with TestClient(create_app(config)) as test_client:
        yield test_client


def as_user(user: str, role: str) -> dict:
    return {"X-User": user, "X-Role": role}


@pytest.fixture
def analyst() -> dict:
    return as_user("alice", "analyst")


@pytest.fixture
def steward() -> dict:
    return as_user("bob", "steward")


@pytest.fixture
def security() -> dict:
    return as_user("sam", "security")


@pytest.fixture
def admin() -> dict:
    return as_user("root", "admin")
