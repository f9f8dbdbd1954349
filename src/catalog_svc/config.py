"""Configuration for the data catalog service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

# Environment variable naming the config file
CONFIG_ENV_VAR = "CATALOG_SVC_CONFIG"


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060
    reload: bool = False


@dataclass
class StoreConfig:
    """SQLite store configuration."""
    db_path: str = "catalog.db"
    # Busy timeout; a transition that cannot take the write lock in time
    # fails with a retryable StoreTimeoutError
    timeout_seconds: float = 5.0


@dataclass
class PermissionsConfig:
    """Role -> permission seed data and defaults."""
    default_role: str = "PUBLIC"
    # role name -> list of permission names (APP_ACCESS, CREATE_REQUESTS, ...)
    roles: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class CatalogConfig:
    """Scanned-metadata snapshot configuration."""
    # YAML snapshot of databases/tables/columns used by the refresh passthrough
    snapshot_file: str | None = None
    seed_on_startup: bool = False


@dataclass
class IdentityConfig:
    """Where caller identity is read from."""
    user_header: str = "X-User"
    role_header: str = "X-Role"
    jwt_user_claim: str = "sub"
    jwt_role_claim: str = "role"


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    permissions: PermissionsConfig = field(default_factory=PermissionsConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            server=ServerConfig(**data.get("server", {})),
            store=StoreConfig(**data.get("store", {})),
            permissions=PermissionsConfig(**data.get("permissions", {})),
            catalog=CatalogConfig(**data.get("catalog", {})),
            identity=IdentityConfig(**data.get("identity", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> Config:
        """Load config from the file named by CATALOG_SVC_CONFIG, or defaults."""
        path = os.environ.get(CONFIG_ENV_VAR)
        if not path:
            return cls()
        if path.endswith(".json"):
            return cls.from_json(path)
        return cls.from_yaml(path)
