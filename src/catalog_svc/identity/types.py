"""Identity types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ANONYMOUS_USER = "ANONYMOUS"


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling, as asserted by the fronting proxy or token."""
    user: str = ANONYMOUS_USER
    role: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_anonymous(self) -> bool:
        return self.user == ANONYMOUS_USER
