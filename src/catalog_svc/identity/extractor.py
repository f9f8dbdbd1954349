"""Identity extraction from requests."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass

from starlette.requests import Request

from .types import ANONYMOUS_USER, CallerIdentity

logger = logging.getLogger(__name__)


@dataclass
class IdentityExtractor:
    """
    Extracts caller identity from HTTP requests.

    The service runs behind an authenticating proxy, so tokens are not
    verified here. Supported sources, in order:
    - JWT bearer token (Authorization: Bearer ...)
    - Basic auth (service accounts)
    - Plain headers set by the proxy (X-User / X-Role)

    The role header applies only when the identity carries no role of its
    own (proxy headers, basic auth, or a token without a role claim). A
    token's role claim cannot be overridden by the caller.
    """
    auth_header: str = "Authorization"
    user_header: str = "X-User"
    role_header: str = "X-Role"

    # JWT claim mappings
    jwt_user_claim: str = "sub"
    jwt_role_claim: str = "role"

    def extract(self, request: Request) -> CallerIdentity:
        identity = (
            self._extract_jwt(request)
            or self._extract_basic(request)
            or self._extract_headers(request)
        )

        header_role = request.headers.get(self.role_header, "").strip()
        if header_role and identity.role is None:
            return CallerIdentity(
                user=identity.user,
                role=header_role.upper(),
                claims=identity.claims,
            )
        return identity

    def _extract_jwt(self, request: Request) -> CallerIdentity | None:
        """Extract identity from JWT Bearer token."""
        auth_header = request.headers.get(self.auth_header, "")
        if not auth_header.startswith("Bearer "):
            return None

        parts = auth_header[7:].split(".")
        if len(parts) != 3:
            return None

        # Decode payload (add padding if needed)
        payload_b64 = parts[1]
        padding = 4 - len(payload_b64) % 4
        if padding != 4:
            payload_b64 += "=" * padding

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64))
        except (binascii.Error, ValueError) as e:
            logger.debug(f"Failed to extract JWT identity: {e}")
            return None

        if not isinstance(payload, dict) or not payload.get(self.jwt_user_claim):
            return None

        role = payload.get(self.jwt_role_claim)
        return CallerIdentity(
            user=str(payload[self.jwt_user_claim]).upper(),
            role=str(role).upper() if role else None,
            claims=payload,
        )

    def _extract_basic(self, request: Request) -> CallerIdentity | None:
        """Extract identity from Basic auth (service accounts)."""
        auth_header = request.headers.get(self.auth_header, "")
        if not auth_header.startswith("Basic "):
            return None

        try:
            creds = base64.b64decode(auth_header[6:]).decode("utf-8")
            username, _ = creds.split(":", 1)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.debug(f"Failed to extract Basic auth identity: {e}")
            return None

        return CallerIdentity(user=username.upper())

    def _extract_headers(self, request: Request) -> CallerIdentity:
        user = request.headers.get(self.user_header, "").strip()
        return CallerIdentity(user=user.upper() if user else ANONYMOUS_USER)
