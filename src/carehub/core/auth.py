"""
Bearer token authentication.

The AuthService turns a raw Authorization header into an AuthContext by asking
the identity provider to verify the token. It never touches the document store.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..api.errors import ForbiddenError, RoleRequiredError, UnauthorizedError
from ..application.ports.identity_provider import IdentityProvider
from .exceptions import TokenVerificationError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
DEFAULT_ROLE = "patient"

_TOKEN_ERRORS = {
    TokenVerificationError.EXPIRED: ("TOKEN_EXPIRED", "Token has expired"),
    TokenVerificationError.REVOKED: ("TOKEN_REVOKED", "Token has been revoked"),
    TokenVerificationError.INVALID: ("INVALID_TOKEN", "Invalid token"),
}


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller."""

    uid: str
    email: str
    role: str
    is_email_verified: bool = False

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


class AuthService:
    """Service for bearer token verification."""

    def __init__(self, identity_provider: IdentityProvider):
        self.identity_provider = identity_provider

    @staticmethod
    def extract_token(authorization: Optional[str]) -> str:
        """Pull the token out of an ``Authorization: Bearer <token>`` header."""
        if authorization is None:
            raise UnauthorizedError("Authorization token is required", code="MISSING_TOKEN")
        if not authorization.startswith(BEARER_PREFIX):
            raise UnauthorizedError("Authorization header must use the Bearer scheme")
        token = authorization[len(BEARER_PREFIX):].strip()
        if not token:
            raise UnauthorizedError("Authorization header must use the Bearer scheme")
        return token

    async def authenticate(self, authorization: Optional[str]) -> AuthContext:
        token = self.extract_token(authorization)
        try:
            verified = await self.identity_provider.verify_token(token)
        except TokenVerificationError as e:
            code, message = _TOKEN_ERRORS.get(e.kind, _TOKEN_ERRORS[TokenVerificationError.INVALID])
            raise UnauthorizedError(message, code=code)

        return AuthContext(
            uid=verified.uid,
            email=verified.email or "",
            role=verified.claims.get("role") or DEFAULT_ROLE,
            is_email_verified=verified.email_verified,
        )

    @staticmethod
    def require_role(context: AuthContext, roles: Sequence[str]) -> AuthContext:
        if context.role not in roles:
            logger.info(f"Role {context.role} rejected for uid={context.uid}; needs one of {list(roles)}")
            raise RoleRequiredError(roles)
        return context

    @staticmethod
    def require_self_or_role(context: AuthContext, owner_id: Optional[str], roles: Sequence[str] = ("admin",)) -> AuthContext:
        """Allow the resource owner, or any caller holding one of ``roles``."""
        if context.uid == owner_id or context.role in roles:
            return context
        logger.info(f"uid={context.uid} denied access to resource owned by {owner_id}")
        raise ForbiddenError("Access denied")
