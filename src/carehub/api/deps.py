"""FastAPI dependency providers.

Clients are created in the application lifespan and kept on ``app.state``;
these providers hand them to route handlers.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, Request

from ..application.ports.document_store import DocumentStore
from ..application.ports.identity_provider import IdentityProvider
from ..core.auth import AuthContext, AuthService
from .errors import UnauthorizedError


def get_document_store(request: Request) -> DocumentStore:
    """Get the document store created at startup."""
    return request.app.state.document_store


def get_identity_provider(request: Request) -> IdentityProvider:
    """Get the identity provider created at startup."""
    return request.app.state.identity_provider


def get_auth_service(
    identity_provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> AuthService:
    return AuthService(identity_provider)


DocumentStoreDep = Annotated[DocumentStore, Depends(get_document_store)]
IdentityProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


async def require_auth(request: Request, auth_service: AuthServiceDep) -> AuthContext:
    """Authenticated caller, or 401."""
    context = await auth_service.authenticate(request.headers.get("Authorization"))
    request.state.user_id = context.uid
    return context


async def optional_auth(request: Request, auth_service: AuthServiceDep) -> Optional[AuthContext]:
    """Authenticated caller when the request carries a valid token, otherwise None."""
    try:
        return await require_auth(request, auth_service)
    except UnauthorizedError:
        return None


def require_roles(*roles: str) -> Callable:
    """Dependency factory: authenticated caller whose role is in ``roles``, or 403."""

    async def dependency(context: Annotated[AuthContext, Depends(require_auth)]) -> AuthContext:
        return AuthService.require_role(context, roles)

    return dependency


CurrentUser = Annotated[AuthContext, Depends(require_auth)]
OptionalUser = Annotated[Optional[AuthContext], Depends(optional_auth)]
AdminUser = Annotated[AuthContext, Depends(require_roles("admin"))]
ClinicianUser = Annotated[AuthContext, Depends(require_roles("doctor", "admin"))]
CompanyManager = Annotated[AuthContext, Depends(require_roles("admin", "company"))]
