"""
Infrastructure exceptions for CareHub.

These are raised by adapters (document store, identity provider, settings)
and translated into API errors at the edges of the application.
"""

from typing import Any, Dict, Optional


class CareHubException(Exception):
    """Base exception class for CareHub."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(CareHubException):
    """Raised when there's a database operation error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "DATABASE_ERROR", details)


class DocumentExistsError(DatabaseError):
    """Raised when creating a document whose id is already taken."""

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(
            f"Document {collection}/{doc_id} already exists",
            {"collection": collection, "id": doc_id},
        )


class IdentityProviderError(CareHubException):
    """Raised when the identity provider rejects an account operation."""

    def __init__(
        self, reason: str, message: str, details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.reason = reason
        super().__init__(message, "IDENTITY_PROVIDER_ERROR", details)


class TokenVerificationError(CareHubException):
    """Raised when a bearer token cannot be verified.

    ``kind`` is one of ``expired``, ``revoked`` or ``invalid``.
    """

    EXPIRED = "expired"
    REVOKED = "revoked"
    INVALID = "invalid"

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message, "TOKEN_VERIFICATION_ERROR")
