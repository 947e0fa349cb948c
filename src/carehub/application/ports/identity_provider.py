"""
Identity provider interface: bearer token verification and account creation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class VerifiedToken:
    """Claims of a successfully verified ID token."""

    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    claims: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CreatedAccount:
    uid: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False


class IdentityProvider(ABC):
    """Abstract identity provider."""

    @abstractmethod
    async def verify_token(self, token: str) -> VerifiedToken:
        """Verify an ID token.

        Raises TokenVerificationError with kind expired, revoked or invalid.
        """
        pass

    @abstractmethod
    async def create_account(
        self,
        email: str,
        password: str,
        display_name: str,
        phone_number: Optional[str] = None,
    ) -> CreatedAccount:
        """Create a sign-in account. Raises IdentityProviderError on rejection."""
        pass

    @abstractmethod
    async def set_role(self, uid: str, role: str) -> None:
        """Store the role as a custom claim on the account."""
        pass
