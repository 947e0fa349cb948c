"""
Firebase Authentication adapter for the identity provider port.
"""

import asyncio
import logging
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials

from ...application.ports.identity_provider import (
    CreatedAccount,
    IdentityProvider,
    VerifiedToken,
)
from ...core.config import FirebaseSettings
from ...core.exceptions import IdentityProviderError, TokenVerificationError

logger = logging.getLogger(__name__)

APP_NAME = "carehub"


async def run_blocking(func, *args, **kwargs):
    """Run a blocking SDK call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))


def _initialize_app(settings: FirebaseSettings) -> firebase_admin.App:
    try:
        return firebase_admin.get_app(APP_NAME)
    except ValueError:
        pass

    if settings.credentials_path:
        credential = credentials.Certificate(settings.credentials_path)
    else:
        credential = credentials.ApplicationDefault()
    logger.info(f"Initializing Firebase app for project {settings.project_id}")
    return firebase_admin.initialize_app(
        credential, {"projectId": settings.project_id}, name=APP_NAME
    )


class FirebaseIdentityProvider(IdentityProvider):
    """Verifies ID tokens and manages accounts with firebase-admin."""

    def __init__(self, settings: FirebaseSettings, app: Optional[firebase_admin.App] = None):
        self.settings = settings
        self.app = app or _initialize_app(settings)

    async def verify_token(self, token: str) -> VerifiedToken:
        try:
            decoded = await run_blocking(
                auth.verify_id_token,
                token,
                app=self.app,
                check_revoked=self.settings.check_revoked,
            )
        # Expired and revoked are subclasses of InvalidIdTokenError
        except auth.ExpiredIdTokenError:
            raise TokenVerificationError(TokenVerificationError.EXPIRED, "Token has expired")
        except auth.RevokedIdTokenError:
            raise TokenVerificationError(TokenVerificationError.REVOKED, "Token has been revoked")
        except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as e:
            logger.info(f"Rejected ID token: {e}")
            raise TokenVerificationError(TokenVerificationError.INVALID, "Invalid token")

        return VerifiedToken(
            uid=decoded["uid"],
            email=decoded.get("email"),
            email_verified=bool(decoded.get("email_verified", False)),
            claims=decoded,
        )

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: str,
        phone_number: Optional[str] = None,
    ) -> CreatedAccount:
        try:
            record = await run_blocking(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name,
                phone_number=phone_number,
                email_verified=False,
                app=self.app,
            )
        except auth.EmailAlreadyExistsError:
            raise IdentityProviderError("email_exists", "Email is already registered")
        except ValueError as e:
            # Raised client-side by the SDK for malformed arguments
            reason = "weak_password" if "password" in str(e).lower() else "invalid_email"
            raise IdentityProviderError(reason, str(e))

        return CreatedAccount(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            email_verified=record.email_verified,
        )

    async def set_role(self, uid: str, role: str) -> None:
        await run_blocking(
            auth.set_custom_user_claims, uid, {"role": role}, app=self.app
        )
