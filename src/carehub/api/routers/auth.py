"""
Account registration and current-user endpoints.
"""

import logging

from fastapi import APIRouter, status

from ...core.exceptions import IdentityProviderError
from ..deps import CurrentUser, DocumentStoreDep, IdentityProviderDep
from ..errors import BadRequestError, ConflictError, ForbiddenError, UserNotFoundError
from ..schemas.auth import RegisterRequest
from ..schemas.common import ApiResponse, error_responses
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

PROFILE_COLLECTIONS = {"doctor": "doctors", "patient": "patients", "company": "companies"}

_PROVIDER_ERRORS = {
    "email_exists": (ConflictError, "EMAIL_EXISTS", "Email is already registered"),
    "invalid_email": (BadRequestError, "INVALID_EMAIL", "Invalid email"),
    "weak_password": (BadRequestError, "WEAK_PASSWORD", "Password must be at least 6 characters"),
}


def _stub_profile(role: str, uid: str, body: RegisterRequest) -> dict:
    """Empty role profile, completed later through the resource's POST endpoint."""
    base = {"userId": uid, "isProfileComplete": False, "isActive": False}
    if role == "doctor":
        return {
            **base,
            "specialties": [],
            "education": [],
            "availability": {},
            "rating": 0,
            "reviewCount": 0,
            "isVerified": False,
        }
    if role == "patient":
        return {**base, "allergies": [], "chronicConditions": [], "medications": []}
    return {**base, "name": f"{body.first_name} {body.last_name}", "isVerified": False}


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(409),
    summary="Register a new account",
)
async def register(body: RegisterRequest, store: DocumentStoreDep, identity: IdentityProviderDep):
    """
    Create the sign-in account, store the role claim, then write the user
    document and an empty role profile.
    """
    try:
        account = await identity.create_account(
            email=body.email,
            password=body.password,
            display_name=f"{body.first_name} {body.last_name}",
            phone_number=body.phone_number,
        )
    except IdentityProviderError as e:
        if e.reason not in _PROVIDER_ERRORS:
            raise
        error_cls, code, message = _PROVIDER_ERRORS[e.reason]
        raise error_cls(code, message)

    await identity.set_role(account.uid, body.role)

    user = await store.set(
        "users",
        account.uid,
        {
            "email": body.email,
            "firstName": body.first_name,
            "lastName": body.last_name,
            "role": body.role,
            "phoneNumber": body.phone_number,
            "emailVerified": account.email_verified,
            "isActive": True,
            "metadata": {"lastSignIn": None, "signInCount": 0},
        },
    )
    collection = PROFILE_COLLECTIONS.get(body.role)
    if collection:
        await store.set(collection, account.uid, _stub_profile(body.role, account.uid, body))

    logger.info(f"Registered {body.role} account uid={account.uid}")
    return created(
        {
            "user": {
                "uid": account.uid,
                "email": account.email,
                "displayName": account.display_name,
                "role": body.role,
                "emailVerified": account.email_verified,
                "createdAt": user["createdAt"],
            }
        }
    )


@router.get("/me", response_model=ApiResponse[dict], responses=error_responses(403), summary="Current user")
async def get_current_user(caller: CurrentUser, store: DocumentStoreDep):
    """Return the caller's user document and role profile."""
    user = await store.get("users", caller.uid)
    if user is None:
        raise UserNotFoundError(caller.uid)
    if not user.get("isActive", False):
        raise ForbiddenError("User account is inactive", code="USER_INACTIVE")

    collection = PROFILE_COLLECTIONS.get(user.get("role"))
    role_profile = await store.get(collection, caller.uid) if collection else None

    user_data = {key: value for key, value in user.items() if key != "id"}
    return ok(
        {
            "user": {"uid": caller.uid, **user_data},
            "roleProfile": role_profile,
        }
    )
