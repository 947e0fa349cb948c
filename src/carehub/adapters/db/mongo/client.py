"""
Motor client construction.
"""

import certifi
from motor.motor_asyncio import AsyncIOMotorClient

from ....core.config import DatabaseSettings


def create_motor_client(settings: DatabaseSettings) -> AsyncIOMotorClient:
    """Build an AsyncIOMotorClient for the configured URI.

    TLS with the certifi CA bundle is enabled only for Atlas SRV URIs.
    """
    options = {
        "serverSelectionTimeoutMS": settings.server_selection_timeout_ms,
        "tz_aware": True,
    }
    if settings.uri.startswith("mongodb+srv://"):
        options.update(
            tls=True,
            tlsCAFile=certifi.where(),
            tlsAllowInvalidCertificates=False,
        )
    return AsyncIOMotorClient(settings.uri, **options)
