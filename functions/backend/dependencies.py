"""
Dependency wiring for the Cloud Functions and the FastAPI app.
"""

from __future__ import annotations

import logging

from backend.auth import AuthClient, FirebaseAuthClient, InMemoryAuthClient
from backend.config import get_settings
from backend.db import DbClient, FirestoreDbClient, InMemoryDbClient, SqlDbClient
from backend.storage import (
    FirebaseStorageClient,
    InMemoryStorageClient,
    S3StorageClient,
    StorageClient,
)
from actions.common import Clients

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_auth_client: AuthClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.db_backend == "memory":
        _db_client = InMemoryDbClient()
    elif settings.db_backend == "sql":
        _db_client = SqlDbClient(settings.database_url or "")
    else:
        _db_client = FirestoreDbClient()
    logger.info("Using %s database backend", settings.db_backend)
    return _db_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if settings.auth_backend == "memory":
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = FirebaseAuthClient()
    return _auth_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.storage_backend == "memory":
        _storage_client = InMemoryStorageClient()
    elif settings.storage_backend == "s3":
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket or "",
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    else:
        _storage_client = FirebaseStorageClient(settings.storage_bucket)
    return _storage_client


def get_clients() -> Clients:
    """Bundle the backends every action handler receives."""
    return Clients(
        db=get_db_client(),
        auth=get_auth_client(),
        storage=get_storage_client(),
        upload_url_expiry_seconds=get_settings().upload_url_expiry_seconds,
    )


def reset_clients() -> None:
    """Drop cached singletons (used by tests that change settings)."""
    global _db_client, _auth_client, _storage_client
    _db_client = None
    _auth_client = None
    _storage_client = None
