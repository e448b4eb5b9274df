# src/storage/store_factory.py — v1
"""Factory: instantiate the object store from configuration."""

from __future__ import annotations

from ossearch.config.settings import Settings
from ossearch.storage.base_object_store import BaseObjectStore


def create_object_store(settings: Settings) -> BaseObjectStore:
    """Create the object store selected by STORAGE_BACKEND.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.storage_backend == "swift":
        from ossearch.storage.swift_store import SwiftObjectStore

        return SwiftObjectStore(
            auth_url=settings.os_auth_url,
            user_id=settings.os_user_id,
            password=settings.os_password,
            project_id=settings.os_project_id,
            region=settings.os_region,
            token_ttl_seconds=settings.os_token_ttl_seconds,
            timeout=settings.http_timeout_seconds,
        )

    if settings.storage_backend == "s3":
        from ossearch.storage.s3_store import S3ObjectStore

        return S3ObjectStore(
            region=settings.s3_region or None,
            endpoint_url=settings.s3_endpoint_url or None,
        )

    raise ValueError(f"Unsupported storage backend: {settings.storage_backend!r}")
