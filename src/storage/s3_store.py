# src/storage/s3_store.py — v1
"""S3-compatible object storage client (STORAGE_BACKEND=s3).

Buckets play the role of containers and keys the role of objects.
Supports AWS S3, MinIO, and other S3-compatible storage.
Requires 'boto3' package: pip install boto3.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ossearch.core.errors import ContainerNotFoundError, ObjectNotFoundError, StorageError
from ossearch.core.models import ContainerRef, ObjectRef
from ossearch.storage.base_object_store import BaseObjectStore

logger = logging.getLogger(__name__)

_BOTO_ERRORS = (BotoCoreError, ClientError)


class S3ObjectStore(BaseObjectStore):
    """Object storage over the S3 API.

    boto3 is synchronous; every call runs in a worker thread so the
    event loop keeps serving the concurrent scan fan-out.
    """

    def __init__(
        self,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        """Initialize S3 store.

        Args:
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            client: Pre-built boto3 S3 client (tests, custom sessions).
        """
        if client is None:
            import boto3

            kwargs: dict = {}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)

        self._s3 = client

    async def list_containers(self) -> list[ContainerRef]:
        try:
            response = await asyncio.to_thread(self._s3.list_buckets)
        except _BOTO_ERRORS as e:
            raise StorageError(f"Unable to list buckets: {e}") from e
        return [ContainerRef(name=b["Name"]) for b in response.get("Buckets", [])]

    async def list_objects(self, container_name: str) -> list[ObjectRef]:
        def _list() -> list[ObjectRef]:
            refs: list[ObjectRef] = []
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=container_name):
                for obj in page.get("Contents", []):
                    last_modified = obj.get("LastModified")
                    refs.append(ObjectRef(
                        container_name=container_name,
                        object_name=obj["Key"],
                        size_bytes=obj.get("Size", 0),
                        last_modified=str(last_modified) if last_modified else None,
                    ))
            return refs

        try:
            return await asyncio.to_thread(_list)
        except _BOTO_ERRORS as e:
            raise ContainerNotFoundError(
                f"Container {container_name} could not be listed: {e}"
            ) from e

    async def get_object_metadata(
        self, container_name: str, object_name: str,
    ) -> dict[str, str]:
        try:
            response = await asyncio.to_thread(
                self._s3.head_object, Bucket=container_name, Key=object_name,
            )
        except _BOTO_ERRORS as e:
            raise ObjectNotFoundError(
                f"Error getting metadata for object {object_name} "
                f"in container {container_name}: {e}"
            ) from e

        metadata: dict[str, str] = {}
        if response.get("ContentType"):
            metadata["content-type"] = response["ContentType"]
        if response.get("ContentLength") is not None:
            metadata["content-length"] = str(response["ContentLength"])
        if response.get("ETag"):
            metadata["etag"] = response["ETag"].strip('"')
        if response.get("LastModified"):
            metadata["last-modified"] = str(response["LastModified"])
        for key, value in (response.get("Metadata") or {}).items():
            metadata[f"x-amz-meta-{key.lower()}"] = value
        return metadata

    async def fetch_object(self, container_name: str, object_name: str) -> bytes:
        def _get() -> bytes:
            response = self._s3.get_object(Bucket=container_name, Key=object_name)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except _BOTO_ERRORS as e:
            raise ObjectNotFoundError(
                f"Object {object_name} could not be downloaded from container "
                f"{container_name}: {e}"
            ) from e
