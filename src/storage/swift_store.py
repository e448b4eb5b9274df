# src/storage/swift_store.py — v1
"""OpenStack Swift object storage client (STORAGE_BACKEND=swift).

Authenticates against Keystone v3 with user id / password scoped to a
project, then talks to the public object-store endpoint of the
configured region. Tokens are cached and re-requested after
``token_ttl_seconds`` or when Swift answers 401.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from ossearch.core.errors import (
    ContainerNotFoundError,
    ObjectNotFoundError,
    StorageAuthError,
    StorageError,
)
from ossearch.core.models import ContainerRef, ObjectRef
from ossearch.storage.base_object_store import BaseObjectStore

logger = logging.getLogger(__name__)

# Swift caps a single listing response at 10000 entries.
LISTING_PAGE_SIZE = 10000


def find_public_endpoint(catalog: list[dict[str, Any]], region: str) -> str | None:
    """Find the public object-store URL for a region in a Keystone catalog."""
    for service in catalog:
        if service.get("type") != "object-store":
            continue
        for endpoint in service.get("endpoints") or []:
            if endpoint.get("region") == region and endpoint.get("interface") == "public":
                return endpoint.get("url")
        return None
    return None


class SwiftObjectStore(BaseObjectStore):
    """Object storage over the Swift REST API."""

    def __init__(
        self,
        auth_url: str,
        user_id: str,
        password: str,
        project_id: str,
        region: str,
        token_ttl_seconds: float = 300,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
        page_size: int = LISTING_PAGE_SIZE,
    ) -> None:
        self._auth_url = auth_url.rstrip("/")
        self._user_id = user_id
        self._password = password
        self._project_id = project_id
        self._region = region
        self._token_ttl = token_ttl_seconds
        self._page_size = page_size

        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._auth_lock = asyncio.Lock()

        self._token: str | None = None
        self._storage_url: str | None = None
        self._token_obtained_at = 0.0

    # --- Authentication ---

    def invalidate_token(self) -> None:
        """Forget the cached token; the next request re-authenticates."""
        if self._token:
            logger.debug("Invalidating object storage auth token")
        self._token = None

    def _token_valid(self) -> bool:
        if not self._token or not self._storage_url:
            return False
        return (time.monotonic() - self._token_obtained_at) < self._token_ttl

    async def _ensure_auth(self) -> None:
        async with self._auth_lock:
            if not self._token_valid():
                await self._authenticate()

    async def _authenticate(self) -> None:
        url = f"{self._auth_url}/v3/auth/tokens"
        body = {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {"id": self._user_id, "password": self._password},
                    },
                },
                "scope": {"project": {"id": self._project_id}},
            }
        }
        logger.debug("Requesting object storage token: POST %s", url)
        try:
            response = await self._client.post(url, json=body)
        except httpx.HTTPError as e:
            raise StorageAuthError(f"Object storage authentication failed: {e}") from e

        if response.status_code >= 400:
            raise StorageAuthError(
                f"Object storage authentication failed: HTTP {response.status_code}"
            )

        token = response.headers.get("x-subject-token")
        try:
            catalog = response.json().get("token", {}).get("catalog") or []
        except ValueError as e:
            raise StorageAuthError("Object storage auth response is not JSON") from e

        endpoint = find_public_endpoint(catalog, self._region)
        if not token or not endpoint:
            raise StorageAuthError(
                f"Unable to get access token on public interface for region {self._region}"
            )

        self._token = token
        self._storage_url = endpoint.rstrip("/")
        self._token_obtained_at = time.monotonic()
        logger.debug("Obtained object storage token for %s", self._storage_url)

    async def _request(self, method: str, path: str = "", **kwargs: Any) -> httpx.Response:
        """Authenticated request relative to the storage URL, retried once on 401."""
        await self._ensure_auth()
        for attempt in range(2):
            url = f"{self._storage_url}{path}"
            headers = {"X-Auth-Token": self._token or ""}
            try:
                response = await self._client.request(method, url, headers=headers, **kwargs)
            except httpx.HTTPError as e:
                raise StorageError(f"{method} {url} failed: {e}") from e
            if response.status_code != 401 or attempt == 1:
                return response
            logger.debug("Object storage token rejected, re-authenticating")
            self.invalidate_token()
            await self._ensure_auth()
        return response  # pragma: no cover

    @staticmethod
    def _object_path(container_name: str, object_name: str = "") -> str:
        path = "/" + quote(container_name, safe="")
        if object_name:
            path += "/" + quote(object_name, safe="/")
        return path

    async def _listing(self, path: str) -> list[dict[str, Any]] | None:
        """Fetch a full JSON listing following marker pagination.

        Returns None when the listing endpoint answered with a non-listing status.
        """
        entries: list[dict[str, Any]] = []
        marker: str | None = None
        while True:
            params: dict[str, Any] = {"format": "json", "limit": self._page_size}
            if marker:
                params["marker"] = marker
            response = await self._request("GET", path, params=params)
            if response.status_code == 204:
                break
            if response.status_code != 200:
                return None
            try:
                page = response.json()
            except ValueError as e:
                raise StorageError(f"Invalid listing response for {path or '/'}") from e
            entries.extend(page)
            if len(page) < self._page_size:
                break
            marker = page[-1].get("name") or page[-1].get("subdir")
        return entries

    # --- BaseObjectStore ---

    async def list_containers(self) -> list[ContainerRef]:
        logger.debug("Listing object storage containers")
        entries = await self._listing("")
        if entries is None:
            raise StorageError("Unable to list object storage containers")
        return [
            ContainerRef(
                name=e["name"],
                count=e.get("count", 0),
                size_bytes=e.get("bytes", 0),
            )
            for e in entries
        ]

    async def list_objects(self, container_name: str) -> list[ObjectRef]:
        logger.debug("Listing objects of container '%s'", container_name)
        entries = await self._listing(self._object_path(container_name))
        if entries is None:
            raise ContainerNotFoundError(f"Container {container_name} was not found.")
        return [
            ObjectRef(
                container_name=container_name,
                object_name=e["name"],
                size_bytes=e.get("bytes", 0),
                content_type=e.get("content_type", ""),
                last_modified=e.get("last_modified"),
            )
            for e in entries
            if "name" in e
        ]

    async def get_object_metadata(
        self, container_name: str, object_name: str,
    ) -> dict[str, str]:
        response = await self._request(
            "HEAD", self._object_path(container_name, object_name),
        )
        if response.status_code != 200:
            raise ObjectNotFoundError(
                f"Unexpected response getting metadata for object {object_name} "
                f"in container {container_name}. statusCode: {response.status_code}"
            )
        return {k.lower(): v for k, v in response.headers.items()}

    async def fetch_object(self, container_name: str, object_name: str) -> bytes:
        response = await self._request(
            "GET", self._object_path(container_name, object_name),
        )
        if response.status_code != 200:
            raise ObjectNotFoundError(
                f"Object {object_name} could not be downloaded from container "
                f"{container_name}. HTTP status code: {response.status_code}"
            )
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
