# src/storage/base_object_store.py — v1
"""Abstract object storage interface consumed by the search engine."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ossearch.core.models import ContainerRef, ObjectRef


class BaseObjectStore(ABC):
    """Unified interface for object storage backends (Swift, S3)."""

    @abstractmethod
    async def list_containers(self) -> list[ContainerRef]:
        """List all containers, in the order the backend returns them."""

    @abstractmethod
    async def list_objects(self, container_name: str) -> list[ObjectRef]:
        """List all objects of one container."""

    @abstractmethod
    async def get_object_metadata(
        self, container_name: str, object_name: str,
    ) -> dict[str, str]:
        """Return object headers with lower-cased names (incl. 'content-type')."""

    @abstractmethod
    async def fetch_object(self, container_name: str, object_name: str) -> bytes:
        """Download object content."""

    async def aclose(self) -> None:
        """Release network resources held by the store."""
        return None
