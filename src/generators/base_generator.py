# src/generators/base_generator.py — v1
"""Abstract tag generator interface.

A tag generator turns one storage object of a supported content type
into a list of short texts ("tags") that become training rows
labelled with the object's path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from ossearch.core.errors import UnsupportedObjectError
from ossearch.core.models import ObjectInfo, TagResult

if TYPE_CHECKING:
    from ossearch.config.settings import Settings
    from ossearch.storage.base_object_store import BaseObjectStore


class BaseTagGenerator(ABC):
    """Unified interface for content-type specific tag generators."""

    # Registry name, also used in TAG_GENERATORS.
    name: ClassVar[str] = ""
    # (settings field, env var) pairs that must be non-empty.
    required_settings: ClassVar[list[tuple[str, str]]] = []

    @property
    @abstractmethod
    def supported_content_types(self) -> frozenset[str]:
        """Normalized media types this generator handles (e.g. 'image/png')."""

    @abstractmethod
    async def _generate(self, object_info: ObjectInfo) -> list[str]:
        """Produce tags for a supported object."""

    @classmethod
    @abstractmethod
    def from_settings(
        cls, settings: Settings, store: BaseObjectStore,
    ) -> BaseTagGenerator:
        """Build the generator from application settings."""

    def supports(self, object_info: ObjectInfo) -> bool:
        """Whether the object's content type is handled by this generator."""
        return object_info.content_type in self.supported_content_types

    async def generate_tags(self, object_info: ObjectInfo) -> TagResult:
        """Generate tags for one object.

        Raises:
            UnsupportedObjectError: If the object is not supported.
            TagGenerationError: If the back-end failed for this object.
        """
        if not self.supports(object_info):
            raise UnsupportedObjectError(
                f"{object_info.path} with content-type "
                f"'{object_info.metadata.get('content-type', '')}' "
                f"is not valid for the {self.name} generator"
            )
        tags = await self._generate(object_info)
        return TagResult(object_info=object_info, tags=tags)

    @classmethod
    def missing_settings(cls, settings: Settings) -> list[str]:
        """Env var names of required settings that are unset."""
        return [env for field, env in cls.required_settings if not getattr(settings, field)]

    async def aclose(self) -> None:
        """Release network resources held by the generator."""
        return None
