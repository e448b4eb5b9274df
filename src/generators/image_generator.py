# src/generators/image_generator.py — v1
"""Image tag generator backed by a Visual Recognition service (v3 API).

Three analyses run in sequence on the downloaded image:
  1. classify         → class names ("fish", "boat", ...)
  2. detect_faces     → gender and identity names
  3. recognize_text   → words found in the image
A failing analysis is logged and contributes no tags; the others still run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from ossearch.core.errors import TagGenerationError
from ossearch.core.models import ObjectInfo
from ossearch.generators.base_generator import BaseTagGenerator

if TYPE_CHECKING:
    from ossearch.config.settings import Settings
    from ossearch.storage.base_object_store import BaseObjectStore

logger = logging.getLogger(__name__)

_SUPPORTED_TYPES = frozenset({"image/jpeg", "image/png"})


class ImageTagGenerator(BaseTagGenerator):
    """Tags images with visual classes, faces and recognized words."""

    name = "image"
    required_settings = [
        ("visual_recognition_api_key", "VISUAL_RECOGNITION_API_KEY"),
        ("visual_recognition_version_date", "VISUAL_RECOGNITION_VERSION_DATE"),
    ]

    def __init__(
        self,
        store: BaseObjectStore,
        api_key: str,
        version_date: str,
        base_url: str,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._api_key = api_key
        self._version_date = version_date
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, store: BaseObjectStore) -> ImageTagGenerator:
        return cls(
            store=store,
            api_key=settings.visual_recognition_api_key,
            version_date=settings.visual_recognition_version_date,
            base_url=settings.visual_recognition_url,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def supported_content_types(self) -> frozenset[str]:
        return _SUPPORTED_TYPES

    async def _generate(self, object_info: ObjectInfo) -> list[str]:
        image = await self._store.fetch_object(
            object_info.container_name, object_info.object_name,
        )

        tags: list[str] = []
        steps = [
            ("classify", self._class_tags),
            ("detect_faces", self._face_tags),
            ("recognize_text", self._word_tags),
        ]
        for endpoint, extract in steps:
            try:
                result = await self._analyze(endpoint, object_info, image)
            except (httpx.HTTPError, TagGenerationError, ValueError):
                logger.warning(
                    "Visual recognition %s failed for %s",
                    endpoint, object_info.path, exc_info=True,
                )
                continue
            tags.extend(extract(result))

        logger.debug("Image tags for %s: %s", object_info.path, tags)
        return tags

    async def _analyze(
        self, endpoint: str, object_info: ObjectInfo, image: bytes,
    ) -> dict[str, Any]:
        """POST the image to one analysis endpoint and return its single image result."""
        response = await self._client.post(
            f"{self._base_url}/v3/{endpoint}",
            params={"api_key": self._api_key, "version": self._version_date},
            files={"images_file": (object_info.object_name, image, object_info.content_type)},
        )
        response.raise_for_status()
        images = response.json().get("images") or []
        if len(images) != 1:
            raise TagGenerationError(
                f"Expected 1 image result from {endpoint}, got {len(images)}"
            )
        result = images[0]
        if result.get("error"):
            raise TagGenerationError(
                result["error"].get("description", f"{endpoint} reported an error")
            )
        return result

    @staticmethod
    def _class_tags(result: dict[str, Any]) -> list[str]:
        return [
            image_class["class"]
            for classifier in result.get("classifiers") or []
            for image_class in classifier.get("classes") or []
            if image_class.get("class")
        ]

    @staticmethod
    def _face_tags(result: dict[str, Any]) -> list[str]:
        tags: list[str] = []
        for face in result.get("faces") or []:
            gender = (face.get("gender") or {}).get("gender")
            if gender:
                tags.append(gender)
            name = (face.get("identity") or {}).get("name")
            if name:
                tags.append(name)
        return tags

    @staticmethod
    def _word_tags(result: dict[str, Any]) -> list[str]:
        return [w["word"] for w in result.get("words") or [] if w.get("word")]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
