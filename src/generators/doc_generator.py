# src/generators/doc_generator.py — v1
"""Document tag generator: text conversion followed by keyword extraction.

Plain text is decoded locally. Other formats (PDF, Word, HTML) are sent
to the Document Conversion service for NORMALIZED_TEXT. Keywords are
then ranked by the keyword extraction service and used as tags.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

import httpx

from ossearch.core.errors import TagGenerationError
from ossearch.core.models import ObjectInfo
from ossearch.generators.base_generator import BaseTagGenerator

if TYPE_CHECKING:
    from ossearch.config.settings import Settings
    from ossearch.storage.base_object_store import BaseObjectStore

logger = logging.getLogger(__name__)

_SUPPORTED_TYPES = frozenset({
    "text/plain",
    "text/html",
    "text/xhtml+xml",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

_CHARSET_RE = re.compile(r"charset=([\w.:-]+)", re.IGNORECASE)


def _charset(content_type_header: str) -> str:
    match = _CHARSET_RE.search(content_type_header or "")
    return match.group(1) if match else "utf-8"


class DocumentTagGenerator(BaseTagGenerator):
    """Tags documents with their ranked keywords."""

    name = "document"
    required_settings = [
        ("doc_conversion_username", "DOC_CONVERSION_USERNAME"),
        ("doc_conversion_password", "DOC_CONVERSION_PASSWORD"),
        ("doc_conversion_version_date", "DOC_CONVERSION_VERSION_DATE"),
        ("keyword_api_key", "KEYWORD_API_KEY"),
    ]

    def __init__(
        self,
        store: BaseObjectStore,
        conversion_url: str,
        conversion_username: str,
        conversion_password: str,
        conversion_version_date: str,
        keyword_url: str,
        keyword_api_key: str,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._conversion_url = conversion_url.rstrip("/")
        self._conversion_auth = httpx.BasicAuth(conversion_username, conversion_password)
        self._conversion_version_date = conversion_version_date
        self._keyword_url = keyword_url.rstrip("/")
        self._keyword_api_key = keyword_api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, store: BaseObjectStore) -> DocumentTagGenerator:
        return cls(
            store=store,
            conversion_url=settings.doc_conversion_url,
            conversion_username=settings.doc_conversion_username,
            conversion_password=settings.doc_conversion_password,
            conversion_version_date=settings.doc_conversion_version_date,
            keyword_url=settings.keyword_api_url,
            keyword_api_key=settings.keyword_api_key,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def supported_content_types(self) -> frozenset[str]:
        return _SUPPORTED_TYPES

    async def _generate(self, object_info: ObjectInfo) -> list[str]:
        text = await self._to_text(object_info)
        if not text.strip():
            logger.debug("No text extracted from %s", object_info.path)
            return []
        return await self._keywords(object_info, text)

    async def _to_text(self, object_info: ObjectInfo) -> str:
        content = await self._store.fetch_object(
            object_info.container_name, object_info.object_name,
        )
        if object_info.content_type == "text/plain":
            charset = _charset(object_info.metadata.get("content-type", ""))
            return content.decode(charset, errors="replace")

        try:
            response = await self._client.post(
                f"{self._conversion_url}/v1/convert_document",
                params={"version": self._conversion_version_date},
                auth=self._conversion_auth,
                data={"config": json.dumps({"conversion_target": "NORMALIZED_TEXT"})},
                files={"file": (object_info.object_name, content, object_info.content_type)},
            )
        except httpx.HTTPError as e:
            raise TagGenerationError(
                f"Document conversion failed for {object_info.path}: {e}"
            ) from e
        if response.status_code >= 400:
            raise TagGenerationError(
                f"Could not convert {object_info.path} to text: HTTP {response.status_code}"
            )
        return response.text

    async def _keywords(self, object_info: ObjectInfo, text: str) -> list[str]:
        try:
            response = await self._client.post(
                f"{self._keyword_url}/text/TextGetRankedKeywords",
                data={"apikey": self._keyword_api_key, "text": text, "outputMode": "json"},
            )
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TagGenerationError(
                f"Keyword extraction failed to analyze {object_info.path}: {e}"
            ) from e

        if result.get("status") != "OK":
            message = f"Keyword extraction failed to analyze {object_info.path}."
            if result.get("statusInfo"):
                message += f" Status Info: {result['statusInfo']}"
            raise TagGenerationError(message)

        return [k["text"] for k in result.get("keywords") or [] if k.get("text")]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
