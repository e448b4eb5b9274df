# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests.

The whole service landscape (Keystone, Swift, the classifier service and
visual recognition) is simulated by one httpx.MockTransport, so real
clients run end to end without network access.
"""

from __future__ import annotations

import json
import logging
from types import SimpleNamespace

import httpx
import pytest

from ossearch.engine.search_engine import SearchEngine
from ossearch.generators.image_generator import ImageTagGenerator
from ossearch.storage.swift_store import SwiftObjectStore
from ossearch.trainer.nlc_trainer import NLCTrainerClient

logger = logging.getLogger(__name__)

IDENTITY_HOST = "identity.example.com"
SWIFT_URL = "https://swift.example.com/v1/AUTH_project"
NLC_URL = "https://nlc.example.com/natural-language-classifier/api"
VR_URL = "https://vr.example.com/visual-recognition/api"

# Image content -> visual recognition classes.
IMAGE_CLASSES = {
    b"jpeg:boat": ["boat", "sea"],
    b"jpeg:dog": ["dog", "animal"],
    b"png:cat": ["cat", "animal"],
}


class FakeCloud:
    """Keystone + Swift + classifier service + visual recognition."""

    def __init__(self) -> None:
        self.containers: dict[str, dict[str, tuple[bytes, str]]] = {
            "photos": {
                "boat.jpg": (b"jpeg:boat", "image/jpeg"),
                "dog.jpg": (b"jpeg:dog", "image/jpeg"),
                "anim.gif": (b"gif:anim", "image/gif"),
            },
        }
        self.classifiers: dict[str, dict] = {}
        self.hold_training = False
        self.vr_images: list[bytes] = []
        self.classify_texts: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == IDENTITY_HOST:
            return self._auth()
        if host == "swift.example.com":
            return self._swift(request)
        if host == "nlc.example.com":
            return self._nlc(request)
        if host == "vr.example.com":
            return self._vr(request)
        return httpx.Response(404)

    # --- Keystone ---

    @staticmethod
    def _auth() -> httpx.Response:
        catalog = [{"type": "object-store", "endpoints": [
            {"region": "dallas", "interface": "public", "url": SWIFT_URL},
        ]}]
        return httpx.Response(
            201, headers={"X-Subject-Token": "token"}, json={"token": {"catalog": catalog}},
        )

    # --- Swift ---

    def _swift(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.removeprefix("/v1/AUTH_project").strip("/").split("/", 1)
        marker = request.url.params.get("marker")
        if parts == [""]:
            names = [n for n in sorted(self.containers) if marker is None or n > marker]
            if not names:
                return httpx.Response(204)
            return httpx.Response(200, json=[
                {"name": n, "count": len(self.containers[n]), "bytes": 0} for n in names
            ])

        container = self.containers.get(parts[0])
        if container is None:
            return httpx.Response(404)
        if len(parts) == 1:
            names = [n for n in sorted(container) if marker is None or n > marker]
            if not names:
                return httpx.Response(204)
            return httpx.Response(200, json=[
                {"name": n, "bytes": len(container[n][0]), "content_type": container[n][1]}
                for n in names
            ])

        if parts[1] not in container:
            return httpx.Response(404)
        data, content_type = container[parts[1]]
        if request.method == "HEAD":
            return httpx.Response(200, headers={"Content-Type": content_type})
        return httpx.Response(200, headers={"Content-Type": content_type}, content=data)

    # --- Classifier service ---

    def _classifier(self, cid: str) -> dict:
        return {
            "classifier_id": cid,
            "name": "ossearch-classifier",
            "language": "en",
            "created": f"2016-10-{10 + len(self.classifiers):02d}T12:00:00.000Z",
            "status": "Training",
            "url": f"{NLC_URL}/v1/classifiers/{cid}",
        }

    def _nlc(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/natural-language-classifier/api")
        if path == "/v1/classifiers" and request.method == "GET":
            return httpx.Response(200, json={"classifiers": list(self.classifiers.values())})
        if path == "/v1/classifiers" and request.method == "POST":
            cid = f"c-{len(self.classifiers) + 1}"
            self.classifiers[cid] = self._classifier(cid)
            return httpx.Response(200, json=self.classifiers[cid])
        if path.endswith("/classify"):
            text = json.loads(request.content)["text"]
            self.classify_texts.append(text)
            top = "/photos/boat.jpg" if "boat" in text else "/photos/cat.png"
            return httpx.Response(200, json={
                "classifier_id": path.split("/")[3],
                "text": text,
                "top_class": top,
                "classes": [{"class_name": top, "confidence": 0.95}],
            })

        classifier = self.classifiers.get(path.split("/")[-1])
        if classifier is None:
            return httpx.Response(404)
        if not self.hold_training:
            classifier["status"] = "Available"
        return httpx.Response(200, json=classifier)

    # --- Visual recognition ---

    def _vr(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        image = next((k for k in IMAGE_CLASSES if k in request.content), None)
        if endpoint == "classify":
            self.vr_images.append(image)
            classes = [{"class": c, "score": 0.9} for c in IMAGE_CLASSES.get(image, [])]
            return httpx.Response(200, json={"images": [{"classifiers": [{"classes": classes}]}]})
        if endpoint == "detect_faces":
            return httpx.Response(200, json={"images": [{"faces": []}]})
        return httpx.Response(200, json={"images": [{"words": []}]})


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def stack(cloud, tmp_path) -> SimpleNamespace:
    """Real store, trainer and image generator wired to the fake cloud.

    Tests must await ``stack.aclose()`` when done.
    """
    client = httpx.AsyncClient(transport=httpx.MockTransport(cloud.handler))
    store = SwiftObjectStore(
        auth_url=f"https://{IDENTITY_HOST}",
        user_id="user-id",
        password="secret",
        project_id="project-id",
        region="dallas",
        client=client,
    )
    trainer = NLCTrainerClient(
        url=NLC_URL,
        username="nlc-user",
        password="nlc-secret",
        classifier_name="ossearch-classifier",
        corpus_dir=tmp_path / "corpus",
        poll_interval_seconds=0.001,
        client=client,
    )
    generator = ImageTagGenerator(
        store=store, api_key="vr-key", version_date="2016-05-20", base_url=VR_URL, client=client,
    )
    engine = SearchEngine(store, trainer, [generator])

    async def aclose() -> None:
        await engine.aclose()
        await client.aclose()

    return SimpleNamespace(
        engine=engine, store=store, trainer=trainer, client=client, aclose=aclose,
    )
