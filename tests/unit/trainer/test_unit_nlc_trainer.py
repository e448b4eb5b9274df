# tests/unit/trainer/test_unit_nlc_trainer.py — v1
"""Tests for trainer/nlc_trainer.py — classifier service REST client."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from ossearch.core.errors import CorpusUnavailableError, NoSelectedJobError, TrainerError
from ossearch.trainer.nlc_trainer import NLCTrainerClient

BASE_URL = "https://nlc.example.com/natural-language-classifier/api"


class FakeNLC:
    """Natural Language Classifier service behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.classifiers: dict[str, dict] = {
            "c-old": self._classifier("c-old", "2016-10-01T12:00:00.000Z", "Available"),
            "c-new": self._classifier("c-new", "2016-10-05T12:00:00.000Z", "Training"),
            "foreign": self._classifier(
                "foreign", "2016-10-09T12:00:00.000Z", "Available", name="someone-else",
            ),
        }
        self.status_sequence: list[str] = []
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    @staticmethod
    def _classifier(cid: str, created: str, status: str, name: str = "ossearch-classifier") -> dict:
        return {
            "classifier_id": cid,
            "name": name,
            "language": "en",
            "created": created,
            "status": status,
            "status_description": f"The classifier is {status}",
            "url": f"{BASE_URL}/v1/classifiers/{cid}",
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, text="service error")

        path = request.url.path.removeprefix("/natural-language-classifier/api")
        if path == "/v1/classifiers" and request.method == "GET":
            listing = [
                {k: c[k] for k in ("classifier_id", "name", "language", "created", "url")}
                for c in self.classifiers.values()
            ]
            return httpx.Response(200, json={"classifiers": listing})
        if path == "/v1/classifiers" and request.method == "POST":
            created = self._classifier("c-submitted", "2016-10-10T12:00:00.000Z", "Training")
            self.classifiers["c-submitted"] = created
            return httpx.Response(200, json=created)
        if path.endswith("/classify"):
            cid = path.split("/")[3]
            text = json.loads(request.content)["text"]
            return httpx.Response(200, json={
                "classifier_id": cid,
                "text": text,
                "top_class": "/c1/a.jpg",
                "classes": [
                    {"class_name": "/c1/a.jpg", "confidence": 0.8},
                    {"class_name": "/c1/b.jpg", "confidence": 0.2},
                ],
            })

        cid = path.split("/")[-1]
        if cid not in self.classifiers:
            return httpx.Response(404, json={"error": "not found"})
        if self.status_sequence:
            self.classifiers[cid]["status"] = self.status_sequence.pop(0)
        return httpx.Response(200, json=self.classifiers[cid])


@pytest.fixture
def nlc() -> FakeNLC:
    return FakeNLC()


@pytest.fixture
def client(nlc, tmp_path) -> NLCTrainerClient:
    return NLCTrainerClient(
        url=BASE_URL + "/",
        username="nlc-user",
        password="nlc-secret",
        classifier_name="ossearch-classifier",
        corpus_dir=tmp_path / "corpus",
        poll_interval_seconds=0.001,
        client=httpx.AsyncClient(transport=httpx.MockTransport(nlc.handler)),
    )


class TestJobs:
    @pytest.mark.asyncio
    async def test_list_jobs_filters_by_name(self, client):
        jobs = await client.list_jobs()
        assert sorted(j.job_id for j in jobs) == ["c-new", "c-old"]
        statuses = {j.job_id: j.status for j in jobs}
        assert statuses == {"c-old": "Available", "c-new": "Training"}

    @pytest.mark.asyncio
    async def test_basic_auth(self, client, nlc):
        await client.get_job("c-old")
        assert nlc.requests[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_get_job_fields(self, client):
        job = await client.get_job("c-old")
        assert job.name == "ossearch-classifier"
        assert job.created.year == 2016
        assert job.is_available
        assert job.status_description == "The classifier is Available"

    @pytest.mark.asyncio
    async def test_http_error(self, client, nlc):
        nlc.fail_with = 500
        with pytest.raises(TrainerError, match="HTTP 500"):
            await client.list_jobs()

    @pytest.mark.asyncio
    async def test_transport_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = NLCTrainerClient(
            url=BASE_URL, username="u", password="p", classifier_name="n",
            corpus_dir=tmp_path,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(TrainerError, match="connection refused"):
            await client.list_jobs()


class TestCurrentJob:
    @pytest.mark.asyncio
    async def test_prefers_available(self, client):
        job = await client.current_job()
        assert job.job_id == "c-old"

    @pytest.mark.asyncio
    async def test_falls_back_to_training(self, client, nlc):
        del nlc.classifiers["c-old"]
        assert (await client.current_job()).job_id == "c-new"

    @pytest.mark.asyncio
    async def test_none(self, client, nlc):
        nlc.classifiers = {}
        with pytest.raises(NoSelectedJobError):
            await client.current_job()


class TestSubmitAndCorpus:
    @pytest.mark.asyncio
    async def test_submit_posts_multipart(self, client, nlc):
        job = await client.submit_job("fish,/c1/a.jpg\n")
        assert job.job_id == "c-submitted"
        assert job.is_training

        body = nlc.requests[-1].content
        assert b'name="training_metadata"' in body
        assert b'"name": "ossearch-classifier"' in body
        assert b'name="training_data"' in body
        assert b"fish,/c1/a.jpg" in body

    @pytest.mark.asyncio
    async def test_corpus_retained_per_job(self, client, tmp_path):
        await client.submit_job("fish,/c1/a.jpg\nboat,/c1/a.jpg\n")
        assert (tmp_path / "corpus" / "c-submitted.csv").is_file()
        corpus = await client.get_corpus("c-submitted")
        assert corpus == {"/c1/a.jpg": ["fish", "boat"]}

    @pytest.mark.asyncio
    async def test_corpus_unavailable(self, client):
        with pytest.raises(CorpusUnavailableError):
            await client.get_corpus("c-old")

    @pytest.mark.asyncio
    async def test_rejects_path_like_job_id(self, client):
        with pytest.raises(TrainerError):
            await client.get_corpus("../etc/passwd")

    @pytest.mark.asyncio
    async def test_undecodable_corpus_unavailable(self, client, tmp_path):
        corpus_dir = tmp_path / "corpus"
        corpus_dir.mkdir()
        (corpus_dir / "c-old.csv").write_bytes(b"\xff\xfe\xfa,/c/x\n")
        with pytest.raises(CorpusUnavailableError, match="could not be read"):
            await client.get_corpus("c-old")

    @pytest.mark.asyncio
    async def test_unreadable_corpus_unavailable(self, client, tmp_path):
        await client.submit_job("fish,/c1/a.jpg\n")
        with patch.object(Path, "read_text", side_effect=PermissionError("denied")):
            with pytest.raises(CorpusUnavailableError, match="denied"):
                await client.get_corpus("c-submitted")

    @pytest.mark.asyncio
    async def test_submit_survives_corpus_write_failure(self, client, tmp_path, caplog):
        # A file where the corpus directory should be.
        (tmp_path / "corpus").write_text("not a directory")
        job = await client.submit_job("fish,/c1/a.jpg\n")
        assert job.job_id == "c-submitted"
        assert job.is_training
        assert "Unable to retain training data of job c-submitted" in caplog.text
        with pytest.raises(CorpusUnavailableError):
            await client.get_corpus("c-submitted")


class TestWatchAndClassify:
    @pytest.mark.asyncio
    async def test_watch_until_not_training(self, client, nlc):
        nlc.status_sequence = ["Training", "Training", "Available"]
        job = await client.watch_job("c-new")
        assert job.status == "Available"
        assert nlc.status_sequence == []

    @pytest.mark.asyncio
    async def test_classify(self, client, nlc):
        result = await client.classify("fish", "c-old")
        assert result.job_id == "c-old"
        assert result.top_class == "/c1/a.jpg"
        assert [(c.label, c.confidence) for c in result.classes] == [
            ("/c1/a.jpg", 0.8), ("/c1/b.jpg", 0.2),
        ]
        assert json.loads(nlc.requests[-1].content) == {"text": "fish"}

    @pytest.mark.asyncio
    async def test_classify_defaults_to_current_job(self, client):
        result = await client.classify("fish")
        assert result.job_id == "c-old"

    @pytest.mark.asyncio
    async def test_aclose_keeps_injected_client(self, client):
        await client.aclose()
        assert not client._client.is_closed
