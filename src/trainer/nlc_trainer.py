# src/trainer/nlc_trainer.py — v1
"""Natural Language Classifier REST client.

Each training job is a classifier named after NLC_CLASSIFIER_NAME; other
classifiers on the same service instance are ignored. The service does
not hand training data back, so every submitted corpus is retained
under CORPUS_DIR as ``<classifier_id>.csv``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from ossearch.core.errors import CorpusUnavailableError, NoSelectedJobError, TrainerError
from ossearch.core.models import (
    JOB_STATUS_AVAILABLE,
    JOB_STATUS_TRAINING,
    ClassifiedClass,
    ClassifyResult,
    TrainingJob,
)
from ossearch.trainer.base_trainer import BaseTrainerClient
from ossearch.trainer.corpus import parse_corpus
from ossearch.trainer.selection import most_recent_job

if TYPE_CHECKING:
    from ossearch.config.settings import Settings

logger = logging.getLogger(__name__)


class NLCTrainerClient(BaseTrainerClient):
    """Trainer backed by a Natural Language Classifier service instance."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        classifier_name: str,
        language: str = "en",
        corpus_dir: Path | str = Path("~/.ossearch/corpus"),
        poll_interval_seconds: float = 30.0,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._auth = httpx.BasicAuth(username, password)
        self._classifier_name = classifier_name
        self._language = language
        self._corpus_dir = Path(corpus_dir).expanduser()
        self._poll_interval = poll_interval_seconds

        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings) -> NLCTrainerClient:
        return cls(
            url=settings.nlc_url,
            username=settings.nlc_username,
            password=settings.nlc_password,
            classifier_name=settings.nlc_classifier_name,
            language=settings.nlc_language,
            corpus_dir=settings.corpus_dir,
            poll_interval_seconds=settings.training_poll_interval_seconds,
            timeout=settings.http_timeout_seconds,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, auth=self._auth, **kwargs)
        except httpx.HTTPError as e:
            raise TrainerError(f"{method} {path} failed: {e}") from e
        if response.status_code >= 400:
            raise TrainerError(
                f"{method} {path} failed: HTTP {response.status_code} {response.text[:200]}"
            )
        return response

    @staticmethod
    def _to_job(data: dict[str, Any]) -> TrainingJob:
        return TrainingJob(
            job_id=data["classifier_id"],
            name=data.get("name", ""),
            language=data.get("language", "en"),
            created=data["created"],
            status=data.get("status", "Unavailable"),
            status_description=data.get("status_description", ""),
            url=data.get("url", ""),
        )

    def _corpus_path(self, job_id: str) -> Path:
        if "/" in job_id or job_id in ("", ".", ".."):
            raise TrainerError(f"Invalid job id: {job_id!r}")
        return self._corpus_dir / f"{job_id}.csv"

    @staticmethod
    def _read_corpus(path: Path) -> str | None:
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    @staticmethod
    def _write_corpus(path: Path, training_csv: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(training_csv, encoding="utf-8")

    # --- BaseTrainerClient ---

    async def list_jobs(self) -> list[TrainingJob]:
        response = await self._request("GET", "/v1/classifiers")
        entries = [
            c for c in response.json().get("classifiers", [])
            if c.get("name") == self._classifier_name
        ]
        # The list endpoint omits status; fetch each classifier for it.
        jobs = await asyncio.gather(*(self.get_job(c["classifier_id"]) for c in entries))
        logger.debug("Trainer reports %d job(s) for '%s'", len(jobs), self._classifier_name)
        return list(jobs)

    async def get_job(self, job_id: str) -> TrainingJob:
        response = await self._request("GET", f"/v1/classifiers/{job_id}")
        return self._to_job(response.json())

    async def get_corpus(self, job_id: str) -> dict[str, list[str]]:
        path = self._corpus_path(job_id)
        try:
            data = await asyncio.to_thread(self._read_corpus, path)
        except (OSError, UnicodeDecodeError) as e:
            raise CorpusUnavailableError(
                f"Training data of job {job_id} could not be read: {e}"
            ) from e
        if data is None:
            raise CorpusUnavailableError(f"No training data retained for job {job_id}")
        return parse_corpus(data)

    async def submit_job(self, training_csv: str) -> TrainingJob:
        metadata = json.dumps({"language": self._language, "name": self._classifier_name})
        files = {
            "training_metadata": ("training_metadata.json", metadata, "application/json"),
            "training_data": ("training_data.csv", training_csv, "text/csv"),
        }
        response = await self._request("POST", "/v1/classifiers", files=files)
        job = self._to_job(response.json())
        logger.info("Submitted training job %s (status: %s)", job.job_id, job.status)

        # The job is already accepted at this point.
        try:
            await asyncio.to_thread(self._write_corpus, self._corpus_path(job.job_id), training_csv)
        except (OSError, TrainerError):
            logger.error(
                "Unable to retain training data of job %s", job.job_id, exc_info=True,
            )
        return job

    async def watch_job(self, job_id: str) -> TrainingJob:
        while True:
            job = await self.get_job(job_id)
            if not job.is_training:
                return job
            logger.debug("Job %s still training, next check in %.0fs", job_id, self._poll_interval)
            await asyncio.sleep(self._poll_interval)

    async def current_job(self) -> TrainingJob:
        jobs = await self.list_jobs()
        job = (
            most_recent_job(jobs, [JOB_STATUS_AVAILABLE])
            or most_recent_job(jobs, [JOB_STATUS_TRAINING])
        )
        if job is None:
            raise NoSelectedJobError("No classifiers found")
        return job

    async def classify(self, text: str, job_id: str | None = None) -> ClassifyResult:
        if job_id is None:
            job_id = (await self.current_job()).job_id
        response = await self._request(
            "POST", f"/v1/classifiers/{job_id}/classify", json={"text": text},
        )
        data = response.json()
        return ClassifyResult(
            job_id=data.get("classifier_id", job_id),
            text=data.get("text", text),
            top_class=data.get("top_class"),
            classes=[
                ClassifiedClass(label=c["class_name"], confidence=c.get("confidence", 0.0))
                for c in data.get("classes", [])
            ],
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
