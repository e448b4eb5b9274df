# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides in-memory fakes for object storage, the trainer and a tag
generator, plus the reference storage / prior-labels scenario.
No external dependencies — all I/O is simulated.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from ossearch.core.errors import (
    ContainerNotFoundError,
    CorpusUnavailableError,
    NoSelectedJobError,
    ObjectNotFoundError,
    TagGenerationError,
    TrainerError,
)
from ossearch.core.models import (
    JOB_STATUS_AVAILABLE,
    JOB_STATUS_TRAINING,
    ClassifiedClass,
    ClassifyResult,
    ContainerRef,
    ObjectInfo,
    ObjectRef,
    TrainingJob,
    object_path,
)
from ossearch.engine.search_engine import SearchEngine
from ossearch.generators.base_generator import BaseTagGenerator
from ossearch.storage.base_object_store import BaseObjectStore
from ossearch.trainer.base_trainer import BaseTrainerClient
from ossearch.trainer.corpus import parse_corpus
from ossearch.trainer.selection import most_recent_job

JPEG = {"content-type": "image/jpeg"}
PDF = {"content-type": "application/pdf"}
TEXT = {"content-type": "text/plain; charset=utf-8"}

PRIOR_JOB_ID = "prior-job"
PRIOR_LABELS = {
    "/container1/Image1.jpg": ["fish", "boat"],
    "/container1/Image2.jpg": ["nfl", "football", "sport"],
    "/old_container/old_object.jpg": ["old", "object"],
}


# === FAKES ===


class FakeObjectStore(BaseObjectStore):
    """Containers held as ``{container: {object: metadata}}``."""

    def __init__(self, containers: dict[str, dict[str, dict[str, str]]] | None = None) -> None:
        self.containers = containers if containers is not None else {}
        self.contents: dict[str, bytes] = {}
        self.failing_containers: set[str] = set()
        self.failing_metadata: set[str] = set()
        self.metadata_calls: list[str] = []
        self.closed = False

    async def list_containers(self) -> list[ContainerRef]:
        return [ContainerRef(name=n, count=len(o)) for n, o in self.containers.items()]

    async def list_objects(self, container_name: str) -> list[ObjectRef]:
        if container_name in self.failing_containers:
            raise ContainerNotFoundError(f"Container {container_name} was not found.")
        return [
            ObjectRef(
                container_name=container_name,
                object_name=name,
                content_type=meta.get("content-type", ""),
            )
            for name, meta in self.containers[container_name].items()
        ]

    async def get_object_metadata(self, container_name: str, object_name: str) -> dict[str, str]:
        path = object_path(container_name, object_name)
        self.metadata_calls.append(path)
        # Yield so sibling workers interleave.
        await asyncio.sleep(0)
        if path in self.failing_metadata:
            raise ObjectNotFoundError(f"Unable to get metadata for {path}")
        return dict(self.containers[container_name][object_name])

    async def fetch_object(self, container_name: str, object_name: str) -> bytes:
        return self.contents.get(object_path(container_name, object_name), b"")

    async def aclose(self) -> None:
        self.closed = True


class FakeTrainer(BaseTrainerClient):
    """Trainer keeping jobs and corpora in memory.

    Submitted jobs start in ``submit_status``; watch_job flips them to
    Available once ``watch_gate`` (if any) is set.
    """

    def __init__(
        self,
        jobs: list[TrainingJob] | None = None,
        corpora: dict[str, dict[str, list[str]]] | None = None,
    ) -> None:
        self.jobs = list(jobs or [])
        self.corpora = dict(corpora or {})
        self.submitted: list[str] = []
        self.submit_status = JOB_STATUS_TRAINING
        self.list_jobs_error: Exception | None = None
        self.watch_error: Exception | None = None
        self.watch_gate: asyncio.Event | None = None
        self.classify_error: Exception | None = None
        self.classify_calls: list[tuple[str, str | None]] = []
        self.list_jobs_calls = 0
        self.closed = False

    async def list_jobs(self) -> list[TrainingJob]:
        self.list_jobs_calls += 1
        await asyncio.sleep(0)
        if self.list_jobs_error is not None:
            raise self.list_jobs_error
        return list(self.jobs)

    async def get_job(self, job_id: str) -> TrainingJob:
        for job in self.jobs:
            if job.job_id == job_id:
                return job
        raise TrainerError(f"Unknown job {job_id}")

    async def get_corpus(self, job_id: str) -> dict[str, list[str]]:
        if job_id not in self.corpora:
            raise CorpusUnavailableError(f"No training data retained for job {job_id}")
        return {label: list(texts) for label, texts in self.corpora[job_id].items()}

    async def submit_job(self, training_csv: str) -> TrainingJob:
        self.submitted.append(training_csv)
        job = TrainingJob(
            job_id=f"job-{len(self.submitted)}",
            name="ossearch-classifier",
            created=datetime.now(timezone.utc),
            status=self.submit_status,
        )
        self.jobs.append(job)
        self.corpora[job.job_id] = parse_corpus(training_csv)
        return job

    async def watch_job(self, job_id: str) -> TrainingJob:
        if self.watch_gate is not None:
            await self.watch_gate.wait()
        if self.watch_error is not None:
            raise self.watch_error
        job = await self.get_job(job_id)
        finished = job.model_copy(update={"status": JOB_STATUS_AVAILABLE})
        self.jobs = [finished if j.job_id == job_id else j for j in self.jobs]
        return finished

    async def current_job(self) -> TrainingJob:
        job = (
            most_recent_job(self.jobs, [JOB_STATUS_AVAILABLE])
            or most_recent_job(self.jobs, [JOB_STATUS_TRAINING])
        )
        if job is None:
            raise NoSelectedJobError("No classifiers found")
        return job

    async def classify(self, text: str, job_id: str | None = None) -> ClassifyResult:
        self.classify_calls.append((text, job_id))
        if self.classify_error is not None:
            raise self.classify_error
        return ClassifyResult(
            job_id=job_id or (await self.current_job()).job_id,
            text=text,
            top_class="/container1/Image1.jpg",
            classes=[
                ClassifiedClass(label="/container1/Image1.jpg", confidence=0.9),
                ClassifiedClass(label="/container1/Image2.jpg", confidence=0.1),
            ],
        )

    async def aclose(self) -> None:
        self.closed = True


class FakeTagGenerator(BaseTagGenerator):
    """Returns the same tags for every supported object."""

    name = "fake"

    def __init__(
        self,
        content_types: tuple[str, ...] = ("image/jpeg", "application/pdf", "text/plain"),
        tags: list[str] | None = None,
    ) -> None:
        self._content_types = frozenset(content_types)
        self.tags = tags if tags is not None else [f"tag {i}" for i in range(1, 6)]
        self.failing_paths: set[str] = set()
        self.fail_all = False
        self.calls: list[str] = []
        self.closed = False

    @classmethod
    def from_settings(cls, settings, store) -> FakeTagGenerator:
        return cls()

    @property
    def supported_content_types(self) -> frozenset[str]:
        return self._content_types

    async def _generate(self, object_info: ObjectInfo) -> list[str]:
        self.calls.append(object_info.path)
        await asyncio.sleep(0)
        if self.fail_all or object_info.path in self.failing_paths:
            raise TagGenerationError(f"Tagging failed for {object_info.path}")
        return list(self.tags)

    async def aclose(self) -> None:
        self.closed = True


def make_job(job_id: str, status: str, day: int) -> TrainingJob:
    return TrainingJob(
        job_id=job_id,
        name="ossearch-classifier",
        created=datetime(2016, 10, day, tzinfo=timezone.utc),
        status=status,
    )


# === FIXTURES ===


@pytest.fixture
def job_factory():
    """Build TrainingJob instances: job_factory(job_id, status, day)."""
    return make_job


@pytest.fixture
def storage_containers() -> dict[str, dict[str, dict[str, str]]]:
    """Six supported objects in two containers."""
    return {
        "container1": {
            "Image1.jpg": dict(JPEG),
            "Image2.jpg": dict(JPEG),
            "Image3.jpg": dict(JPEG),
        },
        "container2": {
            "Doc 1.txt": dict(TEXT),
            "Doc 2.pdf": dict(PDF),
            "blog.pdf": dict(PDF),
        },
    }


@pytest.fixture
def fake_store(storage_containers) -> FakeObjectStore:
    return FakeObjectStore(storage_containers)


@pytest.fixture
def empty_trainer() -> FakeTrainer:
    """Trainer that has never trained anything."""
    return FakeTrainer()


@pytest.fixture
def fake_trainer() -> FakeTrainer:
    """Trainer whose most recent Available job knows PRIOR_LABELS."""
    prior = make_job(PRIOR_JOB_ID, JOB_STATUS_AVAILABLE, 1)
    return FakeTrainer(
        jobs=[prior],
        corpora={PRIOR_JOB_ID: {k: list(v) for k, v in PRIOR_LABELS.items()}},
    )


@pytest.fixture
def fake_generator() -> FakeTagGenerator:
    return FakeTagGenerator()


@pytest.fixture
def engine(fake_store, fake_trainer, fake_generator) -> SearchEngine:
    """Engine over the reference scenario."""
    return SearchEngine(fake_store, fake_trainer, [fake_generator])


@pytest.fixture
def fresh_engine(fake_store, empty_trainer, fake_generator) -> SearchEngine:
    """Engine whose trainer has no jobs yet."""
    return SearchEngine(fake_store, empty_trainer, [fake_generator])


@pytest.fixture
def generator_factory():
    """The FakeTagGenerator class, for tests needing extra generators."""
    return FakeTagGenerator


@pytest.fixture
def trainer_factory():
    """The FakeTrainer class, for tests building their own trainer."""
    return FakeTrainer
