# src/trainer/base_trainer.py — v1
"""Abstract trainer (classifier service) interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ossearch.core.models import ClassifyResult, TrainingJob


class BaseTrainerClient(ABC):
    """Unified interface for the classifier training back-end."""

    @abstractmethod
    async def list_jobs(self) -> list[TrainingJob]:
        """All jobs (classifiers) owned by this deployment, with status."""

    @abstractmethod
    async def get_job(self, job_id: str) -> TrainingJob:
        """Current state of one job."""

    @abstractmethod
    async def get_corpus(self, job_id: str) -> dict[str, list[str]]:
        """Corpus a job was trained with, as ``label -> [texts]``.

        Raises:
            CorpusUnavailableError: If the corpus can no longer be retrieved.
        """

    @abstractmethod
    async def submit_job(self, training_csv: str) -> TrainingJob:
        """Start training a new job from serialized training data."""

    @abstractmethod
    async def watch_job(self, job_id: str) -> TrainingJob:
        """Wait until the job leaves the Training status and return it."""

    @abstractmethod
    async def current_job(self) -> TrainingJob:
        """Job currently selected to serve classify requests.

        Raises:
            NoSelectedJobError: If no job exists yet.
        """

    @abstractmethod
    async def classify(self, text: str, job_id: str | None = None) -> ClassifyResult:
        """Classify text with the given job (default: the current job)."""

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        return None
