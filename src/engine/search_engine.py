# src/engine/search_engine.py — v1
"""Scan / diff / index orchestration engine.

The engine keeps the trainer's set of known objects in sync with
object storage:
  1. scan()     → diff storage content against the corpus of the most
                  recent Training/Available job
  2. index()    → tag added objects, reuse labels of unchanged ones,
                  submit the corpus as a new training job
  3. classify() → search with the current job
A run-state gate allows one scan or index at a time. Expected
limitations come back as summaries with a false flag; only unexpected
failures raise, always after the gate is reopened.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ossearch.core.errors import NoSelectedJobError, TrainerError, TrainingNotStartedError
from ossearch.core.models import (
    AddedObject,
    ClassifyResult,
    ClassifySummary,
    EngineStatus,
    IndexResult,
    IndexSummary,
    ObjectInfo,
    ObjectRef,
    RunState,
    ScanResult,
    ScanSummary,
    TrainingJob,
)
from ossearch.engine.fanout import run_bounded
from ossearch.engine.messages import message
from ossearch.logging.context import log_context
from ossearch.trainer.corpus import serialize_corpus
from ossearch.trainer.selection import any_training, select_indexed_job

if TYPE_CHECKING:
    from ossearch.generators.base_generator import BaseTagGenerator
    from ossearch.storage.base_object_store import BaseObjectStore
    from ossearch.trainer.base_trainer import BaseTrainerClient

logger = logging.getLogger(__name__)

# Called once when a submitted job leaves the Training status.
# Receives (final job, None) on success or (None, error) on failure.
OnComplete = Callable[
    [TrainingJob | None, BaseException | None], Awaitable[None] | None,
]

DEFAULT_SCAN_PARALLELISM = 10
DEFAULT_INDEX_PARALLELISM = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SearchEngine:
    """Stateful orchestrator over a store, a trainer and tag generators.

    Args:
        store: Object storage to index.
        trainer: Classifier training back-end.
        generators: Enabled tag generators.
        scan_parallelism: Objects of one container inspected concurrently.
        index_parallelism: Added objects tagged concurrently.
    """

    def __init__(
        self,
        store: BaseObjectStore,
        trainer: BaseTrainerClient,
        generators: list[BaseTagGenerator],
        scan_parallelism: int = DEFAULT_SCAN_PARALLELISM,
        index_parallelism: int = DEFAULT_INDEX_PARALLELISM,
    ) -> None:
        if scan_parallelism < 1 or index_parallelism < 1:
            raise ValueError("Parallelism limits must be >= 1")

        self._store = store
        self._trainer = trainer
        self._generators = list(generators)
        self._scan_parallelism = scan_parallelism
        self._index_parallelism = index_parallelism

        self.run_state = RunState.IDLE
        self.status = EngineStatus()
        self.scan_result: ScanResult | None = None
        self.index_result: IndexResult | None = None
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._pending_callbacks: dict[str, OnComplete | None] = {}

    @property
    def generators(self) -> list[BaseTagGenerator]:
        return list(self._generators)

    def _supporting_generators(self, info: ObjectInfo) -> list[BaseTagGenerator]:
        return [g for g in self._generators if g.supports(info)]

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def scan(self) -> ScanSummary:
        """Diff object storage against the trainer's last known corpus.

        Returns:
            ScanSummary; ``scan_completed`` is False when the engine is busy.

        Raises:
            TrainerError / StorageError: If the job list or container
                list cannot be obtained.
        """
        if self.run_state is RunState.SCANNING:
            return ScanSummary(
                scan_completed=False,
                description=message("scan.in_progress"),
                reason="scan-in-progress",
            )
        if self.run_state is RunState.INDEXING:
            return ScanSummary(
                scan_completed=False,
                description=message("scan.blocked_by_index"),
                reason="blocked-by-index",
            )

        # Gate is closed before the first await.
        self.run_state = RunState.SCANNING
        with log_context(operation="scan"):
            try:
                logger.info("Starting object storage scan")
                self.status.scan_started_at = _now()
                self.scan_result = None
                result = await self._scan()
                self.scan_result = result
            except Exception:
                logger.exception("Object storage scan failed")
                raise
            finally:
                self.run_state = RunState.IDLE

        if result.total_changes:
            description = message(
                "scan.completed.changes",
                additions=result.additions, deletions=result.deletions,
            )
        else:
            description = message("scan.completed.no_changes")
        logger.info(
            "Scan complete: %d added, %d deleted, %d unchanged",
            result.additions, result.deletions, result.unchanged,
        )
        return ScanSummary(
            scan_completed=True,
            description=description,
            additions=result.additions,
            deletions=result.deletions,
            total_changes=result.total_changes,
            unchanged=result.unchanged,
        )

    async def _scan(self) -> ScanResult:
        jobs = await self._trainer.list_jobs()
        prior_labels = await self._prior_labels(select_indexed_job(jobs))
        result = ScanResult(prior_labels=prior_labels)

        containers = await self._store.list_containers()
        for container in containers:
            with log_context(object_path=f"/{container.name}"):
                try:
                    objects = await self._store.list_objects(container.name)
                except Exception:
                    logger.exception("Unable to list container %s; skipping it", container.name)
                    self._keep_prior_labels(container.name, result)
                    continue

            failed = await run_bounded(
                objects,
                self._scan_parallelism,
                lambda obj: self._scan_object(obj, result),
                describe=lambda obj: obj.path,
            )
            if failed:
                logger.warning(
                    "%d object(s) of container %s could not be inspected",
                    failed, container.name,
                )

        unchanged = set(result.unchanged_paths)
        result.deleted_paths = [p for p in prior_labels if p not in unchanged]
        return result

    @staticmethod
    def _keep_prior_labels(container_name: str, result: ScanResult) -> None:
        """Carry the known objects of an unlisted container over as unchanged."""
        prefix = f"/{container_name}/"
        kept = [p for p in result.prior_labels if p.startswith(prefix)]
        if kept:
            logger.warning(
                "Keeping %d indexed object(s) of container %s unchanged",
                len(kept), container_name,
            )
            result.unchanged_paths.extend(kept)

    async def _prior_labels(self, job: TrainingJob | None) -> dict[str, list[str]]:
        """Labels of the job to diff against, or {} when there is none."""
        if job is None:
            logger.info("No indexed job found; every supported object is an addition")
            return {}
        try:
            labels = await self._trainer.get_corpus(job.job_id)
        except TrainerError:
            logger.warning(
                "Training data of job %s is unavailable; every supported object "
                "is an addition", job.job_id, exc_info=True,
            )
            return {}
        logger.debug("Diffing against job %s (%d labels)", job.job_id, len(labels))
        return labels

    async def _scan_object(self, obj: ObjectRef, result: ScanResult) -> None:
        with log_context(object_path=obj.path):
            if obj.path in result.prior_labels:
                result.unchanged_paths.append(obj.path)
                return

            metadata = await self._store.get_object_metadata(
                obj.container_name, obj.object_name,
            )
            info = ObjectInfo(
                container_name=obj.container_name,
                object_name=obj.object_name,
                metadata=metadata,
            )
            if not self._supporting_generators(info):
                logger.debug(
                    "No tag generator supports %s (%s)",
                    obj.path, info.content_type or "unknown type",
                )
                return

            result.added_objects.append(AddedObject(
                path=obj.path,
                container_name=obj.container_name,
                object_name=obj.object_name,
                metadata=metadata,
            ))

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    async def index(self, on_complete: OnComplete | None = None) -> IndexSummary:
        """Build a corpus from the last scan and start training it.

        Returns as soon as the trainer confirms the job is training;
        ``on_complete`` is invoked once when training ends.

        Args:
            on_complete: Optional sync or async callable ``(job, error)``.

        Returns:
            IndexSummary; ``training_started`` is False for limitations.

        Raises:
            TrainerError: If the trainer cannot be reached or the new job
                did not enter the Training status.
        """
        if self.run_state is RunState.SCANNING:
            return IndexSummary(
                training_started=False,
                description=message("index.blocked_by_scan"),
                reason="blocked-by-scan",
            )
        if self.run_state is RunState.INDEXING:
            return IndexSummary(
                training_started=False,
                description=message("index.in_progress"),
                reason="index-in-progress",
            )
        if self.scan_result is None:
            return IndexSummary(
                training_started=False,
                description=message("index.must_scan_first"),
                reason="must-scan-first",
            )
        if self.scan_result.total_changes == 0:
            return IndexSummary(
                training_started=False,
                description=message("index.no_changes"),
                reason="no-changes",
            )

        self.run_state = RunState.INDEXING
        with log_context(operation="index"):
            try:
                logger.info("Starting object storage index")
                self.status.index_started_at = _now()
                self.index_result = IndexResult()
                return await self._index(self.scan_result, self.index_result, on_complete)
            except Exception:
                logger.exception("Object storage indexing failed")
                raise
            finally:
                self.index_result = None
                self.run_state = RunState.IDLE

    async def _index(
        self,
        scan_result: ScanResult,
        index_result: IndexResult,
        on_complete: OnComplete | None,
    ) -> IndexSummary:
        # The trainer runs a single job at a time.
        if any_training(await self._trainer.list_jobs()):
            logger.info("A job is already training; indexing not started")
            return IndexSummary(
                training_started=False,
                description=message("index.already_training"),
                reason="already-training",
            )

        failed = await run_bounded(
            scan_result.added_objects,
            self._index_parallelism,
            lambda added: self._index_object(added, index_result),
            describe=lambda added: added.path,
        )
        if failed:
            logger.warning("%d added object(s) could not be tagged and were skipped", failed)

        for path in scan_result.unchanged_paths:
            for text in scan_result.prior_labels.get(path, []):
                index_result.corpus.append((text, path))

        training_csv = serialize_corpus(index_result.corpus)
        if not training_csv:
            logger.warning("Indexing produced no training data; nothing submitted")
            return IndexSummary(
                training_started=False,
                description=message("index.empty_corpus"),
                reason="empty-corpus",
            )

        logger.info("Submitting %d training row(s)", len(index_result.corpus))
        job = await self._trainer.submit_job(training_csv)
        if not job.is_training:
            raise TrainingNotStartedError(
                f"Job {job.job_id} did not start training (status: {job.status})"
            )

        index_result.training_started = True
        index_result.description = message("index.training_started")
        index_result.job_id = job.job_id

        # A new scan is required before the next index.
        self.scan_result = None
        self._watch_in_background(job.job_id, on_complete)

        logger.info("Training started for job %s", job.job_id)
        return IndexSummary(
            training_started=True,
            description=index_result.description,
            job_id=job.job_id,
        )

    async def _index_object(self, added: AddedObject, index_result: IndexResult) -> None:
        """Run every supporting generator in turn; all must succeed."""
        info = added.to_object_info()
        with log_context(object_path=added.path):
            tags: list[str] = []
            for generator in self._supporting_generators(info):
                tag_result = await generator.generate_tags(info)
                tags.extend(tag_result.tags)
            logger.debug("%d tag(s) for %s", len(tags), added.path)
            index_result.corpus.extend((tag, added.path) for tag in tags)

    # ------------------------------------------------------------------
    # Training watch
    # ------------------------------------------------------------------

    def _watch_in_background(self, job_id: str, on_complete: OnComplete | None) -> None:
        self._pending_callbacks[job_id] = on_complete
        task = asyncio.create_task(
            self._watch_training(job_id), name=f"train-watch-{job_id}",
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _watch_training(self, job_id: str) -> None:
        with log_context(operation="train-watch", job_id=job_id):
            try:
                job = await self._trainer.watch_job(job_id)
            except asyncio.CancelledError as e:
                logger.warning("Watch of job %s was cancelled", job_id)
                await self._finish_watch(job_id, None, e)
                raise
            except Exception as e:
                logger.exception("Error while watching training of job %s", job_id)
                await self._finish_watch(job_id, None, e)
                return

            logger.info("Training of job %s finished with status %s", job_id, job.status)
            await self._finish_watch(job_id, job, None)

    async def _finish_watch(
        self,
        job_id: str,
        job: TrainingJob | None,
        error: BaseException | None,
    ) -> None:
        """Invoke the completion callback of a watch; a second call is a no-op."""
        if job_id not in self._pending_callbacks:
            return
        on_complete = self._pending_callbacks.pop(job_id)
        if on_complete is None:
            return
        try:
            outcome = on_complete(job, error)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Training completion callback failed")

    async def wait_for_background_tasks(self) -> None:
        """Wait until every outstanding training watch has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Classify / status
    # ------------------------------------------------------------------

    async def classify(self, text: str, include_training_data: bool = False) -> ClassifySummary:
        """Classify a search string into object paths.

        Args:
            text: Search string.
            include_training_data: Attach each class's training texts.

        Raises:
            ValueError: If ``text`` is empty.
            TrainerError: If the classify request fails.
        """
        if not text or not text.strip():
            raise ValueError("Missing search string")

        with log_context(operation="classify"):
            try:
                job = await self._trainer.current_job()
            except NoSelectedJobError:
                logger.warning("Search attempted before object storage was indexed")
                return ClassifySummary(
                    search_successful=False,
                    description=message("classify.never_indexed"),
                    reason="never-indexed",
                )

            if job.is_training:
                return ClassifySummary(
                    search_successful=False,
                    description=message("classify.still_training"),
                    reason="still-training",
                )

            with log_context(job_id=job.job_id):
                try:
                    result = await self._trainer.classify(text, job.job_id)
                except Exception:
                    logger.exception("Classify failed for search string %r", text)
                    raise

                if include_training_data:
                    await self._attach_training_data(result)

        return ClassifySummary(
            search_successful=True,
            description=message("classify.successful"),
            classify_result=result,
        )

    async def _attach_training_data(self, result: ClassifyResult) -> None:
        """Add training texts to each class; results stay usable without them."""
        try:
            corpus = await self._trainer.get_corpus(result.job_id)
        except TrainerError:
            logger.warning(
                "Training data of job %s is unavailable; search results will "
                "not include it", result.job_id, exc_info=True,
            )
            return

        for item in result.classes:
            texts = corpus.get(item.label)
            if texts:
                item.training_data = list(texts)
            else:
                logger.warning("No training data found for class %s", item.label)

    async def get_status(self) -> EngineStatus:
        """When the last scan and index started.

        After a restart the values are estimated from the creation time
        of the most recent Training/Available job.
        """
        if self.status.index_started_at is None:
            with log_context(operation="status"):
                job = select_indexed_job(await self._trainer.list_jobs())
                if job is not None:
                    logger.debug("Estimating status from job %s", job.job_id)
                    self.status.index_started_at = job.created
                    if self.status.scan_started_at is None:
                        self.status.scan_started_at = job.created
        return self.status.model_copy()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Stop outstanding watches and release every client."""
        for task in list(self._background_tasks):
            task.cancel()
        await self.wait_for_background_tasks()
        # Watches cancelled before they started never reached their callback.
        for job_id in list(self._pending_callbacks):
            await self._finish_watch(
                job_id, None, asyncio.CancelledError(f"Engine closed while job {job_id} was training"),
            )

        for generator in self._generators:
            await generator.aclose()
        await self._trainer.aclose()
        await self._store.aclose()
