# src/trainer/selection.py — v1
"""Selection rules over the trainer's job list."""

from __future__ import annotations

from collections.abc import Iterable

from ossearch.core.models import JOB_STATUS_AVAILABLE, JOB_STATUS_TRAINING, TrainingJob

# Jobs whose corpus reflects what the classifier knows (or is learning).
INDEXED_STATUSES = frozenset({JOB_STATUS_TRAINING, JOB_STATUS_AVAILABLE})


def most_recent_job(
    jobs: Iterable[TrainingJob], statuses: Iterable[str],
) -> TrainingJob | None:
    """Most recently created job with one of the given statuses."""
    wanted = set(statuses)
    candidates = [j for j in jobs if j.status in wanted]
    if not candidates:
        return None
    return max(candidates, key=lambda j: j.created)


def select_indexed_job(jobs: Iterable[TrainingJob]) -> TrainingJob | None:
    """The job a scan diffs against and status is reconstructed from."""
    return most_recent_job(jobs, INDEXED_STATUSES)


def any_training(jobs: Iterable[TrainingJob]) -> bool:
    return any(j.is_training for j in jobs)
