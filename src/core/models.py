# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


# === ENGINE STATE ===


class RunState(str, Enum):
    """Engine activity. Scan and index are only accepted while IDLE."""

    IDLE = "idle"
    SCANNING = "scanning"
    INDEXING = "indexing"


class EngineStatus(BaseModel):
    """When the last scan/index started.

    Reconstructed from the trainer's most recent job after a restart,
    in which case both values are estimates.
    """

    scan_started_at: datetime | None = None
    index_started_at: datetime | None = None


# === OBJECT STORAGE ===


def object_path(container_name: str, object_name: str) -> str:
    """Unique identifier of an object: '/<container>/<object>'."""
    return f"/{container_name}/{object_name}"


def normalize_content_type(raw: str | None) -> str:
    """Lowercased media type without parameters ('Text/HTML; charset=x' -> 'text/html')."""
    if not raw or not isinstance(raw, str):
        return ""
    return raw.lower().split(";")[0].strip()


class ContainerRef(BaseModel):
    """A container (bucket) as returned by a storage listing."""

    name: str
    count: int = 0
    size_bytes: int = 0


class ObjectRef(BaseModel):
    """An object as returned by a container listing."""

    container_name: str
    object_name: str
    size_bytes: int = 0
    content_type: str = ""
    last_modified: str | None = None

    @property
    def path(self) -> str:
        return object_path(self.container_name, self.object_name)


class ObjectInfo(BaseModel):
    """Input handed to tag generators: object identity plus its metadata headers."""

    container_name: str
    object_name: str
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def path(self) -> str:
        return object_path(self.container_name, self.object_name)

    @property
    def content_type(self) -> str:
        return normalize_content_type(self.metadata.get("content-type"))


class TagResult(BaseModel):
    """Output of one tag generator for one object."""

    object_info: ObjectInfo
    tags: list[str] = Field(default_factory=list)


# === SCAN / INDEX CYCLE ===


class AddedObject(BaseModel):
    """An object found in storage that the trainer does not know yet."""

    path: str
    container_name: str
    object_name: str
    metadata: dict[str, str] = Field(default_factory=dict)

    def to_object_info(self) -> ObjectInfo:
        return ObjectInfo(
            container_name=self.container_name,
            object_name=self.object_name,
            metadata=self.metadata,
        )


class ScanResult(BaseModel):
    """Diff between the trainer's last corpus and current storage content.

    added_objects, deleted_paths and unchanged_paths are disjoint by path.
    Every key of prior_labels is either deleted or unchanged.
    """

    added_objects: list[AddedObject] = Field(default_factory=list)
    deleted_paths: list[str] = Field(default_factory=list)
    unchanged_paths: list[str] = Field(default_factory=list)
    prior_labels: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def additions(self) -> int:
        return len(self.added_objects)

    @property
    def deletions(self) -> int:
        return len(self.deleted_paths)

    @property
    def unchanged(self) -> int:
        return len(self.unchanged_paths)

    @property
    def total_changes(self) -> int:
        return self.additions + self.deletions


class IndexResult(BaseModel):
    """Accumulator for one indexing cycle."""

    training_started: bool = False
    description: str = ""
    corpus: list[tuple[str, str]] = Field(default_factory=list)
    job_id: str | None = None


# === TRAINER ===

JOB_STATUS_TRAINING = "Training"
JOB_STATUS_AVAILABLE = "Available"


class TrainingJob(BaseModel):
    """One classifier known to the trainer."""

    job_id: str
    name: str = ""
    language: str = "en"
    created: datetime
    status: str
    status_description: str = ""
    url: str = ""

    @property
    def is_training(self) -> bool:
        return self.status == JOB_STATUS_TRAINING

    @property
    def is_available(self) -> bool:
        return self.status == JOB_STATUS_AVAILABLE


class ClassifiedClass(BaseModel):
    """One candidate label (object path) with its confidence."""

    label: str
    confidence: float
    training_data: list[str] | None = None


class ClassifyResult(BaseModel):
    """Classifier response for one text."""

    job_id: str
    text: str
    top_class: str | None = None
    classes: list[ClassifiedClass] = Field(default_factory=list)


# === CALLER-FACING SUMMARIES ===

ScanReason = Literal["scan-in-progress", "blocked-by-index"]
IndexReason = Literal[
    "blocked-by-scan",
    "index-in-progress",
    "must-scan-first",
    "no-changes",
    "already-training",
    "empty-corpus",
]
ClassifyReason = Literal["never-indexed", "still-training"]


class ScanSummary(BaseModel):
    """Return value of SearchEngine.scan(). Check scan_completed."""

    scan_completed: bool
    description: str
    reason: ScanReason | None = None
    additions: int = 0
    deletions: int = 0
    total_changes: int = 0
    unchanged: int = 0


class IndexSummary(BaseModel):
    """Return value of SearchEngine.index(). Check training_started."""

    training_started: bool
    description: str
    reason: IndexReason | None = None
    job_id: str | None = None


class ClassifySummary(BaseModel):
    """Return value of SearchEngine.classify(). Check search_successful."""

    search_successful: bool
    description: str
    reason: ClassifyReason | None = None
    classify_result: ClassifyResult | None = None
