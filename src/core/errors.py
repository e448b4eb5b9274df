# src/core/errors.py — v1
"""Exception hierarchy shared by the engine and its collaborators.

Only unexpected conditions are raised. Expected limitations (busy
engine, nothing to index, classifier still training...) are reported
as summaries with a false status flag, never as exceptions.
"""

from __future__ import annotations


class OSSearchError(Exception):
    """Base class for all ossearch errors."""


class EngineInitializationError(OSSearchError):
    """The engine cannot be built from the given configuration."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        self.missing = list(missing or [])
        super().__init__(message)


# --- Storage ---


class StorageError(OSSearchError):
    """Object storage request failed."""


class StorageAuthError(StorageError):
    """Could not obtain a token or endpoint for object storage."""


class ContainerNotFoundError(StorageError):
    """Container listing returned something other than a listing."""


class ObjectNotFoundError(StorageError):
    """Object (or its metadata) could not be retrieved."""


# --- Trainer ---


class TrainerError(OSSearchError):
    """Classifier service request failed."""


class CorpusUnavailableError(TrainerError):
    """Training corpus for a job is no longer available."""


class NoSelectedJobError(TrainerError):
    """No classifier exists that could serve classify requests."""


class TrainingNotStartedError(TrainerError):
    """A submitted job did not enter the Training status."""


# --- Tag generation ---


class TagGenerationError(OSSearchError):
    """A tag generator failed for one object."""


class UnsupportedObjectError(TagGenerationError):
    """Object content type is not handled by the generator."""
