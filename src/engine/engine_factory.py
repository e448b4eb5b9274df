# src/engine/engine_factory.py — v1
"""Factory: build a ready-to-use SearchEngine from settings."""

from __future__ import annotations

import logging

from ossearch.config.settings import Settings, load_settings, missing_engine_settings
from ossearch.core.errors import EngineInitializationError
from ossearch.engine.search_engine import SearchEngine
from ossearch.generators.registry import UnsupportedGeneratorError, build_generators
from ossearch.storage.store_factory import create_object_store
from ossearch.trainer.nlc_trainer import NLCTrainerClient

logger = logging.getLogger(__name__)


def create_engine(settings: Settings | None = None) -> SearchEngine:
    """Validate settings and wire store, trainer and generators together.

    Args:
        settings: Application settings (loaded from .env when omitted).

    Raises:
        EngineInitializationError: If required settings are missing,
            a configured generator is unknown, or no generator is usable.
    """
    settings = settings or load_settings()

    missing = missing_engine_settings(settings)
    if missing:
        raise EngineInitializationError(
            f"Missing required settings: {', '.join(missing)}", missing=missing,
        )

    store = create_object_store(settings)
    try:
        generators = build_generators(settings, store)
    except UnsupportedGeneratorError as e:
        raise EngineInitializationError(str(e)) from e
    if not generators:
        raise EngineInitializationError(
            "No tag generators are configured. Check TAG_GENERATORS and the "
            "settings of each generator."
        )

    trainer = NLCTrainerClient.from_settings(settings)
    logger.info(
        "Search engine ready: %s storage, generators [%s]",
        settings.storage_backend, ", ".join(g.name for g in generators),
    )
    return SearchEngine(
        store=store,
        trainer=trainer,
        generators=generators,
        scan_parallelism=settings.scan_object_parallelism,
        index_parallelism=settings.index_object_parallelism,
    )
