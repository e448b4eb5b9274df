# src/generators/registry.py — v1
"""Static tag generator registry.

Generators are registered explicitly by name and instantiated from
settings at engine construction time; TAG_GENERATORS selects which
ones are enabled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ossearch.generators.base_generator import BaseTagGenerator
from ossearch.generators.doc_generator import DocumentTagGenerator
from ossearch.generators.image_generator import ImageTagGenerator

if TYPE_CHECKING:
    from ossearch.config.settings import Settings
    from ossearch.storage.base_object_store import BaseObjectStore

logger = logging.getLogger(__name__)

# Registry maps generator name → generator class.
_GENERATOR_REGISTRY: dict[str, type[BaseTagGenerator]] = {}


def _register_defaults() -> None:
    """Register built-in generators."""
    for cls in [ImageTagGenerator, DocumentTagGenerator]:
        _GENERATOR_REGISTRY[cls.name] = cls


_register_defaults()


class UnsupportedGeneratorError(ValueError):
    """Raised when TAG_GENERATORS names an unregistered generator."""


def register_generator(name: str, cls: type[BaseTagGenerator]) -> None:
    """Register a custom generator class under a name."""
    _GENERATOR_REGISTRY[name] = cls
    logger.info("Registered tag generator: %s → %s", name, cls.__name__)


def available_generators() -> list[str]:
    """Return registered generator names."""
    return sorted(_GENERATOR_REGISTRY)


def build_generators(
    settings: Settings, store: BaseObjectStore,
) -> list[BaseTagGenerator]:
    """Instantiate every enabled generator whose settings are complete.

    Generators with missing settings are skipped with a warning.

    Raises:
        UnsupportedGeneratorError: If an enabled name is not registered.
    """
    generators: list[BaseTagGenerator] = []
    for name in settings.tag_generators_list:
        cls = _GENERATOR_REGISTRY.get(name)
        if cls is None:
            raise UnsupportedGeneratorError(
                f"Unknown tag generator: {name!r}. "
                f"Available: {', '.join(available_generators())}"
            )

        missing = cls.missing_settings(settings)
        if missing:
            logger.warning(
                "Unable to initialize tag generator %s. Missing required settings: %s",
                name, ", ".join(missing),
            )
            continue

        generators.append(cls.from_settings(settings, store))
        logger.debug("Initialized tag generator: %s", name)
    return generators
