# src/__init__.py — v1
"""ossearch — incremental object storage search backed by a text classifier."""

from ossearch.version import __version__

__all__ = ["__version__"]
