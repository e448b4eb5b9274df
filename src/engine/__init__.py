# src/engine/__init__.py — v1
"""Scan / diff / index engine."""

from ossearch.engine.engine_factory import create_engine
from ossearch.engine.search_engine import SearchEngine

__all__ = ["SearchEngine", "create_engine"]
