# src/generators/__init__.py — v1
