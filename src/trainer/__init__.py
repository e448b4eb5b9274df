# src/trainer/__init__.py — v1
