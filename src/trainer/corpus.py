# src/trainer/corpus.py — v1
"""Training corpus CSV codec.

The classifier service takes a flat CSV where each row is
``text,label[,label...]``. Here every label is an object path.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

# Longest text the classifier service accepts per training row.
MAX_TEXT_LENGTH = 1024


def clean_text(text: str) -> str:
    """Collapse whitespace onto one line and enforce the length limit."""
    return " ".join(str(text).split())[:MAX_TEXT_LENGTH]


def serialize_corpus(rows: Iterable[tuple[str, str]]) -> str:
    """Serialize (text, label) pairs into training CSV.

    Rows whose text is empty after cleaning are dropped.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for text, label in rows:
        cleaned = clean_text(text)
        if cleaned and label:
            writer.writerow([cleaned, label])
    return buffer.getvalue()


def parse_corpus(data: str) -> dict[str, list[str]]:
    """Parse training CSV into ``label -> [texts]``, preserving row order."""
    labels: dict[str, list[str]] = {}
    for row in csv.reader(io.StringIO(data)):
        if len(row) < 2 or not row[0]:
            continue
        for label in row[1:]:
            if label:
                labels.setdefault(label, []).append(row[0])
    return labels
