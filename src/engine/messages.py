# src/engine/messages.py — v1
"""Human-readable descriptions returned in engine summaries."""

from __future__ import annotations

MESSAGES: dict[str, str] = {
    # scan
    "scan.in_progress": "Unable to scan: a scan is already in progress.",
    "scan.blocked_by_index": "Unable to scan while indexing is in progress.",
    "scan.completed.changes": (
        "Scan completed. Found {additions} addition(s) and {deletions} "
        "deletion(s) since the last index."
    ),
    "scan.completed.no_changes": "Scan completed. No changes found since the last index.",
    # index
    "index.blocked_by_scan": "Unable to index while a scan is in progress.",
    "index.in_progress": "Unable to index: indexing is already in progress.",
    "index.must_scan_first": "Object storage must be scanned before it can be indexed.",
    "index.no_changes": "The last scan found no changes to index.",
    "index.already_training": (
        "A classifier is already training. Try again once its training completes."
    ),
    "index.empty_corpus": "No training data could be generated from object storage.",
    "index.training_started": "Classifier training has started.",
    # classify
    "classify.successful": "Search completed successfully.",
    "classify.still_training": "Unable to search: the classifier is still training.",
    "classify.never_indexed": (
        "Unable to search: object storage has not been scanned and indexed yet."
    ),
}


def message(key: str, **params: object) -> str:
    """Look up a description and fill in its placeholders."""
    return MESSAGES[key].format(**params)
