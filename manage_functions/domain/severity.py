# /manage_functions/domain/severity.py
from __future__ import annotations


def severity_matches(observed: float, threshold: float | None) -> bool:
    """Check a severity against a threshold.

    No threshold lets everything through. Severities at or below zero are
    sentinel classes (log, false positive, ...) and only match themselves;
    positive severities match any threshold they reach. Comparison is exact.
    """
    if threshold is None:
        return True
    if observed <= 0:
        return observed == threshold
    return observed >= threshold
