from __future__ import annotations


def recall_at_k(required: list[str], retrieved: list[str]) -> float:
    """1.0 when any required id was retrieved (or nothing is required)."""
    if not required:
        return 1.0
    s = set(retrieved)
    return 1.0 if any(r in s for r in required) else 0.0


def mean(values: list[float]) -> float:
    return sum(values) / max(1, len(values))
