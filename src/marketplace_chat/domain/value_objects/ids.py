from __future__ import annotations


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order a user pair so (a, b) and (b, a) address the same conversation."""
    return (a, b) if a <= b else (b, a)
