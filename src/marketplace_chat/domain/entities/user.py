from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserSummary:
    """Display fields of a user; the identity subsystem owns the full record."""

    id: str
    name: str
    profile_pic: str | None = None
