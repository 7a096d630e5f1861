from __future__ import annotations

from typing import Any

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import InvalidCredentialError


def principal_from_claims(payload: dict[str, Any], user_claim: str) -> Principal:
    """Build a principal from decoded claims, falling back to ``sub``."""
    raw = payload.get(user_claim) or payload.get("sub")
    if raw is None or raw == "":
        raise InvalidCredentialError()
    return Principal(user_id=str(raw))
