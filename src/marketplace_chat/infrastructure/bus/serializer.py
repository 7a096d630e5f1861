"""JSON envelope for relay events crossing process boundaries."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

ENVELOPE_VERSION = 1


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"v": ENVELOPE_VERSION, "event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or envelope.get("v") != ENVELOPE_VERSION:
        raise ValueError("Unsupported relay envelope")
    data = envelope.get("data")
    if not isinstance(data, dict):
        raise ValueError("Relay envelope has no data object")
    return str(envelope.get("event", "unknown")), data
