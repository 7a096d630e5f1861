from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from marketplace_chat.api.deps import get_registry
from marketplace_chat.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

PROBE_TIMEOUT = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str | int]:
    return {"status": "ok", "connections": len(get_registry())}


async def _probe_postgres() -> None:
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))


async def _probe_redis(request: Request) -> None:
    await request.app.state.redis.ping()


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready when both the message store and Redis answer within PROBE_TIMEOUT."""
    probes = {"postgres": _probe_postgres(), "redis": _probe_redis(request)}
    results = await asyncio.gather(
        *(asyncio.wait_for(p, timeout=PROBE_TIMEOUT) for p in probes.values()),
        return_exceptions=True,
    )

    checks: dict[str, str] = {}
    for name, result in zip(probes, results):
        if isinstance(result, BaseException):
            logger.warning("Readiness probe %s failed: %r", name, result)
            checks[name] = f"error: {result!r}"
        else:
            checks[name] = "ok"

    ready = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "unavailable", "checks": checks},
    )
