"""
Reasoning client status.

GET /v1/reasoning/status  Quota window usage, cooldown and cache size
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from api.dependencies import get_reasoning_client
from reasoning.client import ReasoningClient

router = APIRouter(prefix="/v1/reasoning", tags=["reasoning"])


@router.get("/status")
async def reasoning_status(
    client: ReasoningClient = Depends(get_reasoning_client),
) -> dict[str, Any]:
    return client.status()
