"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from swish_gateway.api.payments import get_channels
from swish_gateway.security.channel import ChannelCache

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(channels: ChannelCache = Depends(get_channels)) -> dict:
    return {"status": "ok", "channels": len(channels)}
