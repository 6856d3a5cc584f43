"""Health check endpoint with retry policy statistics."""
from datetime import datetime, timezone

from fastapi import APIRouter

import board

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Health check endpoint.

    Returns:
        Service status plus per-policy retry counters; "degraded" while any
        policy's last outcome was an exhausted retry budget
    """
    from board.core.resilience import get_retry_stats

    policies = get_retry_stats()
    degraded = any(p["degraded"] for p in policies.values())

    return {
        "status": "degraded" if degraded else "healthy",
        "service": "board-backend",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": board.__version__,
        "retry_policies": policies,
    }
