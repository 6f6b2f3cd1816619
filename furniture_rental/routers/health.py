"""
Health Check Endpoints

- /health/live - Liveness check (is process running)
- /health/ready - Readiness check (can the reservation store be reached)
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import settings
from ..exceptions import StoreUnavailableError
from ..store import ReservationStore
from ..utils.dependencies import get_reservation_store

router = APIRouter(prefix="/health", tags=["Health"])


def get_store_health(store: ReservationStore) -> dict:
    """Check store connectivity and latency"""
    try:
        start = time.time()
        store.ping()
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "backend": settings.store_backend
        }
    except StoreUnavailableError as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


@router.get("/live")
@router.get("/live/")
async def liveness_check():
    """
    Liveness probe - is the process running?
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/ready")
@router.get("/ready/")
async def readiness_check(store: ReservationStore = Depends(get_reservation_store)):
    """
    Readiness probe - is the service ready to accept traffic?
    """
    store_health = get_store_health(store)

    if store_health["status"] == "up":
        return {
            "status": "ready",
            "store": store_health,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "status": "not_ready",
            "reason": "store_unavailable",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )
