"""Health check endpoints for monitoring."""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from receipt_bot.api.deps import get_store
from receipt_bot.core.config import settings
from receipt_bot.core.exceptions import StorageError
from receipt_bot.services.receipt_store import ReceiptStore

router = APIRouter()


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
    }


@router.get("/health/detailed")
async def detailed_health_check(store: ReceiptStore = Depends(get_store)) -> Dict[str, Any]:
    """Health check including a round-trip to the database."""
    health_status: Dict[str, Any] = {"status": "healthy", "services": {}}
    try:
        await store.list_records(limit=1)
        health_status["services"]["database"] = "healthy"
    except StorageError as e:
        health_status["services"]["database"] = f"unhealthy: {e}"
        health_status["status"] = "degraded"
    return health_status
