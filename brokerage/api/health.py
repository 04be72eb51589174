"""Health check and status endpoints"""
from fastapi import APIRouter, Depends
from datetime import datetime, UTC

from brokerage.core.dependencies import Container, get_container

router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check endpoint"""
    return {
        "service": "brokerage-workflow",
        "status": "running",
        "timestamp": datetime.now(UTC).isoformat()
    }


@router.get("/health")
async def health(container: Container = Depends(get_container)):
    """Detailed health status"""
    return {
        "status": "healthy",
        "orders": await container.orders.count_orders(),
        "pending_tasks": await container.engine.queue.size(),
        "worker_running": container.engine.running,
        "monitored_orders": container.monitor.active_listeners,
        "database": container.postgres is not None,
        "redis": container.redis is not None,
    }
