"""Health check API router."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from ticketflow.infra.database import get_db
from ticketflow.infra.metrics import get_metrics_response
from ticketflow.infra.queue import redis_conn

router = APIRouter()


@router.get("/health", tags=["Health"])
async def health_check():
    """Combined health check endpoint."""
    return {
        "status": "ok",
        "service": "ticketflow",
        "version": "1.0.0",
    }


@router.get("/health/live", tags=["Health"])
async def liveness_probe():
    """Liveness probe - indicates if the process is running."""
    return {"status": "alive"}


@router.get("/health/ready", tags=["Health"])
async def readiness_probe(db: Session = Depends(get_db)):
    """Readiness probe - checks database and Redis connectivity."""
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception:
        checks["database"] = "unavailable"

    try:
        redis_conn.ping()
        checks["redis"] = "ok"
    except Exception:
        checks["redis"] = "unavailable"

    if all(value == "ok" for value in checks.values()):
        return {"status": "ready", "checks": checks}
    return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
