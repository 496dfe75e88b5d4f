"""FastAPI application receiving protocol events from the transport gateway."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ticketflow.infra.logging import app_logger
from ticketflow.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from ticketflow.api.routers import health, webhooks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    # Startup
    app_logger.info("Application starting up")

    yield

    # Shutdown
    app_logger.info("Application shutting down")

    # Pending greeting timers belong to this loop
    from ticketflow.services.greeting_service import greeting_controller
    greeting_controller.cancel_all()

    # Close database connections
    from ticketflow.infra.database import engine
    engine.dispose()

    # Close Redis connections
    from ticketflow.infra.queue import queue_conn, redis_conn
    for connection in (redis_conn, queue_conn):
        try:
            connection.close()
        except Exception as e:
            app_logger.warning(f"Redis close failed: {e}")


app = FastAPI(
    title="Ticketflow API",
    description="""
    Ticketflow ingests chat-protocol events posted by the transport gateway and turns
    them into tickets and messages.

    ## Features

    - **Inbound events**: classify, deduplicate and persist messages, drive ticket status
    - **Delivery updates**: apply ack changes, edits and revokes to stored messages
    - **Side effects**: greeting replies, campaign confirmations, media storage and transcription

    ## Authentication

    Webhook endpoints require the shared gateway token in the `X-Gateway-Token` header.
    """,
    version="1.0.0",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Webhooks",
            "description": "Event endpoints called by the transport gateway",
        },
        {
            "name": "Health",
            "description": "Health check and monitoring endpoints",
        },
    ],
)

# Setup middleware
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# Register routers
app.include_router(webhooks.router)
app.include_router(health.router)

# Request size limits
MAX_REQUEST_SIZE = 5 * 1024 * 1024  # 5MB


@app.middleware("http")
async def request_size_limit_middleware(request: Request, call_next):
    """Enforce request size limits."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(
            status_code=413,
            content={"detail": f"Request too large. Maximum size: {MAX_REQUEST_SIZE} bytes"},
        )
    return await call_next(request)


# Error handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    error_id = str(uuid.uuid4())
    app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error. Error ID: {error_id}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
