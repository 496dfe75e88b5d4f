"""Database session management with tenant isolation."""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from ticketflow.infra.config import config


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool settings for server databases; SQLite keeps its default pool."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": 10,  # Number of connections to maintain
        "max_overflow": 20,  # Max connections beyond pool_size
        "pool_timeout": 30,  # Seconds to wait for connection from pool
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Verify connections before using
    }


# Create engine with connection pooling
engine = create_engine(
    config.DATABASE_URL,
    echo=config.DEBUG,
    **_engine_options(config.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(tenant_id: Optional[str] = None) -> Generator[Session, None, None]:
    """
    Get a database session with tenant isolation.

    Sets app.current_tenant_id for RLS enforcement on PostgreSQL.
    Commits on success, rolls back on any exception.
    """
    session = SessionLocal()
    try:
        if tenant_id and session.get_bind().dialect.name == "postgresql":
            # Set tenant context for RLS
            session.execute(
                text("SELECT set_config('app.current_tenant_id', :tenant_id, false)"),
                {"tenant_id": str(tenant_id)},
            )

        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI routes."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
