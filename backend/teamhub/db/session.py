# backend/teamhub/db/session.py
import time
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from teamhub.core.config import settings
from teamhub.core.request_context import get_request_id, record_db_query

logger = logging.getLogger("teamhub.db")

DATABASE_URL = settings.database_url or "sqlite:///./teamhub.db"

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    future=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

SLOW_QUERY_MS = float(settings.slow_db_query_ms)


def _sql_head(statement: str) -> str:
    if not statement:
        return ""
    # Collapse whitespace + trim. No params logged.
    head = " ".join(statement.split())
    return head[:240]


def install_query_timing(target: Engine) -> None:
    """
    Attach cursor timing hooks to an engine. Timings roll up into the
    request-scoped metrics logged by the observability middleware.
    """

    @event.listens_for(target, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._teamhub_query_start = time.perf_counter()

    @event.listens_for(target, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_teamhub_query_start", None)
        if start is None:
            return

        duration_ms = (time.perf_counter() - start) * 1000.0
        head = _sql_head(statement)
        record_db_query(duration_ms, head)

        if duration_ms >= SLOW_QUERY_MS:
            logger.warning(
                "slow_db_query request_id=%s duration_ms=%.2f sql=%s",
                get_request_id(),
                duration_ms,
                head,
            )


install_query_timing(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
