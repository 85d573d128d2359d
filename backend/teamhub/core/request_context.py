# backend/teamhub/core/request_context.py
from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional

SQL_HEAD_MAX = 240

request_id_var: ContextVar[Optional[str]] = ContextVar("teamhub_request_id", default=None)


def set_request_id(rid: str | None) -> None:
    request_id_var.set(rid)


def get_request_id() -> str:
    return request_id_var.get() or "-"


@dataclass
class DbMetrics:
    """Per-request DB timings, filled by the engine hooks in db/session.py."""
    query_count: int = 0
    total_ms: float = 0.0
    slowest_ms: float = 0.0
    slowest_sql: str = ""

    def record(self, duration_ms: float, sql_head: str = "") -> None:
        self.query_count += 1
        self.total_ms += duration_ms
        if duration_ms > self.slowest_ms:
            self.slowest_ms = duration_ms
            self.slowest_sql = (sql_head or "")[:SQL_HEAD_MAX]


db_metrics_var: ContextVar[Optional[DbMetrics]] = ContextVar("teamhub_db_metrics", default=None)


def reset_db_metrics() -> None:
    db_metrics_var.set(DbMetrics())


def get_db_metrics() -> DbMetrics:
    m = db_metrics_var.get()
    if m is None:
        m = DbMetrics()
        db_metrics_var.set(m)
    return m


def clear_db_metrics() -> None:
    db_metrics_var.set(None)


def record_db_query(duration_ms: float, sql_head: str = "") -> None:
    get_db_metrics().record(float(duration_ms), sql_head)
