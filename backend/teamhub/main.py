# backend/teamhub/main.py

import logging
import traceback
import time
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import HTTPException

from teamhub.core.config import settings
from teamhub.core.errors import install_request_id_logging
from teamhub.core.request_context import (
    set_request_id,
    reset_db_metrics,
    get_db_metrics,
    clear_db_metrics,
    get_request_id,
)

# --- Logging setup ---
# LogRecordFactory runs for every record, so %(request_id)s never raises
# KeyError even for third-party loggers the filter is not attached to.
_old_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _old_factory(*args, **kwargs)
    if not hasattr(record, "request_id"):
        record.request_id = "-"
    return record


logging.setLogRecordFactory(_record_factory)

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s request_id=%(request_id)s %(message)s",
)
install_request_id_logging()

logger = logging.getLogger("teamhub")

enable_docs = settings.enable_docs
logger.info(
    "Startup: environment=%s enable_docs=%s self_host_mode=%s",
    settings.environment,
    enable_docs,
    settings.self_host_mode,
)

# Log DB backend type (sqlite, postgresql, etc.) without leaking credentials
db_backend = (settings.database_url or "").split(":", 1)[0] or "unknown"
logger.info("DB backend detected: %s", db_backend)

SLOW_HTTP_MS = float(settings.slow_http_ms)

# --- App setup ---
app = FastAPI(
    title="Teamhub API",
    openapi_url="/api/openapi.json" if enable_docs else None,
    docs_url="/api/docs" if enable_docs else None,
    redoc_url="/api/redoc" if enable_docs else None,
)


def _get_request_id(request: Request) -> str:
    """
    Use an incoming request id if present (common in proxies),
    otherwise generate one.
    """
    incoming = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
    if incoming and incoming.strip():
        return incoming.strip()[:128]
    return uuid.uuid4().hex


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def _rid_from_request(request: Request) -> str:
    # request.state (set by middleware), then request_context, then generate.
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid.strip():
        return rid
    rid2 = get_request_id()
    if rid2 and rid2 != "-":
        return rid2
    return uuid.uuid4().hex


def _error_payload(code: str, message: str, request_id: str, extra: Optional[dict] = None) -> dict:
    """
    Standardized error contract:
    - code/message/request_id at the top level
    - detail mirrors code/message for clients that parse `detail`
    """
    payload: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": request_id,
        "detail": {"code": code, "message": message},
    }
    if extra:
        payload.update(extra)
    return payload


def _http_exception_payload(exc: HTTPException, *, request_id: str) -> dict:
    """
    If exc.detail is a dict, preserve it and merge it into payload["detail"];
    its own `code` (e.g. USER_INPUT_ERROR) becomes the top-level code.
    A string detail becomes the message under code HTTP_<status>.
    """
    code = f"HTTP_{exc.status_code}"

    if isinstance(exc.detail, dict):
        msg = exc.detail.get("message")
        if not isinstance(msg, str) or not msg.strip():
            msg = "Request failed."
        detail_code = exc.detail.get("code")
        if isinstance(detail_code, str) and detail_code.strip():
            code = detail_code

        merged_detail: dict[str, Any] = {"code": code, "message": msg}
        merged_detail.update(exc.detail)

        return _error_payload(code=code, message=msg, request_id=request_id, extra={"detail": merged_detail})

    msg = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return _error_payload(code=code, message=msg, request_id=request_id)


# --- Exception handlers (standardized error contract) ---
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = _rid_from_request(request)
    payload = _http_exception_payload(exc, request_id=request_id)

    if exc.status_code >= 500:
        logger.error("http_error status=%s code=%s message=%s", exc.status_code, payload["code"], payload["message"])

    resp = JSONResponse(
        status_code=exc.status_code,
        content=payload,
        headers=getattr(exc, "headers", None),
    )
    resp.headers["X-Request-ID"] = request_id
    return resp


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _rid_from_request(request)
    msg = "Validation error. Check request body/query parameters."
    resp = JSONResponse(
        status_code=422,
        content=_error_payload(
            code="VALIDATION_ERROR",
            message=msg,
            request_id=request_id,
            extra={"errors": jsonable_errors(exc)},
        ),
    )
    resp.headers["X-Request-ID"] = request_id
    return resp


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic error dicts may carry exception objects under "ctx"
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})


# --- Observability middleware: request id + timing + structured logs ---
@app.middleware("http")
async def request_observability(request: Request, call_next):
    request_id = _get_request_id(request)
    request.state.request_id = request_id
    set_request_id(request_id)
    reset_db_metrics()

    start = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = getattr(response, "status_code", 200) or 200
        response.headers["X-Request-ID"] = request_id
        return response

    except Exception as e:
        # HTTPException / validation errors belong to the exception handlers above.
        if isinstance(e, (HTTPException, RequestValidationError)):
            raise

        logger.error(
            "Unhandled error method=%s path=%s error=%s",
            request.method,
            request.url.path,
            str(e),
        )
        logger.error(traceback.format_exc())

        payload = _error_payload(
            code="INTERNAL_ERROR",
            message="Internal Server Error",
            request_id=request_id,
        )

        resp = JSONResponse(status_code=500, content=payload)
        resp.headers["X-Request-ID"] = request_id
        status_code = 500
        return resp

    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        m = get_db_metrics()

        # key=value so it's grep-friendly
        log_fn = logger.warning if duration_ms >= SLOW_HTTP_MS else logger.info
        log_fn(
            "req request_id=%s method=%s path=%s status=%s duration_ms=%.2f db_total_ms=%.2f db_q=%s db_slowest_ms=%.2f ip=%s",
            request_id,
            request.method,
            request.url.path,
            status_code,
            duration_ms,
            m.total_ms,
            m.query_count,
            m.slowest_ms,
            _client_ip(request),
        )
        if duration_ms >= SLOW_HTTP_MS and m.slowest_sql:
            logger.warning("slow_req request_id=%s slowest_sql=%s", request_id, m.slowest_sql)

        clear_db_metrics()
        set_request_id(None)


# --- CORS setup ---
allowed = settings.origins_list()
logger.info("CORS allow_origins=%s", allowed)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Include routers (after app creation) ---
from teamhub.api.v1 import (  # noqa: E402
    health,
    team_members,  # members listing + invites (also registers the Team tools)
    tools,
)

app.include_router(health.router, prefix="/api")
app.include_router(team_members.router, prefix="/api")
app.include_router(tools.router, prefix="/api")


@app.get("/", include_in_schema=False)
def root():
    return {"status": "Teamhub API is running. See /api/health."}
