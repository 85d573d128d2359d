# backend/teamhub/core/errors.py

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException, status

from teamhub.core.request_context import get_request_id

logger = logging.getLogger("teamhub")


class AppError(HTTPException):
    """
    Base for the service error taxonomy.

    Subclasses are plain HTTPExceptions with a structured detail dict, so the
    app-level handlers in main.py render them into the standard error contract.
    """

    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, extra: Optional[dict[str, Any]] = None) -> None:
        detail: dict[str, Any] = {"code": self.code, "message": message}
        if extra:
            detail.update(extra)
        super().__init__(status_code=self.status_code_default, detail=detail)
        self.message = message

    def __str__(self) -> str:
        return self.message


class UserInputError(AppError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "USER_INPUT_ERROR"


class ForbiddenError(AppError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class InternalServerError(AppError):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"


class RequestIdFilter(logging.Filter):
    """
    Injects request_id into every LogRecord as `record.request_id`.
    Falls back to "-" outside of a request.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def install_request_id_logging(
    logger_name: str = "teamhub",
    *,
    include_root: bool = True,
) -> None:
    """
    Attach RequestIdFilter so logs can include %(request_id)s in the formatter.
    Call once during startup (main.py right after logging.basicConfig()).
    """
    filt = RequestIdFilter()

    if include_root:
        for handler in logging.getLogger().handlers:
            handler.addFilter(filt)

    logging.getLogger(logger_name).addFilter(filt)


def log_exception_with_context(
    message: str,
    *,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """
    Log the currently-handled exception with stack trace and request context.

    Example:
        try:
            ...
        except SQLAlchemyError:
            log_exception_with_context("Invite query failed", extra={"team_id": team_id})
            invites = []
    """
    payload: dict[str, Any] = {"ctx_request_id": get_request_id()}
    if extra:
        payload.update(extra)

    logger.exception("%s ctx=%s", message, payload)
