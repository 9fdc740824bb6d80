"""Map engine errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from assignment_engine.domain.errors import (
    AssignmentError,
    AssignmentTimeout,
    ConcurrentUpdateConflict,
    InvalidRuleConfiguration,
    NoEligibleAssignee,
    NoMatchingRule,
    NoTerritoryMatch,
    PersistenceFailure,
    RuleNotFound,
    RuleTypeNotImplemented,
    TargetNotFound,
    TerritoryNotFound,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[AssignmentError], int] = {
    NoMatchingRule: 404,
    NoTerritoryMatch: 404,
    TargetNotFound: 404,
    RuleNotFound: 404,
    TerritoryNotFound: 404,
    NoEligibleAssignee: 409,
    ConcurrentUpdateConflict: 409,
    InvalidRuleConfiguration: 422,
    RuleTypeNotImplemented: 422,
    PersistenceFailure: 503,
    AssignmentTimeout: 504,
}


def status_for(exc: AssignmentError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


async def assignment_error_handler(request: Request, exc: AssignmentError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AssignmentError, assignment_error_handler)
