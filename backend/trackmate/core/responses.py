"""TrackMate — Response envelope helpers for whichever transport wraps the engine."""
from typing import Any

from trackmate.core.exceptions import EngineError, ValidationError


def success_response(data: Any, meta: dict | None = None) -> dict:
    return {"data": data, "error": None, "meta": meta}


def error_response(exc: EngineError, meta: dict | None = None) -> dict:
    """Render a typed engine error as the standard {data, error, meta} envelope."""
    field_errors = []
    if isinstance(exc, ValidationError):
        field_errors.append({"field": exc.field, "reason": exc.reason})
    return {
        "data": None,
        "error": {
            "code": exc.code,
            "message": str(exc),
            "details": exc.details(),
            "field_errors": field_errors,
        },
        "meta": meta,
    }
