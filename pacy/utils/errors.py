"""Standardised API error responses.

Usage
-----
    from pacy.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Session not found")
    return api_error(E.VALIDATION_REQUIRED, "name is required")
    return api_error(E.PARSE, "Brief could not be parsed", details={"raw_response": raw})
"""

from __future__ import annotations

import logging
import traceback

from flask import current_app, jsonify, request

from pacy.core.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    ParseError,
    TransientProviderError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401
    AUTH = "ERR_AUTH"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server – HTTP 500 / 503
    PARSE = "ERR_PARSE"
    INTERNAL = "ERR_INTERNAL"
    PROVIDER_UNAVAILABLE = "ERR_PROVIDER_UNAVAILABLE"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.AUTH: 401,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.PARSE: 500,
    E.INTERNAL: 500,
    E.PROVIDER_UNAVAILABLE: 503,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra keys merged into the body (``raw_response``, ``stack`` ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body.update(details)

    return jsonify(body), http_status


def _debug_details(exc: Exception) -> dict:
    if current_app.debug:
        return {"stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))}
    return {}


def register_error_handlers(app):
    """Map the exception hierarchy to JSON responses for every blueprint."""

    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @app.errorhandler(ValidationError)
    def _validation(exc):
        return api_error(
            E.VALIDATION_INVALID, str(exc),
            details={"details": exc.details} if exc.details else None,
        )

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        code = E.CONFLICT_STATE if exc.field == "status" else E.CONFLICT_DUPLICATE
        return api_error(code, str(exc))

    @app.errorhandler(AuthError)
    def _auth(exc):
        logger.error("Provider authentication failed: %s", exc)
        return api_error(E.AUTH, str(exc), details={"provider": exc.provider})

    @app.errorhandler(TransientProviderError)
    def _unavailable(exc):
        logger.error("Model provider unavailable after retries: %s", exc)
        return api_error(E.PROVIDER_UNAVAILABLE, str(exc))

    @app.errorhandler(ParseError)
    def _parse(exc):
        logger.error("Unparseable model output: %s", exc)
        return api_error(
            E.PARSE, str(exc),
            details={"raw_response": exc.preview, **_debug_details(exc)},
        )

    @app.errorhandler(404)
    def _route_not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def _rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(Exception)
    def _unexpected(exc):
        from werkzeug.exceptions import HTTPException
        if isinstance(exc, HTTPException):
            return exc
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=exc)
        return api_error(E.INTERNAL, str(exc) or "Internal server error", details=_debug_details(exc))
