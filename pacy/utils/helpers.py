"""Shared blueprint helpers.

db_commit_or_error:  commit the request's unit of work, mapping DB failures to JSON
request_json:        JSON body or an empty dict
str_field:           optional string field of a JSON body
int_arg:             optional integer query-string argument
"""
import logging

from pacy.core.exceptions import ValidationError
from pacy.models import db
from pacy.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure, ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.INTERNAL, "Database error")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.INTERNAL, "Database error")


def request_json(request) -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def int_arg(value, name: str) -> int | None:
    """Parse an optional positive integer argument; raises ValidationError."""
    if value in (None, ""):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", {name: value})
    if parsed < 1:
        raise ValidationError(f"{name} must be positive", {name: value})
    return parsed


def str_field(data: dict, name: str, default: str | None = "") -> str | None:
    """Read a text field from a JSON body; anything but a string raises ValidationError."""
    value = data.get(name)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", {name: type(value).__name__})
    return value
