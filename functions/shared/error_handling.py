"""Custom exceptions and error-handling decorator for Lambda handlers."""

from __future__ import annotations

import functools
import logging
import traceback
from collections.abc import Callable
from typing import Any

from shared.constants import IS_PRODUCTION
from shared.response import error_response

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""

    reason: str = "InternalError"

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(AppError):
    """Input validation failure (400)."""

    reason = "BadRequest"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


class MalformedSubmission(ValidationError):
    """The request body is unparseable or structurally incomplete."""

    reason = "MalformedSubmission"


class MissingTrackAsset(MalformedSubmission):
    """Track metadata entries and audio files do not line up."""

    reason = "MissingTrackAsset"


class PolicyViolation(ValidationError):
    """A required field, agreement, or upload policy is not satisfied."""

    reason = "PolicyViolation"


class ImagePolicyViolation(PolicyViolation):
    """Cover image fails the size or dimension policy."""


class NotFoundError(AppError):
    """Resource not found (404)."""

    reason = "NotFound"

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=404)


class StoreError(AppError):
    """Object store call failed."""

    reason = "StoreUnavailable"

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message, status_code=status_code)


class StoreUnavailable(StoreError):
    """Object store call failed or timed out."""


class ObjectNotFound(StoreError):
    """Requested object does not exist in the store."""

    reason = "NotFound"

    def __init__(self, message: str = "Object not found") -> None:
        super().__init__(message, status_code=404)


class PersistenceError(AppError):
    """Database write failed, including duplicate-key conflicts."""

    reason = "PersistenceError"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500)


HandlerFunc = Callable[..., dict[str, Any]]


def _detail(exc: BaseException) -> str | None:
    if IS_PRODUCTION:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def handle_errors(func: HandlerFunc) -> HandlerFunc:
    """Decorator that catches exceptions and returns API Gateway responses."""

    @functools.wraps(func)
    def wrapper(event: dict[str, Any], context: Any) -> dict[str, Any]:
        try:
            return func(event, context)
        except ValidationError as exc:
            logger.warning("Validation error (%s): %s", exc.reason, exc.message)
            return error_response(exc.status_code, exc.reason, exc.message)
        except (NotFoundError, ObjectNotFound) as exc:
            logger.warning("Not found: %s", exc.message)
            return error_response(404, exc.reason, exc.message)
        except AppError as exc:
            logger.error("Application error (%s): %s", exc.reason, exc.message)
            return error_response(exc.status_code, exc.reason, exc.message, _detail(exc))
        except Exception as exc:
            logger.exception("Unhandled exception")
            return error_response(
                500, "InternalError", "An unexpected error occurred", _detail(exc)
            )

    return wrapper  # type: ignore[return-value]
