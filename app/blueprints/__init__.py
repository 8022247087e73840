"""
DJT Quest Platform
Blueprint registry and shared error handlers.
"""

import logging

from flask import current_app, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.utils.errors import E, api_error, not_found_error

logger = logging.getLogger(__name__)


def register_domain_error_handlers(bp):
    """Map the platform exception hierarchy onto ``api_error`` responses.

    With SCOPE_DENIAL_AS_NOT_FOUND, a ForbiddenError raised for a single
    record is rendered exactly like a missing record.
    """

    @bp.errorhandler(UnauthorizedError)
    def _handle_unauthorized(error: UnauthorizedError):
        return api_error(E.UNAUTHORIZED, "Authentication required")

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        if current_app.config.get("SCOPE_DENIAL_AS_NOT_FOUND"):
            return not_found_error()
        return api_error(E.FORBIDDEN, "Outside your organizational scope")

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        logger.info("Not found on %s: %s", request.endpoint, error)
        return not_found_error()

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), status=422, details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    return bp
