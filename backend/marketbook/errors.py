# Overview: Error taxonomy shared by services and routes, plus the Flask handlers
# that turn it into a stable JSON shape.

"""
Every error surfaced to a client looks like:

    {"error": "<human readable message>", "code": "<KIND>"}

Services raise the typed errors below; routes either let them propagate to
the registered handlers or map them inline. Unexpected exceptions are logged
with their stack trace and reported as a generic INTERNAL_ERROR so store
internals never reach the caller.
"""

from __future__ import annotations

from flask import Flask, jsonify, current_app
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    """Base for all errors with a client-facing kind."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return "Internal server error"

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    """400-level input problem (missing title, negative amount, no customer email...)."""

    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401

    @classmethod
    def default_message(cls) -> str:
        return "Authentication required"


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = 403

    @classmethod
    def default_message(cls) -> str:
        return "Forbidden"


class AlreadyRegisteredError(ForbiddenError):
    """Admin registration replay. The stored secret is never rotated."""

    code = "ALREADY_REGISTERED"

    @classmethod
    def default_message(cls) -> str:
        return "Admin already registered for this account"


class NotFoundError(AppError):
    """
    Resource absent OR owned by someone else.

    Both cases produce the same message so callers cannot probe for the
    existence of other users' records.
    """

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ConflictError(AppError):
    """409-level uniqueness conflict (duplicate email)."""

    code = "CONFLICT"
    status_code = 409


class RenderFailure(AppError):
    """Rendering backend failed (timeout, bad input, backend unavailable)."""

    code = "RENDER_FAILURE"
    status_code = 502

    @classmethod
    def default_message(cls) -> str:
        return "Failed to generate invoice PDF"


class DeliveryFailure(AppError):
    """Outbound email could not be handed to the relay."""

    code = "DELIVERY_FAILURE"
    status_code = 502

    @classmethod
    def default_message(cls) -> str:
        return "Failed to send email"


class UploadFailure(AppError):
    code = "UPLOAD_FAILURE"
    status_code = 502

    @classmethod
    def default_message(cls) -> str:
        return "Failed to upload file"


class InternalError(AppError):
    """Unexpected or store-level failure."""


_HTTP_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
}


def error_response(exc: AppError):
    return jsonify(exc.to_dict()), exc.status_code


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        if exc.status_code >= 500:
            current_app.logger.warning("Request failed with %s: %s", exc.code, exc.message)
        return error_response(exc)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        code = _HTTP_CODES.get(exc.code or 500, "INTERNAL_ERROR")
        return jsonify({"error": exc.description or exc.name, "code": code}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        current_app.logger.exception("Unhandled error")
        return error_response(InternalError())
