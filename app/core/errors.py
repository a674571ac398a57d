from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from app.core.extensions import db

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Error interno del servidor."


class ServiceError(ValueError):
    """Business-rule failure reported to the client as a 4xx response."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class ConflictError(ServiceError):
    status_code = 400


class DuplicateFileNumber(ConflictError):
    def __init__(self) -> None:
        super().__init__("Ya existe un registro con ese número de ficha.")


class CustomerAlreadyLinked(ConflictError):
    def __init__(self, message: str = "Ya existe un registro con este cliente.") -> None:
        super().__init__(message)


class MeterAlreadyLinked(ConflictError):
    def __init__(self) -> None:
        super().__init__("Ya existe un registro con este medidor.")


class NotFoundError(ServiceError):
    status_code = 404


class PermissionDeniedError(ServiceError):
    status_code = 403


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def service_error(error: ServiceError):
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def unexpected_error(error: Exception):
        db.session.rollback()
        logger.exception("Unhandled error: %s", error)
        return jsonify({"error": INTERNAL_ERROR_MESSAGE}), 500
