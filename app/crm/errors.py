"""
Service-layer failures.

Services raise these; the app-level error handler in ``create_app`` turns them
into JSON responses. None of them is retried.
"""
from __future__ import annotations


class ServiceError(Exception):
    status_code = 400
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(ServiceError):
    """Malformed or missing required input."""

    kind = "validation_error"


class ConflictError(ServiceError):
    """A unique field (email, CPF, product name) is already taken."""

    kind = "conflict"


class NotFoundError(ServiceError):
    status_code = 404
    kind = "not_found"
