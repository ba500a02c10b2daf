"""
errors.py
Domain exceptions. The UI shows str(error); status_code mirrors the HTTP meaning.
"""

from __future__ import annotations


class GymError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GymError):
    """A request field is missing, empty or out of range (400)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(GymError):
    """Referenced entity does not exist (404)."""

    status_code = 404

    def __init__(self, resource_type: str, identifier):
        super().__init__(f"{resource_type} not found: {identifier}")
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(GymError):
    """Uniqueness conflict (409)."""

    status_code = 409


class InfrastructureError(GymError):
    """Database failure (500). The message stays generic; the cause is chained."""

    status_code = 500
