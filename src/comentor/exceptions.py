"""Domain exception hierarchy for the progression engine.

Every exception carries the HTTP status the API layer maps it to, so the
services never import FastAPI. Recoverable no-ops (re-initializing a league,
re-running an achievement check) are reported through result objects, not
exceptions.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ProgressionError(Exception):
    """Base class for all progression-engine errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        user_id: int | None = None,
        operation: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"error": self.__class__.__name__, "detail": self.message}


class NotFound(ProgressionError):
    """A referenced user, league or achievement does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object, **kwargs: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", **kwargs)


class ValidationError(ProgressionError):
    """Input rejected by a component (e.g. a non-positive XP amount)."""

    status_code = 422

    def __init__(self, message: str, *, field: str | None = None, value: Any = None, **kwargs: Any) -> None:
        self.field = field
        self.value = value
        super().__init__(message, **kwargs)


class InvalidState(ProgressionError):
    """The stored state conflicts with the requested operation."""

    status_code = 409


class RaceLost(ProgressionError):
    """A concurrent writer produced a duplicate current/active row for a user."""

    status_code = 409


class InvariantViolation(ProgressionError):
    """A maintained aggregate diverged from its source of truth.

    Always fatal: logged at error level on creation and never patched.
    """

    status_code = 500

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        logger.error(
            "Invariant violation: %s (user_id=%s, context=%s)",
            message, self.user_id, self.context,
        )
