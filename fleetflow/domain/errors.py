"""
Error taxonomy for the dispatch core.

Every error carries a stable ``code``, a human-readable ``message`` and a
``context`` dict with the offending values (field, current vs. required
state, limits) so a caller can correct and resubmit.

Two failures are retryable, both raised after the unit of work has been
rolled back so resubmitting the same request is safe: ``PersistenceError``
(the store failed) and a ``StateConflictError`` for a lost serialization
race.
"""

from __future__ import annotations

from typing import Any, Optional

from .enums import EligibilityRule


class FleetFlowError(Exception):
    code = "error"
    retryable = False

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "context": self.context}


class ValidationError(FleetFlowError):
    """Malformed input, rejected before any lookup."""

    code = "validation_error"

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(message, {"field": field, "value": value})
        self.field = field


class OdometerRegressionError(ValidationError):
    """Completion reading below the trip's start odometer.

    Unlike other validation errors this one is raised after the trip has
    been read, since the start odometer lives on the trip.
    """

    code = "odometer_regression"

    def __init__(self, end_odometer: float, start_odometer: float):
        super().__init__(
            "end_odometer",
            f"End odometer ({end_odometer:g}) cannot be less than start "
            f"odometer ({start_odometer:g}).",
            end_odometer,
        )
        self.context["start_odometer"] = start_odometer


class NotFoundError(FleetFlowError):
    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type.capitalize()} {entity_id} not found.",
            {"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class EligibilityRejection(FleetFlowError):
    """One of the trip-creation business rules failed."""

    code = "eligibility_rejected"

    def __init__(
        self,
        rule: EligibilityRule,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, {"rule": rule.value, **(context or {})})
        self.rule = rule


class StateConflictError(FleetFlowError):
    """The entity's current state does not permit the requested transition.

    Also raised when the store aborts a transaction that lost a
    serialization race; that variant is ``retryable`` because nothing was
    committed and the winner's state may still allow the request.
    """

    code = "state_conflict"

    def __init__(
        self,
        message: str,
        *,
        entity_type: Optional[str] = None,
        entity_id: Any = None,
        current: Any = None,
        required: Any = None,
        retryable: bool = False,
    ):
        super().__init__(
            message,
            {
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current": _plain(current),
                "required": _plain(required),
            },
        )
        self.retryable = retryable


class PersistenceError(FleetFlowError):
    """The transactional store failed to commit; nothing was persisted."""

    code = "persistence_error"
    retryable = True


def _plain(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (set, frozenset, list, tuple)):
        return sorted(_plain(v) for v in value)
    return getattr(value, "value", value)
