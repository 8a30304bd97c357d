"""Trip status transitions and the timestamp side effects bound to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from django.utils import timezone


STATUS_UPCOMING = "Upcoming"
STATUS_ON_PROCESS = "On Process"
STATUS_COMPLETED = "Completed"
STATUS_CANCELLED = "Cancelled"

STATUS_CHOICES = [
    (STATUS_UPCOMING, "Upcoming"),
    (STATUS_ON_PROCESS, "On Process"),
    (STATUS_COMPLETED, "Completed"),
    (STATUS_CANCELLED, "Cancelled"),
]

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

ALLOWED_TRANSITIONS = {
    STATUS_UPCOMING: frozenset({STATUS_ON_PROCESS, STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_ON_PROCESS: frozenset({STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_COMPLETED: frozenset({STATUS_ON_PROCESS}),
    STATUS_CANCELLED: frozenset({STATUS_UPCOMING, STATUS_ON_PROCESS}),
}

ACTUAL_FIELDS = ("actual_km", "actual_tons", "actual_days")


class TripStatusError(Exception):
    """Base class for trip status rule violations."""


class InvalidTransition(TripStatusError):
    def __init__(self, current_status, requested_status):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}"
        )


class ActualsLocked(TripStatusError):
    def __init__(self, status, fields):
        self.status = status
        self.fields = tuple(fields)
        super().__init__(
            f"Actual values ({', '.join(self.fields)}) cannot be revised on a {status} trip"
        )


@dataclass(frozen=True)
class TripTimestamps:
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


@dataclass(frozen=True)
class TransitionResult:
    status: str
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    actuals: dict = field(default_factory=dict)


def allowed_transitions(current_status: str) -> frozenset:
    return ALLOWED_TRANSITIONS.get(current_status, frozenset())


def can_transition(current_status: str, requested_status: str) -> bool:
    return requested_status in allowed_transitions(current_status)


def _normalize_actual(name: str, value):
    if value is None or value == "":
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{name} must be a number") from None
    if not number.is_finite() or number < 0:
        raise ValueError(f"{name} must be a non-negative number")
    return number


def normalize_actuals(actuals: Mapping | None) -> dict:
    """Keep only supplied actual fields, coercing blanks to ``None``."""
    if not actuals:
        return {}
    return {
        name: _normalize_actual(name, actuals[name])
        for name in ACTUAL_FIELDS
        if name in actuals
    }


def transition(
    current_status: str,
    requested_status: str,
    timestamps: TripTimestamps | None = None,
    actuals: Mapping | None = None,
    *,
    requested_start_time: Optional[datetime] = None,
    requested_end_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Validate a status change and return the trip's new status snapshot.

    Nothing is persisted here; the caller writes the result back. Explicit
    start/end times supplied by the caller always win over the automatic
    ones.
    """
    if not can_transition(current_status, requested_status):
        raise InvalidTransition(current_status, requested_status)

    timestamps = timestamps or TripTimestamps()
    now = now or timezone.now()
    start_time = timestamps.start_time
    end_time = timestamps.end_time

    if (
        requested_status == STATUS_ON_PROCESS
        and current_status == STATUS_UPCOMING
        and start_time is None
    ):
        start_time = now

    if requested_status == STATUS_COMPLETED and end_time is None:
        end_time = now

    if requested_start_time is not None:
        start_time = requested_start_time
    if requested_end_time is not None:
        end_time = requested_end_time

    return TransitionResult(
        status=requested_status,
        start_time=start_time,
        end_time=end_time,
        actuals=normalize_actuals(actuals),
    )


def ensure_actuals_revisable(status: str, current: Mapping, incoming: Mapping) -> None:
    """Reject changes to already-recorded actual values on a terminal trip."""
    if status not in TERMINAL_STATUSES:
        return
    locked = [
        name
        for name in ACTUAL_FIELDS
        if name in incoming
        and current.get(name) is not None
        and incoming[name] != current.get(name)
    ]
    if locked:
        raise ActualsLocked(status, locked)
