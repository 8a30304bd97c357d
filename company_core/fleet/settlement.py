"""Trip settlement math shared by trip detail views, reports and the dashboard."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation


logger = logging.getLogger(__name__)


BILLING_TYPE_KM = "KM"
BILLING_TYPE_TON = "Metric Ton"
BILLING_TYPE_DAY = "Day Rent"

BILLING_TYPE_CHOICES = [
    (BILLING_TYPE_KM, "Per KM"),
    (BILLING_TYPE_TON, "Per Metric Ton"),
    (BILLING_TYPE_DAY, "Per Day"),
]

# billing type -> (actual field, planned field) on a trip
MEASUREMENT_FIELDS = {
    BILLING_TYPE_KM: ("actual_km", "km"),
    BILLING_TYPE_TON: ("actual_tons", "tons"),
    BILLING_TYPE_DAY: ("actual_days", "days"),
}

DECIMAL_ZERO = Decimal("0")

DEFAULT_FUEL_COST_PER_LITER = Decimal("80")
DEFAULT_ADVANCE_FRACTION = Decimal("0.35")
DEFAULT_DRIVER_FRACTION = Decimal("0.20")


def to_decimal(value) -> Decimal:
    if value is None:
        return DECIMAL_ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return DECIMAL_ZERO


def _policy_value(configured, name, default) -> Decimal:
    from django.core.exceptions import ImproperlyConfigured

    raw = configured.get(name, default)
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ImproperlyConfigured(
            f"TRIP_SETTLEMENT_POLICY['{name}'] must be a number, got {raw!r}"
        ) from None
    if not value.is_finite() or value < 0:
        raise ImproperlyConfigured(
            f"TRIP_SETTLEMENT_POLICY['{name}'] must be a non-negative number, got {raw!r}"
        )
    return value


@dataclass(frozen=True)
class SettlementPolicy:
    """Fixed business percentages and the fuel price used to settle a trip."""

    fuel_cost_per_liter: Decimal = DEFAULT_FUEL_COST_PER_LITER
    advance_fraction: Decimal = DEFAULT_ADVANCE_FRACTION
    driver_fraction: Decimal = DEFAULT_DRIVER_FRACTION

    @classmethod
    def from_settings(cls) -> "SettlementPolicy":
        """Build the policy from ``settings.TRIP_SETTLEMENT_POLICY`` when present.

        Raises ``ImproperlyConfigured`` for a value that is not a non-negative
        number.
        """
        from django.conf import settings

        configured = getattr(settings, "TRIP_SETTLEMENT_POLICY", None) or {}
        return cls(
            fuel_cost_per_liter=_policy_value(
                configured, "fuel_cost_per_liter", DEFAULT_FUEL_COST_PER_LITER
            ),
            advance_fraction=_policy_value(
                configured, "advance_fraction", DEFAULT_ADVANCE_FRACTION
            ),
            driver_fraction=_policy_value(
                configured, "driver_fraction", DEFAULT_DRIVER_FRACTION
            ),
        )


DEFAULT_POLICY = SettlementPolicy()


@dataclass(frozen=True)
class Settlement:
    gross_amount: Decimal
    fuel_amount: Decimal
    advance_amount: Decimal
    driver_amount: Decimal
    net_earnings: Decimal
    project_rate: Decimal
    actual_value: Decimal
    fuel_used: Decimal
    fuel_cost_per_liter: Decimal

    @classmethod
    def empty(cls, policy: SettlementPolicy = DEFAULT_POLICY) -> "Settlement":
        return cls(
            gross_amount=DECIMAL_ZERO,
            fuel_amount=DECIMAL_ZERO,
            advance_amount=DECIMAL_ZERO,
            driver_amount=DECIMAL_ZERO,
            net_earnings=DECIMAL_ZERO,
            project_rate=DECIMAL_ZERO,
            actual_value=DECIMAL_ZERO,
            fuel_used=DECIMAL_ZERO,
            fuel_cost_per_liter=policy.fuel_cost_per_liter,
        )

    def as_dict(self) -> dict:
        return asdict(self)


def effective_measurement(trip, billing_type: str | None) -> Decimal:
    """Return the actual measurement when recorded, otherwise the planned one.

    Unknown billing types and trips with neither value recorded yield zero.
    """
    fields = MEASUREMENT_FIELDS.get(billing_type)
    if not fields:
        return DECIMAL_ZERO
    actual_field, planned_field = fields
    actual = getattr(trip, actual_field, None)
    if actual is not None:
        return to_decimal(actual)
    planned = getattr(trip, planned_field, None)
    if planned is not None:
        return to_decimal(planned)
    return DECIMAL_ZERO


def compute_settlement(trip, project, policy: SettlementPolicy | None = None) -> Settlement:
    """Settle a single trip against its project's billing rate.

    ``trip`` and ``project`` are read by attribute only, so model instances
    and plain value objects both work. A missing project or a non-positive
    rate yields an all-zero settlement rather than an error.
    """
    policy = policy or DEFAULT_POLICY

    rate = to_decimal(getattr(project, "rate", None)) if project is not None else DECIMAL_ZERO
    if rate <= DECIMAL_ZERO:
        logger.debug(
            "No usable project rate for trip %s; settling to zero.",
            getattr(trip, "trip_code", None) or getattr(trip, "pk", None),
        )
        return Settlement.empty(policy)

    actual_value = effective_measurement(trip, getattr(project, "type", None))
    gross_amount = rate * actual_value

    fuel_used = to_decimal(getattr(trip, "fuel_advance", None))
    fuel_amount = fuel_used * policy.fuel_cost_per_liter

    advance_amount = gross_amount * policy.advance_fraction
    driver_amount = gross_amount * policy.driver_fraction
    net_earnings = gross_amount - fuel_amount - advance_amount - driver_amount

    return Settlement(
        gross_amount=gross_amount,
        fuel_amount=fuel_amount,
        advance_amount=advance_amount,
        driver_amount=driver_amount,
        net_earnings=net_earnings,
        project_rate=rate,
        actual_value=actual_value,
        fuel_used=fuel_used,
        fuel_cost_per_liter=policy.fuel_cost_per_liter,
    )
