"""Settlement rollups for the vehicle, driver, project and trip reports."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date as date_cls, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional

from django.core.exceptions import ObjectDoesNotExist

from .models import ACTIVE, Driver, Project, Trip, Vehicle
from .settlement import (
    BILLING_TYPE_DAY,
    BILLING_TYPE_KM,
    BILLING_TYPE_TON,
    DECIMAL_ZERO,
    DEFAULT_POLICY,
    MEASUREMENT_FIELDS,
    SettlementPolicy,
    compute_settlement,
    effective_measurement,
)
from .trip_status import STATUS_COMPLETED


logger = logging.getLogger(__name__)

ProjectLookup = Callable[[object], Optional[object]]

MEASURE_TOTAL_FIELDS = {
    BILLING_TYPE_KM: "total_km",
    BILLING_TYPE_TON: "total_tons",
    BILLING_TYPE_DAY: "total_days",
}


@dataclass
class TripSummary:
    total_trips: int = 0
    total_earnings: Decimal = DECIMAL_ZERO
    total_advance: Decimal = DECIMAL_ZERO
    net_earnings: Decimal = DECIMAL_ZERO
    total_fuel_used: Decimal = DECIMAL_ZERO
    total_km: Optional[Decimal] = None
    total_tons: Optional[Decimal] = None
    total_days: Optional[Decimal] = None

    def as_dict(self) -> dict:
        return asdict(self)


def _resolve_project(project_lookup: ProjectLookup, project_id):
    if project_id is None:
        return None
    try:
        return project_lookup(project_id)
    except (LookupError, ObjectDoesNotExist):
        logger.debug("Project %s could not be resolved; settling trip to zero.", project_id)
        return None


def aggregate(
    trips: Iterable,
    project_lookup: ProjectLookup,
    policy: SettlementPolicy | None = None,
    measure: str | None = None,
) -> TripSummary:
    """Sum settlements for ``trips``.

    ``project_lookup`` maps a project id to a project (or ``None``). When
    ``measure`` names a billing type, the matching ``total_km`` /
    ``total_tons`` / ``total_days`` field carries the sum of effective values;
    the other two stay ``None``.
    """
    policy = policy or DEFAULT_POLICY
    summary = TripSummary()
    measure_field = MEASURE_TOTAL_FIELDS.get(measure)
    if measure_field:
        setattr(summary, measure_field, DECIMAL_ZERO)

    for trip in trips:
        project = _resolve_project(project_lookup, getattr(trip, "project_id", None))
        settlement = compute_settlement(trip, project, policy)
        summary.total_trips += 1
        summary.total_earnings += settlement.gross_amount
        summary.total_advance += settlement.advance_amount
        summary.net_earnings += settlement.net_earnings
        summary.total_fuel_used += settlement.fuel_used
        if measure_field:
            setattr(
                summary,
                measure_field,
                getattr(summary, measure_field) + effective_measurement(trip, measure),
            )
    return summary


def project_lookup_for(user) -> ProjectLookup:
    """Return a lookup over every project owned by ``user``."""
    projects = {project.pk: project for project in Project.objects.filter(user=user)}
    return projects.get


def _day_range(day: date_cls | None) -> dict:
    if not day:
        return {}
    return {"date__gte": day, "date__lt": day + timedelta(days=1)}


def _grand_totals(rows: list) -> dict:
    return {
        "total_trips": sum(row["total_trips"] for row in rows),
        "total_earnings": sum((row["total_earnings"] for row in rows), DECIMAL_ZERO),
        "total_advance": sum((row["total_advance"] for row in rows), DECIMAL_ZERO),
        "net_earnings": sum((row["net_earnings"] for row in rows), DECIMAL_ZERO),
    }


def vehicle_reports(user, status: str | None = None, day: date_cls | None = None, policy=None) -> dict:
    policy = policy or SettlementPolicy.from_settings()
    vehicles = Vehicle.objects.filter(user=user).select_related("group")
    if status:
        vehicles = vehicles.filter(status=status)
    lookup = project_lookup_for(user)

    rows = []
    for vehicle in vehicles:
        trips = Trip.objects.filter(user=user, vehicle=vehicle, **_day_range(day))
        summary = aggregate(trips, lookup, policy)
        rows.append({
            "id": vehicle.pk,
            "vehicle_code": vehicle.vehicle_code,
            "name": vehicle.display_name,
            "registration_number": vehicle.registration_number,
            "status": vehicle.status,
            "total_trips": summary.total_trips,
            "total_earnings": summary.total_earnings,
            "total_advance": summary.total_advance,
            "net_earnings": summary.net_earnings,
            "fuel_used": summary.total_fuel_used,
            "insurance_expiry": vehicle.insurance_expiry,
            "company": vehicle.group.group_name if vehicle.group else "No Group",
            "vehicle_type": vehicle.vehicle_type,
            "make": vehicle.make,
            "model": vehicle.model,
            "year": vehicle.year,
        })

    return {"vehicles": rows, "total_vehicles": len(rows), **_grand_totals(rows)}


def driver_reports(user, status: str | None = None, day: date_cls | None = None, policy=None) -> dict:
    policy = policy or SettlementPolicy.from_settings()
    drivers = Driver.objects.filter(user=user)
    if status:
        drivers = drivers.filter(status=status)
    lookup = project_lookup_for(user)

    rows = []
    for driver in drivers:
        trips = Trip.objects.filter(user=user, driver=driver, **_day_range(day))
        summary = aggregate(trips, lookup, policy, measure=BILLING_TYPE_KM)
        rows.append({
            "id": driver.pk,
            "driver_code": driver.driver_code,
            "name": driver.full_name,
            "mobile": driver.mobile,
            "license_number": driver.license_number,
            "status": driver.status,
            "total_trips": summary.total_trips,
            "total_earnings": summary.total_earnings,
            "total_advance": summary.total_advance,
            "net_earnings": summary.net_earnings,
            "total_km": summary.total_km,
            "rating": driver.rating,
            "experience": driver.experience,
            "license_expiry": driver.license_expiry,
        })

    return {"drivers": rows, "total_drivers": len(rows), **_grand_totals(rows)}


def project_reports(user, status: str | None = None, day: date_cls | None = None, policy=None) -> dict:
    policy = policy or SettlementPolicy.from_settings()
    projects = Project.objects.filter(user=user)
    if status:
        projects = projects.filter(status=status)

    rows = []
    for project in projects:
        trips = Trip.objects.filter(user=user, project=project, **_day_range(day))
        # Every trip here belongs to ``project``; no lookup round-trip needed.
        summary = aggregate(trips, lambda _pk, project=project: project, policy, measure=project.type)
        rows.append({
            "id": project.pk,
            "project_code": project.project_code,
            "name": project.project_name,
            "type": project.type,
            "status": project.status,
            "total_trips": summary.total_trips,
            "total_earnings": summary.total_earnings,
            "total_advance": summary.total_advance,
            "net_earnings": summary.net_earnings,
            "total_km": summary.total_km,
            "total_tons": summary.total_tons,
            "total_days": summary.total_days,
            "start_date": project.start_date,
            "end_date": project.end_date,
            "company": project.company_name,
            "customer": project.customer_name,
            "rate": project.rate,
        })

    return {"projects": rows, "total_projects": len(rows), **_grand_totals(rows)}


def _effective_or_none(trip, billing_type):
    actual_field, planned_field = MEASUREMENT_FIELDS[billing_type]
    if getattr(trip, actual_field) is None and getattr(trip, planned_field) is None:
        return None
    return effective_measurement(trip, billing_type)


def trip_reports(user, status: str | None = None, day: date_cls | None = None, policy=None) -> dict:
    policy = policy or SettlementPolicy.from_settings()
    trips = Trip.objects.filter(user=user, **_day_range(day)).select_related("project", "vehicle", "driver")
    if status:
        trips = trips.filter(status=status)

    rows = []
    for trip in trips:
        settlement = compute_settlement(trip, trip.project, policy)
        rows.append({
            "id": trip.pk,
            "trip_code": trip.trip_code,
            "project_name": trip.project.project_name if trip.project else "Unknown Project",
            "vehicle_name": trip.vehicle.registration_number if trip.vehicle else "Unknown Vehicle",
            "driver_name": trip.driver.full_name if trip.driver else "Unknown Driver",
            "date": trip.date,
            "status": trip.status,
            "total_amount": settlement.gross_amount,
            "fuel_amount": settlement.fuel_amount,
            "advance_amount": settlement.advance_amount,
            "driver_amount": settlement.driver_amount,
            "net_earnings": settlement.net_earnings,
            "fuel_used": settlement.fuel_used,
            "source": trip.source,
            "destination": trip.destination,
            "km": _effective_or_none(trip, BILLING_TYPE_KM),
            "tons": _effective_or_none(trip, BILLING_TYPE_TON),
            "days": _effective_or_none(trip, BILLING_TYPE_DAY),
            "company": trip.project.company_name if trip.project else "Unknown Company",
            "project_type": trip.project.type if trip.project else None,
            "project_rate": trip.project.rate if trip.project else None,
        })

    return {
        "trips": rows,
        "total_trips": len(rows),
        "total_earnings": sum((row["total_amount"] for row in rows), DECIMAL_ZERO),
        "total_advance": sum((row["advance_amount"] for row in rows), DECIMAL_ZERO),
        "net_earnings": sum((row["net_earnings"] for row in rows), DECIMAL_ZERO),
    }


def dashboard_stats(user, policy=None) -> dict:
    policy = policy or SettlementPolicy.from_settings()
    vehicles = Vehicle.objects.filter(user=user)
    drivers = Driver.objects.filter(user=user)
    projects = Project.objects.filter(user=user)
    trips = Trip.objects.filter(user=user)

    summary = aggregate(trips, project_lookup_for(user), policy)

    return {
        "vehicles": {"total": vehicles.count(), "active": vehicles.filter(status=ACTIVE).count()},
        "drivers": {"total": drivers.count(), "active": drivers.filter(status=ACTIVE).count()},
        "projects": {"total": projects.count(), "active": projects.filter(status=ACTIVE).count()},
        "trips": {"total": summary.total_trips, "completed": trips.filter(status=STATUS_COMPLETED).count()},
        "financials": {
            "total_earnings": summary.total_earnings,
            "total_advance": summary.total_advance,
            "net_earnings": summary.net_earnings,
        },
    }
