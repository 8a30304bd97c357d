from __future__ import annotations

import datetime
import logging
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from fleet.models import Driver, Project, Trip, Vehicle, VehicleGroup
from fleet.settlement import BILLING_TYPE_DAY, BILLING_TYPE_KM, BILLING_TYPE_TON, MEASUREMENT_FIELDS
from fleet.trip_status import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_ON_PROCESS,
    STATUS_UPCOMING,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Seed demo fleet data (groups, vehicles, drivers, projects, trips)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--username",
            help="Username to attach demo fleet data to.",
        )
        parser.add_argument(
            "--trips",
            type=int,
            default=12,
            help="Number of trips to create for the demo.",
        )

    def handle(self, *args, **options):
        username = options.get("username")
        trip_target = max(int(options.get("trips") or 0), 0)

        UserModel = get_user_model()
        if username:
            try:
                user = UserModel.objects.get(username=username)
            except UserModel.DoesNotExist as exc:
                raise CommandError(f"User not found: {username}") from exc
        else:
            user = UserModel.objects.order_by("id").first()
            if not user:
                raise CommandError("No users exist. Create a user first.")

        with transaction.atomic():
            self._seed(user, trip_target)

    def _seed(self, user, trip_target):
        today = timezone.localdate()

        depot, _ = VehicleGroup.objects.get_or_create(
            user=user,
            group_name="North Depot",
            defaults={"description": "Vehicles based at the northern yard"},
        )
        contractors, _ = VehicleGroup.objects.get_or_create(
            user=user,
            group_name="Contract Haulage",
            defaults={"description": "Vehicles leased to contract customers"},
        )

        vehicle_rows = [
            ("KA01AB1234", "Tata", "Prima", 2021, "Truck", "Diesel", depot),
            ("KA01CD5678", "Ashok Leyland", "Boss", 2020, "Heavy Vehicle", "Diesel", depot),
            ("KA02EF9012", "Eicher", "Pro 2049", 2022, "Light Vehicle", "Diesel", contractors),
            ("KA03GH3456", "Mahindra", "Furio", 2019, "Truck", "CNG", None),
        ]
        vehicles = []
        for registration, make, model, year, vehicle_type, fuel_type, group in vehicle_rows:
            vehicle, _ = Vehicle.objects.get_or_create(
                user=user,
                registration_number=registration,
                defaults={
                    "make": make,
                    "model": model,
                    "year": year,
                    "vehicle_type": vehicle_type,
                    "fuel_type": fuel_type,
                    "cargo_capacity": 12000,
                    "insurance_expiry": today + datetime.timedelta(days=200),
                    "group": group,
                },
            )
            vehicles.append(vehicle)

        driver_rows = [
            ("Ravi", "Kumar", "DL-0420110012345"),
            ("Anita", "Sharma", "DL-0420150067890"),
            ("Suresh", "Naidu", "DL-0420180011223"),
        ]
        drivers = []
        for idx, (first_name, last_name, license_number) in enumerate(driver_rows):
            driver, _ = Driver.objects.get_or_create(
                user=user,
                license_number=license_number,
                defaults={
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": f"{first_name.lower()}.{last_name.lower()}@example.com",
                    "mobile": f"98450{idx:05d}",
                    "date_of_birth": datetime.date(1985 + idx, 3, 14),
                    "license_expiry": today + datetime.timedelta(days=365 * (idx + 1)),
                    "experience": 5 + idx * 3,
                    "vehicle_type": "Heavy Vehicle",
                    "rating": Decimal("4.20"),
                },
            )
            drivers.append(driver)

        project_rows = [
            ("Quarry Run", "Stone Works Ltd", BILLING_TYPE_TON, Decimal("450.00")),
            ("Port Shuttle", "Harbour Logistics", BILLING_TYPE_KM, Decimal("38.50")),
            ("Site Rental", "Metro Builders", BILLING_TYPE_DAY, Decimal("6500.00")),
        ]
        projects = []
        for project_name, company_name, billing_type, rate in project_rows:
            project, _ = Project.objects.get_or_create(
                user=user,
                project_name=project_name,
                defaults={
                    "customer_name": f"{company_name} Accounts",
                    "company_name": company_name,
                    "place": "Bengaluru",
                    "type": billing_type,
                    "rate": rate,
                    "start_date": today - datetime.timedelta(days=60),
                    "end_date": today + datetime.timedelta(days=120),
                },
            )
            projects.append(project)

        statuses = [STATUS_COMPLETED, STATUS_COMPLETED, STATUS_ON_PROCESS, STATUS_UPCOMING, STATUS_CANCELLED]
        existing = Trip.objects.filter(user=user).count()
        created_trips = 0
        for idx in range(existing, trip_target):
            project = projects[idx % len(projects)]
            status = statuses[idx % len(statuses)]
            planned = Decimal(20 + idx * 5)
            measurement = {
                BILLING_TYPE_KM: {"km": planned * 10},
                BILLING_TYPE_TON: {"tons": planned},
                BILLING_TYPE_DAY: {"days": Decimal(1 + idx % 4)},
            }[project.type]
            trip = Trip(
                user=user,
                project=project,
                vehicle=vehicles[idx % len(vehicles)],
                driver=drivers[idx % len(drivers)],
                date=today - datetime.timedelta(days=idx),
                source="Yard",
                destination=project.place,
                status=status,
                fuel_advance=Decimal(40 + idx * 2),
                **measurement,
            )
            if status in (STATUS_ON_PROCESS, STATUS_COMPLETED):
                trip.start_time = timezone.now() - datetime.timedelta(days=idx, hours=8)
            if status == STATUS_COMPLETED:
                trip.end_time = timezone.now() - datetime.timedelta(days=idx)
                actual_field, _planned = MEASUREMENT_FIELDS[project.type]
                setattr(trip, actual_field, next(iter(measurement.values())) + Decimal("1.5"))
            trip.save()
            created_trips += 1

        logger.info("Seeded fleet demo data for %s (%s new trips)", user.username, created_trips)
        self.stdout.write(
            self.style.SUCCESS(
                f"Fleet demo ready for {user.username}: {len(vehicles)} vehicles, "
                f"{len(drivers)} drivers, {len(projects)} projects, {created_trips} new trips."
            )
        )
