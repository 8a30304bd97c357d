from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth.models import User
from django.test import SimpleTestCase, TestCase
from django.test.utils import override_settings

from .models import Driver, Project, Trip, Vehicle, VehicleGroup
from .reports import (
    aggregate,
    dashboard_stats,
    driver_reports,
    project_reports,
    trip_reports,
    vehicle_reports,
)
from .settlement import BILLING_TYPE_KM, BILLING_TYPE_TON
from .trip_status import STATUS_COMPLETED, STATUS_UPCOMING


def trip_value(project_id, **overrides):
    values = dict(
        project_id=project_id,
        km=None, tons=None, days=None,
        actual_km=None, actual_tons=None, actual_days=None,
        fuel_advance=Decimal("10"),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class AggregateTests(SimpleTestCase):
    def setUp(self):
        self.projects = {
            1: SimpleNamespace(type=BILLING_TYPE_KM, rate=Decimal("100")),
            2: SimpleNamespace(type=BILLING_TYPE_TON, rate=Decimal("400")),
        }
        self.trips = [
            trip_value(1, km=Decimal("50")),
            trip_value(1, km=Decimal("50"), actual_km=Decimal("70")),
            trip_value(2, tons=Decimal("5"), fuel_advance=Decimal("0")),
        ]

    def test_totals(self):
        summary = aggregate(self.trips, self.projects.get)

        self.assertEqual(summary.total_trips, 3)
        self.assertEqual(summary.total_earnings, Decimal("14000"))
        self.assertEqual(summary.total_advance, Decimal("4900"))
        self.assertEqual(summary.net_earnings, Decimal("1450") + Decimal("2350") + Decimal("900"))
        self.assertEqual(summary.total_fuel_used, Decimal("20"))
        self.assertIsNone(summary.total_km)
        self.assertIsNone(summary.total_tons)
        self.assertIsNone(summary.total_days)

    def test_order_does_not_change_totals(self):
        forward = aggregate(self.trips, self.projects.get)
        backward = aggregate(list(reversed(self.trips)), self.projects.get)

        self.assertEqual(forward, backward)

    def test_measure_sums_effective_values(self):
        km_trips = self.trips[:2]

        summary = aggregate(km_trips, self.projects.get, measure=BILLING_TYPE_KM)

        self.assertEqual(summary.total_km, Decimal("120"))
        self.assertIsNone(summary.total_tons)
        self.assertIsNone(summary.total_days)

    def test_failed_lookup_counts_with_zero_contribution(self):
        def lookup(project_id):
            raise LookupError(project_id)

        summary = aggregate(self.trips + [trip_value(None, km=Decimal("5"))], lookup)

        self.assertEqual(summary.total_trips, 4)
        self.assertEqual(summary.total_earnings, Decimal("0"))
        self.assertEqual(summary.net_earnings, Decimal("0"))

    def test_empty_collection(self):
        summary = aggregate([], self.projects.get, measure=BILLING_TYPE_TON)

        self.assertEqual(summary.total_trips, 0)
        self.assertEqual(summary.total_earnings, Decimal("0"))
        self.assertEqual(summary.total_tons, Decimal("0"))

    @override_settings(TRIP_SETTLEMENT_POLICY={"fuel_cost_per_liter": "100"})
    def test_default_policy_does_not_read_settings(self):
        summary = aggregate(self.trips, self.projects.get)

        self.assertEqual(summary.net_earnings, Decimal("4700"))


class ReportBuilderTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="p")
        self.other = User.objects.create_user(username="other", password="p")
        self.group = VehicleGroup.objects.create(user=self.user, group_name="North Depot")
        self.km_project = self.create_project(self.user, "Port Shuttle", BILLING_TYPE_KM, "100")
        self.ton_project = self.create_project(self.user, "Quarry Run", BILLING_TYPE_TON, "400")
        self.vehicle = Vehicle.objects.create(
            user=self.user,
            registration_number="KA01AB1234",
            make="Tata",
            model="Prima",
            year=2021,
            vehicle_type="Truck",
            fuel_type="Diesel",
            group=self.group,
        )
        self.spare = Vehicle.objects.create(
            user=self.user,
            registration_number="KA01CD5678",
            make="Eicher",
            model="Pro",
            year=2020,
            vehicle_type="Light Vehicle",
            fuel_type="Diesel",
            status="Inactive",
        )
        self.driver = Driver.objects.create(
            user=self.user,
            first_name="Ravi",
            last_name="Kumar",
            email="ravi@example.com",
            mobile="9845000000",
            date_of_birth=date(1985, 3, 14),
            license_number="DL-1",
            license_expiry=date(2030, 1, 1),
        )
        self.trip_a = self.create_trip(self.km_project, date(2024, 5, 1), km=Decimal("50"))
        self.trip_b = self.create_trip(
            self.km_project, date(2024, 5, 2), km=Decimal("50"), actual_km=Decimal("70"),
            status=STATUS_COMPLETED,
        )
        self.trip_c = self.create_trip(
            self.ton_project, date(2024, 5, 2), tons=Decimal("5"), fuel_advance=Decimal("0"),
        )

        # Another tenant's data never shows up.
        foreign_project = self.create_project(self.other, "Elsewhere", BILLING_TYPE_KM, "999")
        Trip.objects.create(
            user=self.other, project=foreign_project, date=date(2024, 5, 1),
            source="X", destination="Y", km=Decimal("1000"), fuel_advance=Decimal("0"),
        )

    @staticmethod
    def create_project(user, name, billing_type, rate):
        return Project.objects.create(
            user=user,
            customer_name="Customer",
            company_name=f"{name} Co",
            project_name=name,
            place="Chennai",
            type=billing_type,
            rate=Decimal(rate),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
        )

    def create_trip(self, project, trip_date, **fields):
        values = dict(
            user=self.user,
            project=project,
            vehicle=self.vehicle,
            driver=self.driver,
            date=trip_date,
            source="Yard",
            destination="Port",
            fuel_advance=Decimal("10"),
        )
        values.update(fields)
        return Trip.objects.create(**values)

    def test_vehicle_report(self):
        report = vehicle_reports(self.user)

        self.assertEqual(report["total_vehicles"], 2)
        rows = {row["registration_number"]: row for row in report["vehicles"]}
        busy = rows["KA01AB1234"]
        self.assertEqual(busy["total_trips"], 3)
        self.assertEqual(busy["total_earnings"], Decimal("14000"))
        self.assertEqual(busy["fuel_used"], Decimal("20"))
        self.assertEqual(busy["company"], "North Depot")
        idle = rows["KA01CD5678"]
        self.assertEqual(idle["total_trips"], 0)
        self.assertEqual(idle["company"], "No Group")
        self.assertEqual(report["total_earnings"], Decimal("14000"))

    def test_vehicle_report_filters(self):
        active_only = vehicle_reports(self.user, status="Active")
        one_day = vehicle_reports(self.user, status="Active", day=date(2024, 5, 2))

        self.assertEqual(active_only["total_vehicles"], 1)
        self.assertEqual(one_day["vehicles"][0]["total_trips"], 2)

    def test_driver_report_totals_km(self):
        report = driver_reports(self.user)

        row = report["drivers"][0]
        self.assertEqual(row["name"], "Ravi Kumar")
        self.assertEqual(row["total_trips"], 3)
        self.assertEqual(row["total_km"], Decimal("120"))

    def test_project_report_reports_type_specific_total(self):
        report = project_reports(self.user)

        rows = {row["name"]: row for row in report["projects"]}
        km_row = rows["Port Shuttle"]
        self.assertEqual(km_row["total_trips"], 2)
        self.assertEqual(km_row["total_km"], Decimal("120"))
        self.assertIsNone(km_row["total_tons"])
        self.assertIsNone(km_row["total_days"])
        self.assertEqual(km_row["net_earnings"], Decimal("3800"))
        ton_row = rows["Quarry Run"]
        self.assertEqual(ton_row["total_tons"], Decimal("5"))
        self.assertIsNone(ton_row["total_km"])
        self.assertEqual(report["total_projects"], 2)

    def test_trip_report_falls_back_for_deleted_project(self):
        self.ton_project.delete()

        report = trip_reports(self.user)

        self.assertEqual(report["total_trips"], 3)
        orphan = next(row for row in report["trips"] if row["id"] == self.trip_c.pk)
        self.assertEqual(orphan["project_name"], "Unknown Project")
        self.assertEqual(orphan["total_amount"], Decimal("0"))
        self.assertEqual(orphan["tons"], Decimal("5"))
        self.assertIsNone(orphan["km"])
        self.assertEqual(report["total_earnings"], Decimal("12000"))

    def test_trip_report_status_filter(self):
        report = trip_reports(self.user, status=STATUS_UPCOMING)

        self.assertEqual({row["id"] for row in report["trips"]}, {self.trip_a.pk, self.trip_c.pk})

    def test_dashboard_stats(self):
        stats = dashboard_stats(self.user)

        self.assertEqual(stats["vehicles"], {"total": 2, "active": 1})
        self.assertEqual(stats["drivers"], {"total": 1, "active": 1})
        self.assertEqual(stats["projects"], {"total": 2, "active": 2})
        self.assertEqual(stats["trips"], {"total": 3, "completed": 1})
        self.assertEqual(stats["financials"]["total_earnings"], Decimal("14000"))
        self.assertEqual(stats["financials"]["total_advance"], Decimal("4900"))

    @override_settings(TRIP_SETTLEMENT_POLICY={"fuel_cost_per_liter": "100"})
    def test_dashboard_uses_configured_policy(self):
        stats = dashboard_stats(self.user)

        self.assertEqual(stats["financials"]["net_earnings"], Decimal("1250") + Decimal("2150") + Decimal("900"))
