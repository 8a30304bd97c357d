import base64
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase
from django.test.utils import override_settings
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from fleet.models import Driver, Project, Trip, Vehicle, VehicleGroup
from fleet.settlement import BILLING_TYPE_KM
from fleet.trip_status import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_ON_PROCESS,
    STATUS_UPCOMING,
)


class FleetAPITestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="secret-pass")
        self.other = User.objects.create_user(username="other", password="secret-pass")
        self.token = Token.objects.create(user=self.user)
        self.client = APIClient()
        self.client.credentials(HTTP_TOKEN=f"Bearer {self.token.key}")

        self.project = self.create_project(self.user)
        self.vehicle = self.create_vehicle(self.user, "KA01AB1234")
        self.driver = self.create_driver(self.user, "ravi@example.com", "DL-1")

    @staticmethod
    def create_project(user, **fields):
        values = dict(
            user=user,
            customer_name="Acme",
            company_name="Acme Logistics",
            project_name="Port Shuttle",
            place="Chennai",
            type=BILLING_TYPE_KM,
            rate=Decimal("100"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
        )
        values.update(fields)
        return Project.objects.create(**values)

    @staticmethod
    def create_vehicle(user, registration, **fields):
        values = dict(
            user=user,
            registration_number=registration,
            make="Tata",
            model="Prima",
            year=2021,
            vehicle_type="Truck",
            fuel_type="Diesel",
        )
        values.update(fields)
        return Vehicle.objects.create(**values)

    @staticmethod
    def create_driver(user, email, license_number, **fields):
        values = dict(
            user=user,
            first_name="Ravi",
            last_name="Kumar",
            email=email,
            mobile="9845000000",
            date_of_birth=date(1985, 3, 14),
            license_number=license_number,
            license_expiry=date(2030, 1, 1),
        )
        values.update(fields)
        return Driver.objects.create(**values)

    def create_trip(self, **fields):
        values = dict(
            user=self.user,
            project=self.project,
            vehicle=self.vehicle,
            driver=self.driver,
            date=date(2024, 5, 1),
            source="Yard",
            destination="Port",
            km=Decimal("50"),
            fuel_advance=Decimal("10"),
        )
        values.update(fields)
        return Trip.objects.create(**values)

    def trip_payload(self, **overrides):
        payload = {
            "project": self.project.pk,
            "vehicle": self.vehicle.pk,
            "driver": self.driver.pk,
            "date": "2024-05-01",
            "source": "Yard",
            "destination": "Port",
            "km": "50",
            "fuel_advance": "10",
        }
        payload.update(overrides)
        return payload


class AuthenticationTests(FleetAPITestCase):
    def test_login_token_returns_key(self):
        response = APIClient().post(
            "/api/auth/login-token/",
            {"username": "owner", "password": "secret-pass"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["token"], self.token.key)

    def test_requests_without_token_are_rejected(self):
        response = APIClient().get("/api/vehicles/")

        self.assertEqual(response.status_code, 401)

    def test_authorization_bearer_header_accepted(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {self.token.key}")

        response = client.get("/api/auth/profile/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["username"], "owner")

    def test_invalid_token_rejected(self):
        client = APIClient()
        client.credentials(HTTP_TOKEN="Bearer not-a-real-key")

        self.assertEqual(client.get("/api/auth/profile/").status_code, 401)

    def test_blank_token_header_is_treated_as_anonymous(self):
        client = APIClient()
        client.credentials(HTTP_TOKEN="   ")

        self.assertEqual(client.get("/api/vehicles/").status_code, 401)

        client.credentials(HTTP_TOKEN="   ", HTTP_AUTHORIZATION=f"Bearer {self.token.key}")

        self.assertEqual(client.get("/api/vehicles/").status_code, 200)

    def test_health_is_public(self):
        response = APIClient().get("/api/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "ok")


@override_settings(BASIC_AUTH_USERNAME="fleet", BASIC_AUTH_PASSWORD="gate-pass")
class BasicAuthGateTests(FleetAPITestCase):
    @staticmethod
    def basic(username, password):
        encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
        return f"Basic {encoded}"

    def test_missing_credentials_rejected(self):
        response = self.client.get("/api/vehicles/")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["status"], "error")
        self.assertIn("Basic", response["WWW-Authenticate"])

    def test_wrong_credentials_rejected(self):
        self.client.credentials(
            HTTP_TOKEN=f"Bearer {self.token.key}",
            HTTP_AUTHORIZATION=self.basic("fleet", "wrong"),
        )

        self.assertEqual(self.client.get("/api/vehicles/").status_code, 401)

    def test_valid_credentials_pass_through_to_token_auth(self):
        self.client.credentials(
            HTTP_TOKEN=f"Bearer {self.token.key}",
            HTTP_AUTHORIZATION=self.basic("fleet", "gate-pass"),
        )

        response = self.client.get("/api/vehicles/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)

    def test_health_checks_are_exempt(self):
        self.assertEqual(APIClient().get("/healthz/").status_code, 200)
        self.assertEqual(APIClient().get("/api/health/").status_code, 200)


class VehicleGroupAPITests(FleetAPITestCase):
    def test_duplicate_group_name_rejected(self):
        VehicleGroup.objects.create(user=self.user, group_name="North Depot")

        response = self.client.post("/api/vehicle-groups/", {"group_name": "North Depot"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("group_name", response.data)

    def test_same_group_name_allowed_for_other_tenant(self):
        VehicleGroup.objects.create(user=self.other, group_name="North Depot")

        response = self.client.post("/api/vehicle-groups/", {"group_name": "North Depot"}, format="json")

        self.assertEqual(response.status_code, 201)

    def test_delete_refused_while_vehicles_assigned(self):
        group = VehicleGroup.objects.create(user=self.user, group_name="North Depot")
        self.vehicle.group = group
        self.vehicle.save()

        response = self.client.delete(f"/api/vehicle-groups/{group.pk}/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["vehicle_count"], 1)
        self.assertTrue(VehicleGroup.objects.filter(pk=group.pk).exists())

    def test_toggle_and_vehicles(self):
        group = VehicleGroup.objects.create(user=self.user, group_name="North Depot")
        self.vehicle.group = group
        self.vehicle.save()

        toggled = self.client.patch(f"/api/vehicle-groups/{group.pk}/toggle-status/")
        listed = self.client.get(f"/api/vehicle-groups/{group.pk}/vehicles/")
        filtered = self.client.get("/api/vehicle-groups/?is_active=false")

        self.assertEqual(toggled.status_code, 200)
        self.assertFalse(toggled.data["is_active"])
        self.assertEqual([row["id"] for row in listed.data], [self.vehicle.pk])
        self.assertEqual(filtered.data["count"], 1)


class VehicleAPITests(FleetAPITestCase):
    def test_create_normalizes_registration_and_generates_code(self):
        response = self.client.post(
            "/api/vehicles/",
            {
                "registration_number": "ka05xy0001",
                "make": "Eicher",
                "model": "Pro",
                "year": 2022,
                "vehicle_type": "Light Vehicle",
                "fuel_type": "Diesel",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["registration_number"], "KA05XY0001")
        self.assertEqual(response.data["vehicle_code"], "VEH002")
        self.assertTrue(response.data["is_available"])

    def test_duplicate_registration_rejected(self):
        response = self.client.post(
            "/api/vehicles/",
            {
                "registration_number": "ka01ab1234",
                "make": "Tata",
                "model": "Prima",
                "year": 2021,
                "vehicle_type": "Truck",
                "fuel_type": "Diesel",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("registration_number", response.data)

    def test_cannot_assign_foreign_group(self):
        foreign_group = VehicleGroup.objects.create(user=self.other, group_name="Elsewhere")

        response = self.client.patch(
            f"/api/vehicles/{self.vehicle.pk}/", {"group": foreign_group.pk}, format="json"
        )

        self.assertEqual(response.status_code, 400)

    def test_other_tenant_records_are_invisible(self):
        foreign = self.create_vehicle(self.other, "TN09ZZ9999")

        listed = self.client.get("/api/vehicles/")
        detail = self.client.get(f"/api/vehicles/{foreign.pk}/")

        self.assertEqual([row["id"] for row in listed.data["results"]], [self.vehicle.pk])
        self.assertEqual(detail.status_code, 404)

    def test_search_and_filters(self):
        self.create_vehicle(self.user, "KA09QQ0001", make="Volvo", status="Maintenance")

        by_search = self.client.get("/api/vehicles/?search=volvo")
        by_status = self.client.get("/api/vehicles/?status=Active")

        self.assertEqual(by_search.data["count"], 1)
        self.assertEqual(by_search.data["results"][0]["make"], "Volvo")
        self.assertEqual(by_status.data["count"], 1)

    def test_toggle_status(self):
        response = self.client.patch(f"/api/vehicles/{self.vehicle.pk}/toggle-status/")

        self.assertEqual(response.data["status"], "Inactive")
        self.assertFalse(response.data["is_available"])

        response = self.client.patch(f"/api/vehicles/{self.vehicle.pk}/toggle-status/")
        self.assertEqual(response.data["status"], "Active")

    def test_stats(self):
        self.create_vehicle(self.user, "KA09QQ0001", status="Repair")

        response = self.client.get("/api/vehicles/stats/")

        self.assertEqual(response.data["total_vehicles"], 2)
        self.assertEqual(response.data["active_vehicles"], 1)
        self.assertEqual(response.data["repair_vehicles"], 1)
        self.assertEqual(response.data["available_vehicles"], 1)


class DriverAPITests(FleetAPITestCase):
    def test_toggle_status_updates_availability(self):
        response = self.client.patch(f"/api/drivers/{self.driver.pk}/toggle-status/")

        self.assertEqual(response.data["status"], "Inactive")
        self.assertFalse(response.data["is_available"])

    def test_duplicate_email_rejected_case_insensitively(self):
        response = self.client.post(
            "/api/drivers/",
            {
                "first_name": "Anita",
                "last_name": "Sharma",
                "email": "RAVI@example.com",
                "mobile": "9845000001",
                "date_of_birth": "1990-01-01",
                "license_number": "DL-2",
                "license_expiry": "2031-01-01",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("email", response.data)


class ProjectAPITests(FleetAPITestCase):
    def test_end_before_start_rejected(self):
        response = self.client.patch(
            f"/api/projects/{self.project.pk}/", {"end_date": "2023-06-01"}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("end_date", response.data)

    def test_toggle_status(self):
        response = self.client.post(f"/api/projects/{self.project.pk}/toggle-status/")

        self.assertEqual(response.data["status"], "Completed")


class TripAPITests(FleetAPITestCase):
    def test_create_trip_returns_financials(self):
        response = self.client.post("/api/trips/", self.trip_payload(), format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], STATUS_UPCOMING)
        self.assertTrue(response.data["trip_code"].startswith("TRP"))
        financials = response.data["financials"]
        self.assertEqual(financials["gross_amount"], Decimal("5000"))
        self.assertEqual(financials["fuel_amount"], Decimal("800"))
        self.assertEqual(financials["advance_amount"], Decimal("1750"))
        self.assertEqual(financials["driver_amount"], Decimal("1000"))
        self.assertEqual(financials["net_earnings"], Decimal("1450"))

    def test_create_trip_ignores_requested_status(self):
        response = self.client.post(
            "/api/trips/", self.trip_payload(status=STATUS_COMPLETED), format="json"
        )

        self.assertEqual(response.data["status"], STATUS_UPCOMING)

    def test_foreign_project_rejected(self):
        foreign_project = self.create_project(self.other)

        response = self.client.post(
            "/api/trips/", self.trip_payload(project=foreign_project.pk), format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("project", response.data)

    def test_unavailable_vehicle_rejected(self):
        self.vehicle.status = "Maintenance"
        self.vehicle.save()

        response = self.client.post("/api/trips/", self.trip_payload(), format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("vehicle", response.data)

    def test_pagination_limit(self):
        for _ in range(3):
            self.create_trip()

        response = self.client.get("/api/trips/?limit=2")

        self.assertEqual(response.data["count"], 3)
        self.assertEqual(len(response.data["results"]), 2)
        self.assertIsNotNone(response.data["next"])

    def test_date_filters(self):
        self.create_trip(date=date(2024, 4, 1))
        self.create_trip(date=date(2024, 6, 1))

        response = self.client.get("/api/trips/?date_from=2024-05-01&date_to=2024-05-31")

        self.assertEqual(response.data["count"], 0)
        self.create_trip(date=date(2024, 5, 15))
        response = self.client.get("/api/trips/?date_from=2024-05-01&date_to=2024-05-31")
        self.assertEqual(response.data["count"], 1)

    def test_start_trip_sets_start_time(self):
        trip = self.create_trip()

        response = self.client.patch(
            f"/api/trips/{trip.pk}/status/", {"status": STATUS_ON_PROCESS}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        trip.refresh_from_db()
        self.assertEqual(trip.status, STATUS_ON_PROCESS)
        self.assertIsNotNone(trip.start_time)
        self.assertIsNone(trip.end_time)

    def test_complete_with_actuals_and_notes(self):
        trip = self.create_trip(status=STATUS_ON_PROCESS)
        end = datetime(2024, 5, 1, 18, 0, tzinfo=dt_timezone.utc)

        response = self.client.patch(
            f"/api/trips/{trip.pk}/status/",
            {
                "status": STATUS_COMPLETED,
                "actual_km": "70",
                "notes": "Detour via ring road",
                "end_time": end.isoformat(),
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        trip.refresh_from_db()
        self.assertEqual(trip.actual_km, Decimal("70"))
        self.assertEqual(trip.notes, "Detour via ring road")
        self.assertEqual(trip.end_time, end)
        self.assertEqual(response.data["financials"]["net_earnings"], Decimal("2350"))

    def test_illegal_transition_rejected(self):
        trip = self.create_trip(status=STATUS_CANCELLED)

        response = self.client.patch(
            f"/api/trips/{trip.pk}/status/", {"status": STATUS_COMPLETED}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_transition")
        self.assertEqual(response.data["current_status"], STATUS_CANCELLED)
        self.assertEqual(response.data["requested_status"], STATUS_COMPLETED)
        trip.refresh_from_db()
        self.assertEqual(trip.status, STATUS_CANCELLED)

    def test_invalid_measurement_rejected(self):
        trip = self.create_trip(status=STATUS_ON_PROCESS)

        response = self.client.patch(
            f"/api/trips/{trip.pk}/status/",
            {"status": STATUS_COMPLETED, "actual_km": "-3"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("actual_km", response.data)
        trip.refresh_from_db()
        self.assertEqual(trip.status, STATUS_ON_PROCESS)

    def test_out_of_range_measurement_rejected_without_saving(self):
        trip = self.create_trip(status=STATUS_UPCOMING)

        for value in ("12345678901234.567", "12.345", "100000000000"):
            response = self.client.patch(
                f"/api/trips/{trip.pk}/status/",
                {"status": STATUS_ON_PROCESS, "actual_km": value},
                format="json",
            )
            self.assertEqual(response.status_code, 400, value)
            self.assertIn("actual_km", response.data)

        trip.refresh_from_db()
        self.assertEqual(trip.status, STATUS_UPCOMING)
        self.assertIsNone(trip.actual_km)
        self.assertEqual(self.client.get("/api/trips/").status_code, 200)
        self.assertEqual(self.client.get("/api/reports/dashboard/").status_code, 200)

    def test_status_change_can_clear_actuals_and_notes(self):
        trip = self.create_trip(status=STATUS_ON_PROCESS, actual_km=Decimal("70"), notes="Detour")

        response = self.client.patch(
            f"/api/trips/{trip.pk}/status/",
            {"status": STATUS_COMPLETED, "actual_km": None, "notes": None},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        trip.refresh_from_db()
        self.assertIsNone(trip.actual_km)
        self.assertEqual(trip.notes, "")
        self.assertEqual(response.data["financials"]["gross_amount"], Decimal("5000"))

    def test_recorded_actuals_locked_on_completed_trip(self):
        trip = self.create_trip(status=STATUS_COMPLETED, actual_km=Decimal("70"))

        response = self.client.patch(f"/api/trips/{trip.pk}/", {"actual_km": "90"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("actual_km", response.data)

    def test_stats(self):
        self.create_trip()
        self.create_trip(status=STATUS_COMPLETED)

        response = self.client.get("/api/trips/stats/")

        self.assertEqual(response.data["total_trips"], 2)
        self.assertEqual(response.data["upcoming_trips"], 1)
        self.assertEqual(response.data["completed_trips"], 1)
        self.assertEqual(len(response.data["recent_trips"]), 2)


class ReportAPITests(FleetAPITestCase):
    def test_reports_total_settlements(self):
        self.create_trip()
        self.create_trip(actual_km=Decimal("70"), date=date(2024, 5, 2))

        dashboard = self.client.get("/api/reports/dashboard/")
        trips = self.client.get("/api/reports/trips/?date=2024-05-02")
        projects = self.client.get("/api/reports/projects/")

        self.assertEqual(dashboard.status_code, 200)
        self.assertEqual(dashboard.data["financials"]["total_earnings"], Decimal("12000"))
        self.assertEqual(dashboard.data["financials"]["net_earnings"], Decimal("3800"))
        self.assertEqual(trips.data["total_trips"], 1)
        self.assertEqual(trips.data["net_earnings"], Decimal("2350"))
        self.assertEqual(projects.data["projects"][0]["total_km"], Decimal("120"))

    def test_bad_date_rejected(self):
        response = self.client.get("/api/reports/vehicles/?date=yesterday")

        self.assertEqual(response.status_code, 400)
