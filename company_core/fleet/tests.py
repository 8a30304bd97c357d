from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth.models import User
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.test.utils import override_settings

from .models import Driver, Project, Trip, Vehicle, VehicleGroup, expiry_status
from .settlement import (
    BILLING_TYPE_DAY,
    BILLING_TYPE_KM,
    BILLING_TYPE_TON,
    Settlement,
    SettlementPolicy,
    compute_settlement,
    effective_measurement,
)
from .trip_status import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_ON_PROCESS,
    STATUS_UPCOMING,
    ActualsLocked,
    InvalidTransition,
    TripTimestamps,
    allowed_transitions,
    ensure_actuals_revisable,
    transition,
)


def make_trip(**overrides):
    values = dict(
        km=None, tons=None, days=None,
        actual_km=None, actual_tons=None, actual_days=None,
        fuel_advance=Decimal("0"), trip_code="TRPTEST",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def km_project(rate="100"):
    return SimpleNamespace(type=BILLING_TYPE_KM, rate=Decimal(rate))


class ComputeSettlementTests(SimpleTestCase):
    def test_planned_km_used_when_no_actual(self):
        trip = make_trip(km=Decimal("50"), fuel_advance=Decimal("10"))

        settlement = compute_settlement(trip, km_project())

        self.assertEqual(settlement.gross_amount, Decimal("5000"))
        self.assertEqual(settlement.fuel_amount, Decimal("800"))
        self.assertEqual(settlement.advance_amount, Decimal("1750"))
        self.assertEqual(settlement.driver_amount, Decimal("1000"))
        self.assertEqual(settlement.net_earnings, Decimal("1450"))
        self.assertEqual(settlement.project_rate, Decimal("100"))
        self.assertEqual(settlement.actual_value, Decimal("50"))
        self.assertEqual(settlement.fuel_used, Decimal("10"))
        self.assertEqual(settlement.fuel_cost_per_liter, Decimal("80"))

    def test_actual_km_overrides_planned(self):
        trip = make_trip(km=Decimal("50"), actual_km=Decimal("70"), fuel_advance=Decimal("10"))

        settlement = compute_settlement(trip, km_project())

        self.assertEqual(settlement.gross_amount, Decimal("7000"))
        self.assertEqual(settlement.fuel_amount, Decimal("800"))
        self.assertEqual(settlement.advance_amount, Decimal("2450"))
        self.assertEqual(settlement.driver_amount, Decimal("1400"))
        self.assertEqual(settlement.net_earnings, Decimal("2350"))

    def test_actual_zero_is_used_instead_of_planned(self):
        trip = make_trip(km=Decimal("50"), actual_km=Decimal("0"))

        settlement = compute_settlement(trip, km_project())

        self.assertEqual(settlement.actual_value, Decimal("0"))
        self.assertEqual(settlement.gross_amount, Decimal("0"))

    def test_missing_project_settles_to_zero(self):
        trip = make_trip(km=Decimal("50"), fuel_advance=Decimal("10"))

        settlement = compute_settlement(trip, None)

        self.assertEqual(settlement, Settlement.empty())
        self.assertEqual(settlement.gross_amount, Decimal("0"))
        self.assertEqual(settlement.fuel_amount, Decimal("0"))
        self.assertEqual(settlement.net_earnings, Decimal("0"))
        self.assertEqual(settlement.fuel_cost_per_liter, Decimal("80"))

    def test_non_positive_rate_settles_to_zero(self):
        trip = make_trip(km=Decimal("50"), fuel_advance=Decimal("10"))

        for rate in ("0", "-5"):
            settlement = compute_settlement(trip, km_project(rate))
            self.assertEqual(settlement.net_earnings, Decimal("0"))
            self.assertEqual(settlement.project_rate, Decimal("0"))

    def test_tons_and_days_projects_use_their_own_fields(self):
        trip = make_trip(km=Decimal("500"), tons=Decimal("12.5"), days=Decimal("3"))

        ton_settlement = compute_settlement(trip, SimpleNamespace(type=BILLING_TYPE_TON, rate=Decimal("400")))
        day_settlement = compute_settlement(trip, SimpleNamespace(type=BILLING_TYPE_DAY, rate=Decimal("6000")))

        self.assertEqual(ton_settlement.gross_amount, Decimal("5000.0"))
        self.assertEqual(day_settlement.gross_amount, Decimal("18000"))

    def test_missing_measurement_contributes_zero(self):
        trip = make_trip(tons=Decimal("8"), fuel_advance=Decimal("2"))

        settlement = compute_settlement(trip, km_project())

        self.assertEqual(settlement.actual_value, Decimal("0"))
        self.assertEqual(settlement.gross_amount, Decimal("0"))
        self.assertEqual(settlement.net_earnings, Decimal("-160"))

    def test_negative_net_is_reported(self):
        trip = make_trip(km=Decimal("1"), fuel_advance=Decimal("100"))

        settlement = compute_settlement(trip, km_project())

        self.assertLess(settlement.net_earnings, 0)
        self.assertEqual(settlement.net_earnings, Decimal("100") - Decimal("8000") - Decimal("35") - Decimal("20"))

    def test_breakdown_identities_hold(self):
        trips = [
            make_trip(km=Decimal("13.37"), fuel_advance=Decimal("4.5")),
            make_trip(km=Decimal("250"), actual_km=Decimal("251.25"), fuel_advance=Decimal("33")),
            make_trip(km=Decimal("0.01"), fuel_advance=Decimal("0")),
        ]
        for trip in trips:
            settlement = compute_settlement(trip, km_project("47.35"))
            self.assertEqual(
                settlement.advance_amount + settlement.driver_amount,
                Decimal("0.55") * settlement.gross_amount,
            )
            self.assertEqual(
                settlement.net_earnings,
                settlement.gross_amount
                - settlement.fuel_amount
                - settlement.advance_amount
                - settlement.driver_amount,
            )

    def test_repeated_calls_are_identical(self):
        trip = make_trip(km=Decimal("50"), actual_km=Decimal("61.7"), fuel_advance=Decimal("10"))
        project = km_project("99.99")

        self.assertEqual(compute_settlement(trip, project), compute_settlement(trip, project))

    def test_custom_policy(self):
        trip = make_trip(km=Decimal("10"), fuel_advance=Decimal("2"))
        policy = SettlementPolicy(
            fuel_cost_per_liter=Decimal("100"),
            advance_fraction=Decimal("0.10"),
            driver_fraction=Decimal("0.05"),
        )

        settlement = compute_settlement(trip, km_project(), policy)

        self.assertEqual(settlement.fuel_amount, Decimal("200"))
        self.assertEqual(settlement.advance_amount, Decimal("100.00"))
        self.assertEqual(settlement.driver_amount, Decimal("50.00"))
        self.assertEqual(settlement.net_earnings, Decimal("650.00"))
        self.assertEqual(settlement.fuel_cost_per_liter, Decimal("100"))

    @override_settings(TRIP_SETTLEMENT_POLICY={"fuel_cost_per_liter": "95", "advance_fraction": "0.3"})
    def test_policy_from_settings_falls_back_to_defaults(self):
        policy = SettlementPolicy.from_settings()

        self.assertEqual(policy.fuel_cost_per_liter, Decimal("95"))
        self.assertEqual(policy.advance_fraction, Decimal("0.3"))
        self.assertEqual(policy.driver_fraction, Decimal("0.20"))

    def test_malformed_policy_setting_is_rejected(self):
        for configured in (
            {"fuel_cost_per_liter": "eighty"},
            {"advance_fraction": "-0.35"},
            {"driver_fraction": "NaN"},
        ):
            with self.subTest(configured=configured), override_settings(TRIP_SETTLEMENT_POLICY=configured):
                with self.assertRaises(ImproperlyConfigured):
                    SettlementPolicy.from_settings()

    def test_effective_measurement_unknown_type(self):
        trip = make_trip(km=Decimal("50"))

        self.assertEqual(effective_measurement(trip, "Per Hour"), Decimal("0"))
        self.assertEqual(effective_measurement(trip, None), Decimal("0"))


class TripStatusTransitionTests(SimpleTestCase):
    def setUp(self):
        self.now = datetime(2024, 5, 1, 9, 30, tzinfo=dt_timezone.utc)

    def test_allowed_table(self):
        self.assertEqual(
            allowed_transitions(STATUS_UPCOMING),
            {STATUS_ON_PROCESS, STATUS_COMPLETED, STATUS_CANCELLED},
        )
        self.assertEqual(allowed_transitions(STATUS_ON_PROCESS), {STATUS_COMPLETED, STATUS_CANCELLED})
        self.assertEqual(allowed_transitions(STATUS_COMPLETED), {STATUS_ON_PROCESS})
        self.assertEqual(allowed_transitions(STATUS_CANCELLED), {STATUS_UPCOMING, STATUS_ON_PROCESS})
        self.assertEqual(allowed_transitions("Archived"), frozenset())

    def test_start_sets_start_time(self):
        result = transition(STATUS_UPCOMING, STATUS_ON_PROCESS, TripTimestamps(), now=self.now)

        self.assertEqual(result.status, STATUS_ON_PROCESS)
        self.assertEqual(result.start_time, self.now)
        self.assertIsNone(result.end_time)

    def test_existing_start_time_is_kept(self):
        earlier = self.now - timedelta(hours=3)

        result = transition(
            STATUS_UPCOMING, STATUS_ON_PROCESS, TripTimestamps(start_time=earlier), now=self.now
        )

        self.assertEqual(result.start_time, earlier)

    def test_resume_from_cancelled_does_not_stamp_start(self):
        result = transition(STATUS_CANCELLED, STATUS_ON_PROCESS, TripTimestamps(), now=self.now)

        self.assertIsNone(result.start_time)

    def test_complete_sets_end_time_once(self):
        result = transition(STATUS_ON_PROCESS, STATUS_COMPLETED, now=self.now)
        self.assertEqual(result.end_time, self.now)

        earlier = self.now - timedelta(days=1)
        result = transition(
            STATUS_UPCOMING, STATUS_COMPLETED, TripTimestamps(end_time=earlier), now=self.now
        )
        self.assertEqual(result.end_time, earlier)

    def test_explicit_times_override_automatic_ones(self):
        start = self.now - timedelta(hours=5)
        end = self.now - timedelta(hours=1)

        started = transition(STATUS_UPCOMING, STATUS_ON_PROCESS, requested_start_time=start, now=self.now)
        finished = transition(
            STATUS_ON_PROCESS,
            STATUS_COMPLETED,
            TripTimestamps(start_time=start),
            requested_end_time=end,
            now=self.now,
        )

        self.assertEqual(started.start_time, start)
        self.assertEqual(finished.end_time, end)

    def test_illegal_transitions_are_rejected(self):
        for current, requested in [
            (STATUS_COMPLETED, STATUS_UPCOMING),
            (STATUS_CANCELLED, STATUS_COMPLETED),
            (STATUS_ON_PROCESS, STATUS_UPCOMING),
            (STATUS_UPCOMING, STATUS_UPCOMING),
        ]:
            with self.assertRaises(InvalidTransition) as ctx:
                transition(current, requested, now=self.now)
            self.assertEqual(ctx.exception.current_status, current)
            self.assertEqual(ctx.exception.requested_status, requested)

    def test_actuals_are_normalized(self):
        result = transition(
            STATUS_ON_PROCESS,
            STATUS_COMPLETED,
            actuals={"actual_km": "72.5", "actual_tons": "", "notes": "ignored"},
            now=self.now,
        )

        self.assertEqual(result.actuals, {"actual_km": Decimal("72.5"), "actual_tons": None})

    def test_negative_actual_is_rejected(self):
        with self.assertRaises(ValueError):
            transition(STATUS_ON_PROCESS, STATUS_COMPLETED, actuals={"actual_km": "-1"}, now=self.now)

    def test_actuals_locked_on_terminal_trip(self):
        current = {"actual_km": Decimal("70"), "actual_tons": None, "actual_days": None}

        ensure_actuals_revisable(STATUS_ON_PROCESS, current, {"actual_km": Decimal("75")})
        ensure_actuals_revisable(STATUS_COMPLETED, current, {"actual_km": Decimal("70")})
        ensure_actuals_revisable(STATUS_COMPLETED, current, {"actual_tons": Decimal("4")})
        with self.assertRaises(ActualsLocked) as ctx:
            ensure_actuals_revisable(STATUS_COMPLETED, current, {"actual_km": Decimal("75")})
        self.assertEqual(ctx.exception.fields, ("actual_km",))


class FleetModelTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="p")
        self.other = User.objects.create_user(username="other", password="p")
        self.project = Project.objects.create(
            user=self.user,
            customer_name="Acme",
            company_name="Acme Logistics",
            project_name="Port Shuttle",
            place="Chennai",
            type=BILLING_TYPE_KM,
            rate=Decimal("100"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
        )
        self.vehicle = Vehicle.objects.create(
            user=self.user,
            registration_number=" ka01ab1234 ",
            make="Tata",
            model="Prima",
            year=2021,
            vehicle_type="Truck",
            fuel_type="Diesel",
        )
        self.driver = Driver.objects.create(
            user=self.user,
            first_name="Ravi",
            last_name="Kumar",
            email="Ravi@Example.com",
            mobile="9845000000",
            date_of_birth=date(1985, 3, 14),
            license_number="DL-1",
            license_expiry=date(2030, 1, 1),
        )

    def make_trip(self, **overrides):
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
        values.update(overrides)
        return Trip.objects.create(**values)

    def test_project_duration(self):
        self.assertEqual(self.project.duration, 365)

        self.project.end_date = date(2023, 12, 1)
        self.assertEqual(self.project.duration, 0)

        self.project.end_date = None
        self.assertEqual(self.project.duration, 0)

    def test_codes_are_generated_per_tenant(self):
        self.assertEqual(self.vehicle.vehicle_code, "VEH001")
        self.assertEqual(self.driver.driver_code, "DRV001")
        self.assertEqual(self.project.project_code, "PRJ001")

        other_vehicle = Vehicle.objects.create(
            user=self.other,
            registration_number="KA01AB1234",
            make="Tata",
            model="Prima",
            year=2021,
            vehicle_type="Truck",
            fuel_type="Diesel",
        )
        self.assertEqual(other_vehicle.vehicle_code, "VEH001")

    def test_vehicle_normalization_and_availability(self):
        self.assertEqual(self.vehicle.registration_number, "KA01AB1234")
        self.assertTrue(self.vehicle.is_available)

        self.vehicle.status = "Maintenance"
        self.vehicle.save()
        self.assertFalse(self.vehicle.is_available)

    def test_vehicle_group_must_share_owner(self):
        foreign_group = VehicleGroup.objects.create(user=self.other, group_name="Elsewhere")
        self.vehicle.group = foreign_group

        with self.assertRaises(ValidationError):
            self.vehicle.full_clean()

    def test_driver_email_lowercased(self):
        self.assertEqual(self.driver.email, "ravi@example.com")
        self.assertEqual(self.driver.full_name, "Ravi Kumar")

    def test_project_end_before_start_rejected(self):
        self.project.end_date = date(2023, 12, 31)

        with self.assertRaises(ValidationError):
            self.project.full_clean()

    def test_trip_defaults_and_code(self):
        trip = self.make_trip()

        self.assertEqual(trip.status, STATUS_UPCOMING)
        self.assertTrue(trip.trip_code.startswith("TRP"))
        self.assertEqual(len(trip.trip_code), 14)
        self.assertEqual(trip.trip_type, BILLING_TYPE_KM)
        self.assertEqual(trip.trip_value, "50 KM")

    def test_trip_financials_use_stored_values(self):
        trip = self.make_trip(actual_km=Decimal("70"))

        settlement = trip.calculate_financials()

        self.assertEqual(settlement.gross_amount, Decimal("7000"))
        self.assertEqual(settlement.net_earnings, Decimal("2350"))

    def test_deleting_project_keeps_trip_with_zero_settlement(self):
        trip = self.make_trip()
        self.project.delete()
        trip.refresh_from_db()

        self.assertIsNone(trip.project)
        self.assertEqual(trip.calculate_financials().gross_amount, Decimal("0"))

    def test_expiry_status(self):
        today = date(2024, 5, 1)

        self.assertEqual(expiry_status(date(2024, 4, 30), today), "expired")
        self.assertEqual(expiry_status(date(2024, 5, 20), today), "expiring_soon")
        self.assertEqual(expiry_status(date(2024, 8, 1), today), "valid")
        self.assertIsNone(expiry_status(None, today))


class SeedFleetDemoCommandTests(TestCase):
    def test_seed_creates_demo_records(self):
        user = User.objects.create_user(username="demo", password="p")

        call_command("seed_fleet_demo", username="demo", trips=6)

        self.assertEqual(VehicleGroup.objects.filter(user=user).count(), 2)
        self.assertEqual(Project.objects.filter(user=user).count(), 3)
        self.assertEqual(Trip.objects.filter(user=user).count(), 6)
        completed = Trip.objects.filter(user=user, status=STATUS_COMPLETED)
        self.assertTrue(all(trip.end_time for trip in completed))

        call_command("seed_fleet_demo", username="demo", trips=6)
        self.assertEqual(Trip.objects.filter(user=user).count(), 6)
