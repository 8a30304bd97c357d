# fleet/models.py
import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from .settlement import (
    BILLING_TYPE_CHOICES,
    BILLING_TYPE_DAY,
    BILLING_TYPE_KM,
    BILLING_TYPE_TON,
    SettlementPolicy,
    compute_settlement,
    effective_measurement,
    to_decimal,
)
from .trip_status import STATUS_CHOICES as TRIP_STATUS_CHOICES, STATUS_UPCOMING

# Tenant-scoped fleet records. The owning ``user`` is the tenant (admin).

ACTIVE = 'Active'
INACTIVE = 'Inactive'

VEHICLE_TYPE_CHOICES = [
    ('Light Vehicle', 'Light Vehicle'),
    ('Heavy Vehicle', 'Heavy Vehicle'),
    ('Bus', 'Bus'),
    ('Truck', 'Truck'),
    ('Van', 'Van'),
    ('SUV', 'SUV'),
]

DRIVER_VEHICLE_TYPE_CHOICES = [
    ('Light Vehicle', 'Light Vehicle'),
    ('Heavy Vehicle', 'Heavy Vehicle'),
    ('Bus', 'Bus'),
    ('Truck', 'Truck'),
    ('All', 'All'),
]

MEASUREMENT_DIGITS = dict(max_digits=12, decimal_places=2)


def next_sequence_code(model, user, field_name, prefix):
    """Return the next ``PREFIX001`` style code free for this tenant."""
    number = model.objects.filter(user=user).count() + 1
    while True:
        code = f"{prefix}{number:03d}"
        if not model.objects.filter(user=user, **{field_name: code}).exists():
            return code
        number += 1


def expiry_status(expiry, today=None):
    if not expiry:
        return None
    today = today or timezone.localdate()
    if expiry < today:
        return 'expired'
    if expiry < today + timedelta(days=30):
        return 'expiring_soon'
    return 'valid'


class VehicleGroup(models.Model):
    """Named grouping of vehicles (e.g. a depot or a contracting company)"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='vehicle_groups')
    group_name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default='')
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['user', 'group_name']
        ordering = ['-created_at']

    def __str__(self):
        return self.group_name

    @property
    def vehicle_count(self):
        return self.vehicles.count()


class Vehicle(models.Model):
    """Vehicle operated by a tenant"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='fleet_vehicles')

    # Vehicle identification
    vehicle_code = models.CharField(max_length=20, blank=True)
    registration_number = models.CharField(max_length=20)
    make = models.CharField(max_length=50)
    model = models.CharField(max_length=50)
    year = models.IntegerField(validators=[MinValueValidator(1900)])

    # Vehicle specifications
    vehicle_type = models.CharField(max_length=20, choices=VEHICLE_TYPE_CHOICES)
    passenger_capacity = models.PositiveIntegerField(default=0)
    cargo_capacity = models.PositiveIntegerField(default=0)
    fuel_type = models.CharField(max_length=10, choices=[
        ('Petrol', 'Petrol'),
        ('Diesel', 'Diesel'),
        ('Electric', 'Electric'),
        ('Hybrid', 'Hybrid'),
        ('CNG', 'CNG'),
    ])
    transmission = models.CharField(max_length=10, choices=[
        ('Manual', 'Manual'),
        ('Automatic', 'Automatic'),
    ], default='Manual')
    color = models.CharField(max_length=30, blank=True, default='')

    # Documents
    insurance_policy_number = models.CharField(max_length=100, blank=True, default='')
    insurance_provider = models.CharField(max_length=100, blank=True, default='')
    insurance_expiry = models.DateField(blank=True, null=True)
    permit_number = models.CharField(max_length=100, blank=True, default='')
    permit_expiry = models.DateField(blank=True, null=True)
    fitness_certificate_number = models.CharField(max_length=100, blank=True, default='')
    fitness_expiry = models.DateField(blank=True, null=True)
    puc_certificate_number = models.CharField(max_length=100, blank=True, default='', help_text="Pollution Under Control certificate")
    puc_expiry = models.DateField(blank=True, null=True)

    # Status
    status = models.CharField(max_length=20, choices=[
        ('Active', 'Active'),
        ('Inactive', 'Inactive'),
        ('Maintenance', 'Maintenance'),
        ('Repair', 'Repair'),
        ('Retired', 'Retired'),
    ], default=ACTIVE)
    is_available = models.BooleanField(default=True, editable=False)
    group = models.ForeignKey(
        VehicleGroup, on_delete=models.SET_NULL, null=True, blank=True, related_name='vehicles'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [['user', 'registration_number'], ['user', 'vehicle_code']]
        ordering = ['-created_at']

    def __str__(self):
        return self.display_name

    def clean(self):
        max_year = timezone.localdate().year + 1
        if self.year and self.year > max_year:
            raise ValidationError({'year': f"Year cannot be later than {max_year}."})
        if self.group_id and self.group.user_id != self.user_id:
            raise ValidationError({'group': "Vehicle group belongs to another account."})

    def save(self, *args, **kwargs):
        self.registration_number = (self.registration_number or '').strip().upper()
        # Only active vehicles can be scheduled for trips
        self.is_available = self.status == ACTIVE
        if not self.vehicle_code:
            self.vehicle_code = next_sequence_code(Vehicle, self.user, 'vehicle_code', 'VEH')
        super().save(*args, **kwargs)

    @property
    def display_name(self):
        return f"{self.year} {self.make} {self.model} ({self.registration_number})"


class Driver(models.Model):
    """Driver employed by a tenant"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='fleet_drivers')

    # Basic information
    driver_code = models.CharField(max_length=20, blank=True)
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    email = models.EmailField()
    mobile = models.CharField(max_length=20)
    date_of_birth = models.DateField()

    # Address
    street = models.CharField(max_length=200, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    state = models.CharField(max_length=100, blank=True, default='')
    country = models.CharField(max_length=100, blank=True, default='')
    zip_code = models.CharField(max_length=20, blank=True, default='')

    # Emergency contact
    emergency_contact_name = models.CharField(max_length=100, blank=True, default='')
    emergency_contact_relationship = models.CharField(max_length=50, blank=True, default='')
    emergency_contact_mobile = models.CharField(max_length=20, blank=True, default='')

    # License information
    license_number = models.CharField(max_length=50)
    license_expiry = models.DateField()
    experience = models.PositiveIntegerField(default=0, help_text="Years of driving experience")
    vehicle_type = models.CharField(max_length=20, choices=DRIVER_VEHICLE_TYPE_CHOICES, default='Light Vehicle')

    # Status
    status = models.CharField(max_length=20, choices=[
        ('Active', 'Active'),
        ('Inactive', 'Inactive'),
        ('On Trip', 'On Trip'),
        ('On Leave', 'On Leave'),
    ], default=ACTIVE)
    is_available = models.BooleanField(default=True)
    rating = models.DecimalField(
        max_digits=3, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [['user', 'email'], ['user', 'license_number'], ['user', 'driver_code']]
        ordering = ['-created_at']

    def __str__(self):
        return self.full_name

    def save(self, *args, **kwargs):
        self.email = (self.email or '').strip().lower()
        if not self.driver_code:
            self.driver_code = next_sequence_code(Driver, self.user, 'driver_code', 'DRV')
        super().save(*args, **kwargs)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def license_status(self):
        return expiry_status(self.license_expiry)


class Project(models.Model):
    """Billing contract that every trip is settled against"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='fleet_projects')

    project_code = models.CharField(max_length=20, blank=True)
    customer_name = models.CharField(max_length=200)
    company_name = models.CharField(max_length=200)
    project_name = models.CharField(max_length=200)
    place = models.CharField(max_length=200)

    # Billing
    type = models.CharField(max_length=20, choices=BILLING_TYPE_CHOICES)
    rate = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)],
        help_text="Amount charged per KM, metric ton or day depending on type",
    )

    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=[
        ('Active', 'Active'),
        ('Completed', 'Completed'),
        ('On Hold', 'On Hold'),
        ('Cancelled', 'Cancelled'),
    ], default=ACTIVE)
    description = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['user', 'project_code']
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.project_name} ({self.get_type_display()})"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': "End date cannot be before the start date."})

    def save(self, *args, **kwargs):
        if not self.project_code:
            self.project_code = next_sequence_code(Project, self.user, 'project_code', 'PRJ')
        super().save(*args, **kwargs)

    @property
    def duration(self):
        # A reversed range is not a valid project span
        if self.start_date and self.end_date and self.end_date >= self.start_date:
            return (self.end_date - self.start_date).days
        return 0

    @property
    def timeline_status(self):
        today = timezone.localdate()
        if self.end_date and self.end_date < today:
            return 'Completed'
        if self.start_date and self.start_date > today:
            return 'Upcoming'
        return 'Active'


class Trip(models.Model):
    """One billable journey performed under a project by a vehicle/driver pair"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='fleet_trips')

    trip_code = models.CharField(max_length=20, unique=True, blank=True)

    # Relationships. Deleting a project keeps the trip; it then settles to zero.
    project = models.ForeignKey(Project, on_delete=models.SET_NULL, null=True, blank=True, related_name='trips')
    vehicle = models.ForeignKey(Vehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name='trips')
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='trips')

    date = models.DateField()
    source = models.CharField(max_length=200)
    destination = models.CharField(max_length=200)

    # Planned measurement; the one matching the project type is meaningful
    km = models.DecimalField(**MEASUREMENT_DIGITS, blank=True, null=True, validators=[MinValueValidator(0)])
    tons = models.DecimalField(**MEASUREMENT_DIGITS, blank=True, null=True, validators=[MinValueValidator(0)])
    days = models.DecimalField(**MEASUREMENT_DIGITS, blank=True, null=True, validators=[MinValueValidator(0)])

    # Actual measurement recorded as the trip progresses
    actual_km = models.DecimalField(**MEASUREMENT_DIGITS, blank=True, null=True, validators=[MinValueValidator(0)])
    actual_tons = models.DecimalField(**MEASUREMENT_DIGITS, blank=True, null=True, validators=[MinValueValidator(0)])
    actual_days = models.DecimalField(**MEASUREMENT_DIGITS, blank=True, null=True, validators=[MinValueValidator(0)])

    status = models.CharField(max_length=20, choices=TRIP_STATUS_CHOICES, default=STATUS_UPCOMING)
    fuel_advance = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(0)],
        help_text="Liters of fuel advanced to the driver",
    )
    start_time = models.DateTimeField(blank=True, null=True)
    end_time = models.DateTimeField(blank=True, null=True)
    notes = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['user', '-date'], name='fleet_trip_user_date_idx'),
            models.Index(fields=['status'], name='fleet_trip_status_idx'),
        ]

    def __str__(self):
        return f"Trip {self.trip_code}: {self.source} to {self.destination}"

    def save(self, *args, **kwargs):
        if not self.trip_code:
            self.trip_code = self.generate_trip_code()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_trip_code():
        while True:
            stamp = str(int(timezone.now().timestamp() * 1000))[-8:]
            code = f"TRP{stamp}{random.randint(0, 999):03d}"
            if not Trip.objects.filter(trip_code=code).exists():
                return code

    @property
    def trip_type(self):
        if self.km is not None:
            return BILLING_TYPE_KM
        if self.tons is not None:
            return BILLING_TYPE_TON
        if self.days is not None:
            return BILLING_TYPE_DAY
        return 'Unknown'

    @property
    def trip_value(self):
        if self.km is not None:
            return f"{to_decimal(self.km).normalize():f} KM"
        if self.tons is not None:
            return f"{to_decimal(self.tons).normalize():f} Tons"
        if self.days is not None:
            return f"{to_decimal(self.days).normalize():f} Days"
        return 'N/A'

    def effective_value(self, billing_type):
        return effective_measurement(self, billing_type)

    def calculate_financials(self, project=None, policy=None):
        """Settle this trip against ``project`` (defaults to its own project)."""
        if project is None:
            project = self.project
        return compute_settlement(self, project, policy or SettlementPolicy.from_settings())

    @property
    def actuals(self):
        return {
            'actual_km': self.actual_km,
            'actual_tons': self.actual_tons,
            'actual_days': self.actual_days,
        }
