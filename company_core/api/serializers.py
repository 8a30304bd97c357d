# api/serializers.py
from django.contrib.auth.models import User
from django.utils import timezone
from rest_framework import serializers
from rest_framework.fields import HiddenField, CurrentUserDefault

from fleet.models import Driver, Project, Trip, Vehicle, VehicleGroup, expiry_status
from fleet.trip_status import (
    ACTUAL_FIELDS,
    STATUS_CHOICES,
    ActualsLocked,
    ensure_actuals_revisable,
)


class TenantPrimaryKeyRelatedField(serializers.PrimaryKeyRelatedField):
    """Only resolves objects owned by the requesting user."""

    def get_queryset(self):
        queryset = super().get_queryset()
        request = self.context.get('request')
        if request is None:
            return queryset.none()
        return queryset.filter(user=request.user)


class TenantUniqueMixin:
    # Uniqueness is per tenant, so the checks run here rather than through
    # the generated unique_together validators.
    def ensure_unique(self, field, value, message):
        request = self.context['request']
        queryset = self.Meta.model.objects.filter(user=request.user, **{field: value})
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError(message)
        return value


class UserProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'date_joined']
        read_only_fields = fields


class VehicleGroupSerializer(TenantUniqueMixin, serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())
    vehicle_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = VehicleGroup
        fields = '__all__'
        validators = []

    def validate_group_name(self, value):
        value = value.strip()
        return self.ensure_unique('group_name', value, "Vehicle group with this name already exists.")


class VehicleSerializer(TenantUniqueMixin, serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())
    group = TenantPrimaryKeyRelatedField(
        queryset=VehicleGroup.objects.all(), required=False, allow_null=True
    )
    group_name = serializers.CharField(source='group.group_name', read_only=True)
    display_name = serializers.CharField(read_only=True)
    document_status = serializers.SerializerMethodField()

    class Meta:
        model = Vehicle
        fields = '__all__'
        read_only_fields = ['vehicle_code']
        validators = []

    def validate_registration_number(self, value):
        value = value.strip().upper()
        return self.ensure_unique(
            'registration_number', value, "Vehicle with this registration number already exists."
        )

    def validate_year(self, value):
        max_year = timezone.localdate().year + 1
        if value > max_year:
            raise serializers.ValidationError(f"Year cannot be later than {max_year}.")
        return value

    def get_document_status(self, obj):
        return {
            'insurance': expiry_status(obj.insurance_expiry),
            'permit': expiry_status(obj.permit_expiry),
            'fitness': expiry_status(obj.fitness_expiry),
            'puc': expiry_status(obj.puc_expiry),
        }


class DriverSerializer(TenantUniqueMixin, serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())
    full_name = serializers.CharField(read_only=True)
    license_status = serializers.CharField(read_only=True)

    class Meta:
        model = Driver
        fields = '__all__'
        read_only_fields = ['driver_code']
        validators = []

    def validate_email(self, value):
        value = value.strip().lower()
        return self.ensure_unique('email', value, "Driver with this email already exists.")

    def validate_license_number(self, value):
        value = value.strip()
        return self.ensure_unique(
            'license_number', value, "Driver with this license number already exists."
        )


class ProjectSerializer(serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())
    duration = serializers.IntegerField(read_only=True)
    timeline_status = serializers.CharField(read_only=True)

    class Meta:
        model = Project
        fields = '__all__'
        read_only_fields = ['project_code']
        validators = []

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': "End date cannot be before the start date."})
        return attrs


class TripSerializer(serializers.ModelSerializer):
    user = HiddenField(default=CurrentUserDefault())
    project = TenantPrimaryKeyRelatedField(queryset=Project.objects.all())
    vehicle = TenantPrimaryKeyRelatedField(queryset=Vehicle.objects.all())
    driver = TenantPrimaryKeyRelatedField(queryset=Driver.objects.all())
    project_name = serializers.CharField(source='project.project_name', read_only=True)
    project_type = serializers.CharField(source='project.type', read_only=True)
    vehicle_registration = serializers.CharField(source='vehicle.registration_number', read_only=True)
    driver_name = serializers.CharField(source='driver.full_name', read_only=True)
    trip_type = serializers.CharField(read_only=True)
    trip_value = serializers.CharField(read_only=True)
    financials = serializers.SerializerMethodField()

    class Meta:
        model = Trip
        fields = '__all__'
        # Status only moves through the status endpoint
        read_only_fields = ['trip_code', 'status']

    def get_financials(self, obj):
        return obj.calculate_financials().as_dict()

    def validate(self, attrs):
        if self.instance is None:
            vehicle = attrs.get('vehicle')
            driver = attrs.get('driver')
            if vehicle is not None and not vehicle.is_available:
                raise serializers.ValidationError({'vehicle': "Vehicle is not available."})
            if driver is not None and not driver.is_available:
                raise serializers.ValidationError({'driver': "Driver is not available."})
        else:
            incoming = {name: attrs[name] for name in ACTUAL_FIELDS if name in attrs}
            try:
                ensure_actuals_revisable(self.instance.status, self.instance.actuals, incoming)
            except ActualsLocked as exc:
                raise serializers.ValidationError({name: str(exc) for name in exc.fields})
        return attrs


class TripStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_CHOICES)
    start_time = serializers.DateTimeField(required=False, allow_null=True)
    end_time = serializers.DateTimeField(required=False, allow_null=True)
    actual_km = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    actual_tons = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    actual_days = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_notes(self, value):
        return value or ''
