# api/views.py
import logging
from datetime import timedelta

from django.db.models import Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from fleet import reports
from fleet.models import ACTIVE, INACTIVE, Driver, Project, Trip, Vehicle, VehicleGroup
from fleet.trip_status import (
    ACTUAL_FIELDS,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_ON_PROCESS,
    STATUS_UPCOMING,
    InvalidTransition,
    TripTimestamps,
    transition,
)
from .serializers import (
    DriverSerializer,
    ProjectSerializer,
    TripSerializer,
    TripStatusSerializer,
    UserProfileSerializer,
    VehicleGroupSerializer,
    VehicleSerializer,
)

logger = logging.getLogger(__name__)

PROJECT_COMPLETED = 'Completed'


class TenantModelViewSet(viewsets.ModelViewSet):
    """ModelViewSet scoped to the requesting user with search and exact filters.

    ``search_fields`` are OR-ed ``icontains`` lookups for the ``search`` query
    param; ``filter_params`` maps a query param to an ORM lookup. Both only
    apply to the list action.
    """
    model = None
    search_fields = ()
    filter_params = {}

    def get_base_queryset(self):
        return self.model.objects.filter(user=self.request.user)

    def get_queryset(self):
        queryset = self.get_base_queryset()
        if self.action != 'list':
            return queryset

        params = self.request.query_params
        search = (params.get('search') or '').strip()
        if search and self.search_fields:
            query = Q()
            for field in self.search_fields:
                query |= Q(**{f'{field}__icontains': search})
            queryset = queryset.filter(query)

        for param, lookup in self.filter_params.items():
            value = params.get(param)
            if value not in (None, ''):
                queryset = queryset.filter(**{lookup: value})
        return queryset

    def count_by(self, field):
        rows = (
            self.get_base_queryset()
            .order_by()
            .values(field)
            .annotate(count=Count('id'))
            .order_by(field)
        )
        return [{field: row[field], 'count': row['count']} for row in rows]


class VehicleGroupViewSet(TenantModelViewSet):
    model = VehicleGroup
    serializer_class = VehicleGroupSerializer
    search_fields = ('group_name', 'description')

    def get_queryset(self):
        queryset = super().get_queryset()
        is_active = self.request.query_params.get('is_active')
        if self.action == 'list' and is_active not in (None, ''):
            queryset = queryset.filter(is_active=is_active.lower() in ('1', 'true', 'yes'))
        return queryset

    def destroy(self, request, *args, **kwargs):
        group = self.get_object()
        vehicle_count = group.vehicles.count()
        if vehicle_count:
            return Response(
                {
                    'error': 'Cannot delete a vehicle group that still has vehicles',
                    'vehicle_count': vehicle_count,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )
        return super().destroy(request, *args, **kwargs)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        groups = self.get_base_queryset()
        vehicles = Vehicle.objects.filter(user=request.user)
        return Response({
            'total_groups': groups.count(),
            'active_groups': groups.filter(is_active=True).count(),
            'inactive_groups': groups.filter(is_active=False).count(),
            'grouped_vehicles': vehicles.filter(group__isnull=False).count(),
            'ungrouped_vehicles': vehicles.filter(group__isnull=True).count(),
        })

    @action(detail=True, methods=['patch', 'post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        group = self.get_object()
        group.is_active = not group.is_active
        group.save(update_fields=['is_active', 'updated_at'])
        return Response(self.get_serializer(group).data)

    @action(detail=True, methods=['get'])
    def vehicles(self, request, pk=None):
        """List the vehicles assigned to this group"""
        group = self.get_object()
        serializer = VehicleSerializer(
            group.vehicles.all(), many=True, context=self.get_serializer_context()
        )
        return Response(serializer.data)


class VehicleViewSet(TenantModelViewSet):
    model = Vehicle
    serializer_class = VehicleSerializer
    search_fields = ('vehicle_code', 'registration_number', 'make', 'model')
    filter_params = {
        'status': 'status',
        'vehicle_type': 'vehicle_type',
        'group': 'group_id',
    }

    def get_base_queryset(self):
        return super().get_base_queryset().select_related('group')

    @action(detail=False, methods=['get'])
    def stats(self, request):
        vehicles = self.get_base_queryset()
        today = timezone.localdate()
        soon = today + timedelta(days=30)

        def expiring(field):
            return vehicles.filter(**{f'{field}__gte': today, f'{field}__lte': soon}).count()

        return Response({
            'total_vehicles': vehicles.count(),
            'active_vehicles': vehicles.filter(status=ACTIVE).count(),
            'inactive_vehicles': vehicles.filter(status=INACTIVE).count(),
            'maintenance_vehicles': vehicles.filter(status='Maintenance').count(),
            'repair_vehicles': vehicles.filter(status='Repair').count(),
            'retired_vehicles': vehicles.filter(status='Retired').count(),
            'available_vehicles': vehicles.filter(is_available=True).count(),
            'expiring_documents': {
                'insurance': expiring('insurance_expiry'),
                'permit': expiring('permit_expiry'),
                'fitness': expiring('fitness_expiry'),
                'puc': expiring('puc_expiry'),
            },
            'vehicle_type_stats': self.count_by('vehicle_type'),
        })

    @action(detail=True, methods=['patch', 'post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        vehicle = self.get_object()
        vehicle.status = INACTIVE if vehicle.status == ACTIVE else ACTIVE
        vehicle.save()
        return Response(self.get_serializer(vehicle).data)


class DriverViewSet(TenantModelViewSet):
    model = Driver
    serializer_class = DriverSerializer
    search_fields = ('driver_code', 'first_name', 'last_name', 'email', 'mobile', 'license_number')
    filter_params = {
        'status': 'status',
        'vehicle_type': 'vehicle_type',
    }

    @action(detail=False, methods=['get'])
    def stats(self, request):
        drivers = self.get_base_queryset()
        today = timezone.localdate()
        return Response({
            'total_drivers': drivers.count(),
            'active_drivers': drivers.filter(status=ACTIVE).count(),
            'inactive_drivers': drivers.filter(status=INACTIVE).count(),
            'on_trip_drivers': drivers.filter(status='On Trip').count(),
            'on_leave_drivers': drivers.filter(status='On Leave').count(),
            'available_drivers': drivers.filter(is_available=True).count(),
            'expiring_licenses': drivers.filter(
                license_expiry__gte=today, license_expiry__lte=today + timedelta(days=30)
            ).count(),
            'expired_licenses': drivers.filter(license_expiry__lt=today).count(),
        })

    @action(detail=True, methods=['patch', 'post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        driver = self.get_object()
        driver.status = INACTIVE if driver.status == ACTIVE else ACTIVE
        driver.is_available = driver.status == ACTIVE
        driver.save()
        return Response(self.get_serializer(driver).data)


class ProjectViewSet(TenantModelViewSet):
    model = Project
    serializer_class = ProjectSerializer
    search_fields = ('project_code', 'project_name', 'company_name', 'customer_name', 'place')
    filter_params = {
        'status': 'status',
        'type': 'type',
    }

    @action(detail=False, methods=['get'])
    def stats(self, request):
        projects = self.get_base_queryset()
        return Response({
            'total_projects': projects.count(),
            'active_projects': projects.filter(status=ACTIVE).count(),
            'completed_projects': projects.filter(status=PROJECT_COMPLETED).count(),
            'on_hold_projects': projects.filter(status='On Hold').count(),
            'cancelled_projects': projects.filter(status='Cancelled').count(),
            'type_stats': self.count_by('type'),
        })

    @action(detail=True, methods=['patch', 'post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        project = self.get_object()
        project.status = PROJECT_COMPLETED if project.status == ACTIVE else ACTIVE
        project.save()
        return Response(self.get_serializer(project).data)


class TripViewSet(TenantModelViewSet):
    model = Trip
    serializer_class = TripSerializer
    search_fields = (
        'trip_code',
        'source',
        'destination',
        'project__project_name',
        'vehicle__registration_number',
        'driver__first_name',
        'driver__last_name',
    )
    filter_params = {
        'status': 'status',
        'project': 'project_id',
        'vehicle': 'vehicle_id',
        'driver': 'driver_id',
        'date_from': 'date__gte',
        'date_to': 'date__lte',
    }

    def get_base_queryset(self):
        return super().get_base_queryset().select_related('project', 'vehicle', 'driver')

    @action(detail=False, methods=['get'])
    def stats(self, request):
        trips = self.get_base_queryset()
        recent = trips.order_by('-created_at')[:5]
        return Response({
            'total_trips': trips.count(),
            'upcoming_trips': trips.filter(status=STATUS_UPCOMING).count(),
            'on_process_trips': trips.filter(status=STATUS_ON_PROCESS).count(),
            'completed_trips': trips.filter(status=STATUS_COMPLETED).count(),
            'cancelled_trips': trips.filter(status=STATUS_CANCELLED).count(),
            'status_stats': self.count_by('status'),
            'recent_trips': [
                {
                    'id': trip.pk,
                    'trip_code': trip.trip_code,
                    'status': trip.status,
                    'date': trip.date,
                    'project_name': trip.project.project_name if trip.project else None,
                    'vehicle_registration': trip.vehicle.registration_number if trip.vehicle else None,
                    'driver_name': trip.driver.full_name if trip.driver else None,
                }
                for trip in recent
            ],
        })

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        """Move the trip through the status machine.

        Accepts ``status`` plus optional ``start_time``, ``end_time``,
        ``notes`` and actual measurements in the same request.
        """
        trip = self.get_object()
        serializer = TripStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actuals = {name: data[name] for name in ACTUAL_FIELDS if name in data}

        try:
            result = transition(
                trip.status,
                data['status'],
                TripTimestamps(start_time=trip.start_time, end_time=trip.end_time),
                actuals,
                requested_start_time=data.get('start_time'),
                requested_end_time=data.get('end_time'),
            )
        except InvalidTransition as exc:
            logger.info("Rejected status change for trip %s: %s", trip.trip_code, exc)
            return Response(
                {
                    'error': str(exc),
                    'code': 'invalid_transition',
                    'current_status': exc.current_status,
                    'requested_status': exc.requested_status,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        previous_status = trip.status
        trip.status = result.status
        trip.start_time = result.start_time
        trip.end_time = result.end_time
        for name, value in result.actuals.items():
            setattr(trip, name, value)
        if 'notes' in data:
            trip.notes = data['notes']
        trip.save()
        logger.info("Trip %s moved from %s to %s", trip.trip_code, previous_status, trip.status)

        return Response(self.get_serializer(trip).data)


class ReportViewSet(viewsets.ViewSet):
    """Read-only settlement rollups. ``status`` and ``date`` (YYYY-MM-DD) filter."""

    def _filters(self, request):
        params = request.query_params
        raw_date = (params.get('date') or '').strip()
        day = None
        if raw_date:
            try:
                day = parse_date(raw_date)
            except ValueError:
                day = None
            if day is None:
                return None, Response(
                    {'error': 'date must be YYYY-MM-DD'},
                    status=status.HTTP_400_BAD_REQUEST,
                )
        return {'status': (params.get('status') or '').strip() or None, 'day': day}, None

    def _report(self, request, builder):
        filters, error = self._filters(request)
        if error is not None:
            return error
        return Response(builder(request.user, **filters))

    @action(detail=False, methods=['get'])
    def dashboard(self, request):
        return Response(reports.dashboard_stats(request.user))

    @action(detail=False, methods=['get'])
    def vehicles(self, request):
        return self._report(request, reports.vehicle_reports)

    @action(detail=False, methods=['get'])
    def drivers(self, request):
        return self._report(request, reports.driver_reports)

    @action(detail=False, methods=['get'])
    def projects(self, request):
        return self._report(request, reports.project_reports)

    @action(detail=False, methods=['get'])
    def trips(self, request):
        return self._report(request, reports.trip_reports)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def auth_profile(request):
    """Return the authenticated tenant's identity."""
    return Response(UserProfileSerializer(request.user).data)


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    return Response({"status": "ok", "time": timezone.now()})
