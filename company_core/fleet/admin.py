# fleet/admin.py

from django.contrib import admin
from django.db.models import DecimalField

from .models import Driver, Project, Trip, Vehicle, VehicleGroup


class TenantAdmin(admin.ModelAdmin):
    """Base admin that scopes records to the logged-in user unless superuser."""

    @staticmethod
    def format_currency(value):
        if value is None or value == '':
            return "0.00"
        try:
            numeric_value = DecimalField().to_python(value)
            return "{:,.2f}".format(numeric_value)
        except (ValueError, TypeError):
            return "Invalid Value"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        return qs.filter(user=request.user)

    def get_list_filter(self, request):
        list_filter = list(super().get_list_filter(request))
        if request.user.is_superuser and 'user' not in list_filter:
            list_filter.append('user')
        return list_filter

    def display_user(self, obj):
        return obj.user.username if obj.user else 'N/A'
    display_user.short_description = 'User'


@admin.register(VehicleGroup)
class VehicleGroupAdmin(TenantAdmin):
    list_display = ('group_name', 'is_active', 'vehicle_count', 'display_user', 'created_at')
    search_fields = ('group_name', 'description')
    list_filter = ('is_active',)


@admin.register(Vehicle)
class VehicleAdmin(TenantAdmin):
    list_display = ('vehicle_code', 'registration_number', 'make', 'model', 'year', 'status', 'group', 'display_user')
    search_fields = ('vehicle_code', 'registration_number', 'make', 'model')
    list_filter = ('status', 'vehicle_type', 'fuel_type')
    readonly_fields = ('is_available',)


@admin.register(Driver)
class DriverAdmin(TenantAdmin):
    list_display = ('driver_code', 'first_name', 'last_name', 'mobile', 'license_number', 'status', 'is_available')
    search_fields = ('driver_code', 'first_name', 'last_name', 'email', 'license_number')
    list_filter = ('status', 'vehicle_type')


@admin.register(Project)
class ProjectAdmin(TenantAdmin):
    list_display = ('project_code', 'project_name', 'company_name', 'type', 'rate_display', 'status', 'start_date', 'end_date')
    search_fields = ('project_code', 'project_name', 'company_name', 'customer_name')
    list_filter = ('type', 'status')

    def rate_display(self, obj):
        return self.format_currency(obj.rate)
    rate_display.short_description = 'Rate'
    rate_display.admin_order_field = 'rate'


@admin.register(Trip)
class TripAdmin(TenantAdmin):
    list_display = ('trip_code', 'date', 'project', 'vehicle', 'driver', 'status', 'gross_display', 'net_display')
    search_fields = ('trip_code', 'source', 'destination')
    list_filter = ('status', 'date')
    date_hierarchy = 'date'
    list_select_related = ('project', 'vehicle', 'driver')
    readonly_fields = ('trip_code', 'start_time', 'end_time')

    def gross_display(self, obj):
        return self.format_currency(obj.calculate_financials().gross_amount)
    gross_display.short_description = 'Total Amount'

    def net_display(self, obj):
        return self.format_currency(obj.calculate_financials().net_earnings)
    net_display.short_description = 'Net Earnings'
