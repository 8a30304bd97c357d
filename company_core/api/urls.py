# api/urls.py
from django.urls import path, include
from rest_framework.authtoken.views import obtain_auth_token
from rest_framework.routers import DefaultRouter
from .views import (
    DriverViewSet,
    ProjectViewSet,
    ReportViewSet,
    TripViewSet,
    VehicleGroupViewSet,
    VehicleViewSet,
    auth_profile,
    health,
)

router = DefaultRouter()
router.register(r'vehicle-groups', VehicleGroupViewSet, basename='vehicle-groups')
router.register(r'vehicles', VehicleViewSet, basename='vehicles')
router.register(r'drivers', DriverViewSet, basename='drivers')
router.register(r'projects', ProjectViewSet, basename='projects')
router.register(r'trips', TripViewSet, basename='trips')
router.register(r'reports', ReportViewSet, basename='reports')

urlpatterns = [
    path('health/', health, name='api_health'),

    # Built-in DRF token login
    path('auth/login-token/', obtain_auth_token, name='api_token_auth'),
    path('auth/profile/', auth_profile, name='api_auth_profile'),

    # Include router URLs
    path('', include(router.urls)),
]
