"""
URL configuration for the Siddha clinic backend.
"""
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from apps.core.observability.health import HealthzView, ReadyzView

urlpatterns = [
    # Health checks (no auth required)
    path('healthz', HealthzView.as_view(), name='healthz'),
    path('readyz', ReadyzView.as_view(), name='readyz'),

    # Admin
    path('admin/', admin.site.urls),

    # API v1
    path('api/v1/', include('apps.core.urls')),        # auth, validation rules
    path('api/v1/', include('apps.authz.urls')),       # doctors
    path('api/v1/', include('apps.onboarding.urls')),  # invites, registration, approval
    path('api/v1/', include('apps.clinical.urls')),    # patients, vitals, diet

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
