from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.views.generic import RedirectView

# Import drf-spectacular views
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView
)

from common.views import HealthView

urlpatterns = [
    # Root URL - redirect to API docs
    path('', RedirectView.as_view(url='/api/docs/', permanent=False), name='home'),

    path('health/', HealthView.as_view(), name='health'),
    path('admin/', admin.site.urls),

    # API endpoints
    path('api/patients/', include('apps.patients.urls')),
    path('api/wards/', include('apps.wards.urls')),
    path('api/ipd/', include('apps.ipd.urls')),
    path('api/icu/', include('apps.icu.urls')),
    path('api/billing/', include('apps.billing.urls')),
    path('api/insurance/', include('apps.insurance.urls')),

    # API Documentation endpoints
    # OpenAPI schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),

    # Swagger UI (Interactive documentation)
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # ReDoc UI (Alternative documentation)
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

# Serve static and media files in development
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
