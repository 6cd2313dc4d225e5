"""
URL Configuration for RECheck.

This module defines all URL routes for the application including:
- Admin panel access
- REST API endpoints (v1) and JWT token endpoints
- Role-prefixed page routes (/staff/..., /reviewer/..., /researcher/...)
- Health check endpoint for monitoring
- Catch-all fallback to the user's dashboard
"""

from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.conf.urls.static import static
from django.http import JsonResponse
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.core import auth_views, views as core_views


def health_check(request):
    """Liveness probe for load balancers. No auth, no database access."""
    return JsonResponse({
        'status': 'ok',
        'service': 'RECheck',
        'version': '1.0.0'
    })


# Admin site customization
admin.site.site_header = "RECheck Administration"
admin.site.site_title = "RECheck Admin"
admin.site.index_title = "Research Ethics Committee"


urlpatterns = [
    # =========================================
    # Health Check Endpoint
    # =========================================
    path('health/', health_check, name='health-check'),

    # =========================================
    # Django Admin Panel
    # =========================================
    path('admin/', admin.site.urls),

    # =========================================
    # REST API Endpoints (versioned)
    # =========================================
    path('api/v1/me/', auth_views.user_me_api, name='user-me'),
    path('api/v1/auth/token/', TokenObtainPairView.as_view(), name='token-obtain'),
    path('api/v1/auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),

    path('api/v1/forms/', include('apps.submissions.api_urls')),
    path('api/v1/deviations/', include('apps.deviations.api_urls')),
    path('api/v1/reviews/', include('apps.reviews.api_urls')),
    path('api/v1/announcements/', include('apps.announcements.api_urls')),
    path('api/v1/dashboards/', include('apps.dashboards.api_urls')),

    # =========================================
    # Page Routes
    # =========================================
    path('', include('apps.core.urls')),
    path('', include('apps.dashboards.urls')),
    path('', include('apps.submissions.urls')),
    path('', include('apps.deviations.urls')),
    path('', include('apps.reviews.urls')),
    path('', include('apps.announcements.urls')),
]


# =========================================
# Static and Media File Serving (Development Only)
# =========================================
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)


# Unmatched page paths fall back to the caller's dashboard; must stay last
urlpatterns += [
    re_path(r'^(?!api/|admin/|static/|media/)(?P<unmatched>.+)$', core_views.fallback, name='fallback'),
]
