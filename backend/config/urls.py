"""
URL configuration for the course commerce back office.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.http import HttpResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView


def root_view(request):
    """Root view: link to API schema."""
    return HttpResponse(
        '<html><head><title>Course Commerce</title></head>'
        '<body><h1>API Documentation</h1>'
        '<p><a href="/api/schema/swagger-ui/">Swagger UI</a> | '
        '<a href="/api/schema/redoc/">ReDoc</a></p></body></html>',
        content_type='text/html'
    )


urlpatterns = [
    path("", root_view, name="root"),
    path("admin/", admin.site.urls),
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/schema/swagger-ui/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/schema/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("api/v1/auth/", include("backend.apps.accounts.urls")),
    path("api/v1/courses/", include("backend.apps.courses.urls")),
    path("api/v1/coupons/", include("backend.apps.coupons.urls")),
    path("api/v1/payments/", include("backend.apps.payments.urls")),
]

# Serve static and media files in development
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
