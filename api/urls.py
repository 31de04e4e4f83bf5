"""API routes for Lectora.

Versioned REST endpoints live under /api/v1/; the OpenAPI schema and the
interactive documentation are served alongside.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView,
)


from .views import (
    AccessViewSet,
    CategoryViewSet,
    ChapterViewSet,
    CourseVersionViewSet,
    CourseViewSet,
    NotificationViewSet,
    PurchaseViewSet,
    progress_transfer,
    site_settings,
)

router = DefaultRouter()
router.register(r"api/v1/categories", CategoryViewSet, basename="categories")
router.register(r"api/v1/courses", CourseViewSet, basename="courses")
router.register(r"api/v1/versions", CourseVersionViewSet, basename="versions")
router.register(r"api/v1/chapters", ChapterViewSet, basename="chapters")
router.register(r"api/v1/purchases", PurchaseViewSet, basename="purchases")
router.register(r"api/v1/access", AccessViewSet, basename="access")
router.register(r"api/v1/notifications", NotificationViewSet, basename="notifications")

urlpatterns = [
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("api/v1/progress/transfer", progress_transfer, name="progress-transfer"),
    path("api/v1/site-settings", site_settings, name="site-settings"),
    path("", include(router.urls)),
]
