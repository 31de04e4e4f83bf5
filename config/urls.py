"""URL routing for Lectora.

The admin site carries course/version editing; everything else is served
by the REST API under /api/v1/ with schema and docs alongside.
"""
from django.contrib import admin
from django.urls import include, path


urlpatterns = [
    path("admin/", admin.site.urls),
    path("", include("api.urls")),
]
