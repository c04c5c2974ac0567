"""URL configuration for deo_project."""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("", include("deo_earnings.urls")),
]
