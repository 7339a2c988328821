"""
URL configuration for vaf_site project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView
from django.conf import settings

urlpatterns = [
                  path('admin/', admin.site.urls),
                  path('api/v1/listings/', include('listings.api_urls')),
                  path('listings/', include('listings.urls')),
                  path('', include('autocomplete_filters.urls')),
                  path("schema/", SpectacularAPIView.as_view(), name="schema"),  # raw OpenAPI json
                  path("swagger/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
                  path("redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),

              ] + static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
