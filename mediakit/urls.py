"""
URL configuration for mediakit project.

Stored style blobs are served from MEDIA_ROOT by django.views.static.serve,
which picks the Content-Type from the file extension. Generated file names
only use extensions that map back to the stored content type.
"""

from django.conf import settings
from django.urls import re_path
from django.views.static import serve

media_prefix = settings.MEDIA_URL.lstrip('/')

urlpatterns = [
    re_path(rf'^{media_prefix}(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
