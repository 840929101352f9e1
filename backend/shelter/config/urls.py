# shelter/config/urls.py
from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/", include("shelter.users.urls")),
    path("api/match/", include("shelter.matches.urls")),
    path("api/rooms/", include("shelter.rooms.urls")),
    path("api/metrics/", include("shelter.metrics.urls")),
]
