# shelter/metrics/urls.py
from django.urls import path
from .views import VisitView

urlpatterns = [
    path("visit", VisitView.as_view()),
    path("visit/", VisitView.as_view()),
]
