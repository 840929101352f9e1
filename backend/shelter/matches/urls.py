# shelter/matches/urls.py
from django.urls import path
from .views import (
    BeaconCancelView,
    CancelMyQueuedEntriesView,
    EnterView,
    EntryCancelView,
    EntryDetailView,
    EntryTouchView,
)

urlpatterns = [
    path("enter", EnterView.as_view()),
    path("enter/", EnterView.as_view()),
    path("entries/<uuid:entry_id>", EntryDetailView.as_view()),
    path("entries/<uuid:entry_id>/", EntryDetailView.as_view()),
    path("entries/<uuid:entry_id>/touch", EntryTouchView.as_view()),
    path("entries/<uuid:entry_id>/touch/", EntryTouchView.as_view()),
    path("entries/<uuid:entry_id>/cancel", EntryCancelView.as_view()),
    path("entries/<uuid:entry_id>/cancel/", EntryCancelView.as_view()),
    path("cancel-mine", CancelMyQueuedEntriesView.as_view()),
    path("cancel-mine/", CancelMyQueuedEntriesView.as_view()),
    path("beacon-cancel", BeaconCancelView.as_view()),
    path("beacon-cancel/", BeaconCancelView.as_view()),
]
