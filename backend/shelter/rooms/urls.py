# shelter/rooms/urls.py
from django.urls import path
from .views import (
    OwnerRoomStartView,
    RoomDetailView,
    RoomLeaveView,
    RoomMessagesView,
    StartersView,
)

urlpatterns = [
    path("owner", OwnerRoomStartView.as_view()),
    path("owner/", OwnerRoomStartView.as_view()),
    path("<uuid:room_id>", RoomDetailView.as_view()),
    path("<uuid:room_id>/", RoomDetailView.as_view()),
    path("<uuid:room_id>/leave", RoomLeaveView.as_view()),
    path("<uuid:room_id>/leave/", RoomLeaveView.as_view()),
    path("<uuid:room_id>/messages", RoomMessagesView.as_view()),
    path("<uuid:room_id>/messages/", RoomMessagesView.as_view()),
    path("<uuid:room_id>/starters", StartersView.as_view()),
    path("<uuid:room_id>/starters/", StartersView.as_view()),
]
