# shelter/rooms/views.py
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from shelter.rooms import services
from .serializers import MessageSerializer, RoomSerializer


def _int_param(request, name: str, default: int) -> int:
    try:
        return int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        return default


class OwnerRoomStartView(APIView):
    """
    POST /api/rooms/owner
    body: { "profile": {...} }
    res: { roomId }
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        profile = request.data.get("profile")
        room = services.start_owner_room(request.user.uid, profile)
        return Response({"roomId": str(room.room_id)})


class RoomDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, room_id):
        room = services.get_room(request.user.uid, room_id)
        return Response(RoomSerializer(room).data)


class RoomLeaveView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, room_id):
        services.leave_room(request.user.uid, room_id)
        return Response({"ok": True})


class RoomMessagesView(APIView):
    """
    GET  /api/rooms/<roomId>/messages?limit=50   (오래된 순)
    POST /api/rooms/<roomId>/messages  body: { "text": "..." }
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, room_id):
        limit = _int_param(request, "limit", 50)
        messages = services.list_messages(request.user.uid, room_id, limit=limit)
        return Response({"messages": MessageSerializer(messages, many=True).data})

    def post(self, request, room_id):
        message = services.post_message(request.user.uid, room_id, request.data.get("text"))
        return Response({"messageId": message.pk}, status=201)


class StartersView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, room_id):
        starters = services.gen_starters(request.user.uid, room_id)
        return Response({"starters": starters})
