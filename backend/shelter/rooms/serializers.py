# shelter/rooms/serializers.py
from rest_framework import serializers

from .models import Message, Room


class RoomSerializer(serializers.ModelSerializer):
    roomId = serializers.UUIDField(source="room_id", read_only=True)
    queueKey = serializers.CharField(source="queue_key", read_only=True)
    isOwnerRoom = serializers.BooleanField(source="is_owner_room", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    expireAt = serializers.DateTimeField(source="expire_at", read_only=True)
    endedAt = serializers.DateTimeField(source="ended_at", read_only=True)
    closedReason = serializers.CharField(source="closed_reason", read_only=True)
    closedBy = serializers.CharField(source="closed_by", read_only=True)
    leftBy = serializers.ListField(source="left_by", read_only=True)
    statsCommittedAt = serializers.DateTimeField(source="stats_committed_at", read_only=True)
    messageCount = serializers.IntegerField(source="message_count", read_only=True)

    class Meta:
        model = Room
        fields = [
            "roomId",
            "members",
            "status",
            "queueKey",
            "isOwnerRoom",
            "createdAt",
            "expireAt",
            "endedAt",
            "closedReason",
            "closedBy",
            "leftBy",
            "profiles",
            "statsCommittedAt",
            "messageCount",
        ]


class MessageSerializer(serializers.ModelSerializer):
    messageId = serializers.IntegerField(source="id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Message
        fields = ["messageId", "uid", "text", "system", "kind", "createdAt"]
