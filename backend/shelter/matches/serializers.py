# shelter/matches/serializers.py
from django.utils import timezone
from rest_framework import serializers

from shelter.common.runtime_config import get_config
from shelter.matches import heartbeat
from .models import MatchEntry


class EnterSerializer(serializers.Serializer):
    queueKey = serializers.CharField(max_length=20)
    profile = serializers.DictField(required=False, default=dict)
    lat = serializers.FloatField(required=False, allow_null=True)
    lon = serializers.FloatField(required=False, allow_null=True)
    region = serializers.CharField(required=False, allow_blank=True, max_length=120)


class MatchEntrySerializer(serializers.ModelSerializer):
    entryId = serializers.UUIDField(source="entry_id", read_only=True)
    queueKey = serializers.CharField(source="queue_key", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    lastSeenAt = serializers.DateTimeField(source="last_seen_at", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", read_only=True)
    matchedAt = serializers.DateTimeField(source="matched_at", read_only=True)

    status = serializers.SerializerMethodField()
    roomId = serializers.SerializerMethodField()

    class Meta:
        model = MatchEntry
        fields = [
            "entryId",
            "uid",
            "queueKey",
            "status",
            "createdAt",
            "lastSeenAt",
            "expiresAt",
            "matchedAt",
            "profile",
            "roomId",
            "info",
        ]

    def get_status(self, obj: MatchEntry):
        # queued 인데 하트비트가 끊긴 엔트리는 stale 로 보여준다
        return heartbeat.effective_status(
            obj, timezone.now(), get_config().entry_stale_sec
        )

    def get_roomId(self, obj: MatchEntry):
        return str(obj.room.room_id) if obj.room_id else None
