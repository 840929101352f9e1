# shelter/matches/views.py
import logging

from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from shelter.config.jwt_auth_middleware import resolve_token_user
from shelter.matches import services
from .serializers import EnterSerializer, MatchEntrySerializer

logger = logging.getLogger(__name__)

BEACON_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def fail(code: str, message: str, http_status: int = 400, headers=None):
    return Response(
        {"success": False, "data": None, "error": {"code": code, "message": message}},
        status=http_status,
        headers=headers,
    )


class EnterView(APIView):
    """
    POST /api/match/enter
    body: { "queueKey": "global", "profile": {...}, "lat", "lon", "region" }
    res: {status: queued, entryId} | {status: denied} | {status: cooldown, retryAfterSec}
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        body = EnterSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        result = services.enter(
            request.user.uid,
            data["queueKey"],
            profile=data.get("profile"),
            geo={
                "lat": data.get("lat"),
                "lon": data.get("lon"),
                "region": data.get("region", ""),
            },
        )
        return Response(result)


class EntryDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, entry_id):
        entry = services.get_entry(request.user.uid, entry_id)
        return Response(MatchEntrySerializer(entry).data)


class EntryTouchView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, entry_id):
        services.touch_entry(request.user.uid, entry_id)
        return Response({"ok": True})


class EntryCancelView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, entry_id):
        services.cancel_entry(request.user.uid, entry_id)
        return Response({"ok": True})


class CancelMyQueuedEntriesView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        canceled = services.cancel_my_queued_entries(request.user.uid)
        return Response({"canceled": canceled})


class BeaconCancelView(APIView):
    """
    POST /api/match/beacon-cancel
    탭 종료 시 sendBeacon 등으로 보내는 fire-and-forget 취소.
    토큰: Authorization: Bearer <jwt> 또는 form/json 필드 idToken
    응답은 안 읽힐 수 있음. 중복/지연 도착해도 결과 동일.
    """

    authentication_classes = []
    permission_classes = []

    def options(self, request, *args, **kwargs):
        return Response(status=204, headers=BEACON_CORS_HEADERS)

    def _token(self, request) -> str:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            return auth.split(" ", 1)[1].strip()
        try:
            return (request.data.get("idToken") or "").strip()
        except (AttributeError, ParseError, UnsupportedMediaType):
            return ""

    def post(self, request):
        token = self._token(request)
        if not token:
            return fail("UNAUTHORIZED", "missing token", 401, BEACON_CORS_HEADERS)

        user = resolve_token_user(token)
        if user is None:
            return fail("INVALID_TOKEN", "Invalid token", 401, BEACON_CORS_HEADERS)

        canceled = services.cancel_my_queued_entries(user.uid)
        logger.info("beacon cancel uid=%s canceled=%d", user.uid, canceled)
        return Response({"canceled": canceled}, headers=BEACON_CORS_HEADERS)
