# shelter/metrics/views.py
from rest_framework.response import Response
from rest_framework.views import APIView

from shelter.metrics import services


class VisitView(APIView):
    """
    POST /api/metrics/visit
    body: { "page": "landing", "src": "..." }
    로그인 없이도 호출 가능. 토큰이 있으면 고유 방문자 집계에 쓴다.
    """

    permission_classes = []

    def post(self, request):
        uid = request.user.uid if request.user.is_authenticated else None
        result = services.track_visit(
            uid, request.data.get("page"), request.data.get("src")
        )
        return Response(result)
