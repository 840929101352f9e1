# shelter/users/views.py
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import AccessToken

from .models import User


def issue_jwt_for_user(user: User) -> str:
    return str(AccessToken.for_user(user))


class AnonymousSignInView(APIView):
    """
    POST /api/auth/anonymous
    익명 사용자 생성 + access token 발급 (외부 인증 대신 쓰는 최소 구현)
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        user = User.objects.create_anonymous()
        token = issue_jwt_for_user(user)
        return Response(
            {"accessToken": token, "tokenType": "Bearer", "uid": user.uid}, status=201
        )
