# shelter/common/testing.py
from datetime import datetime, timezone as dt_timezone
from unittest import mock

from rest_framework.test import APIClient

from shelter.users.models import User
from shelter.users.views import issue_jwt_for_user

FIXED_NOW = datetime(2025, 6, 1, 3, 0, 0, tzinfo=dt_timezone.utc)


class UsersMixin:
    def setUp(self):
        super().setUp()
        self.alice = User.objects.create_anonymous()
        self.bob = User.objects.create_anonymous()
        self.carol = User.objects.create_anonymous()

    def api(self, user=None) -> APIClient:
        client = APIClient()
        if user is not None:
            client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_jwt_for_user(user)}")
        return client


def frozen_now(value=FIXED_NOW):
    """django.utils.timezone.now 고정 (auto_now_add 필드까지 같이 고정됨)."""
    return mock.patch("django.utils.timezone.now", return_value=value)
