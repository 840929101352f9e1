from django.test import TestCase
from rest_framework.test import APIClient

from shelter.config.jwt_auth_middleware import resolve_token_user
from shelter.users.models import User


class AnonymousSignInTest(TestCase):
    def test_sign_in_issues_usable_token(self):
        client = APIClient()
        res = client.post("/api/auth/anonymous")
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["tokenType"], "Bearer")

        user = User.objects.get(pk=res.data["uid"])
        self.assertTrue(user.is_anonymous_member)
        self.assertFalse(user.has_usable_password())
        self.assertEqual(resolve_token_user(res.data["accessToken"]), user)

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['accessToken']}")
        res = client.post("/api/match/cancel-mine")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data, {"canceled": 0})

    def test_each_sign_in_is_a_new_user(self):
        first = User.objects.create_anonymous()
        second = User.objects.create_anonymous()
        self.assertNotEqual(first.uid, second.uid)
        self.assertEqual(first.uid, str(first.pk))

    def test_garbage_token(self):
        self.assertIsNone(resolve_token_user("abc.def.ghi"))
        self.assertIsNone(resolve_token_user(""))
