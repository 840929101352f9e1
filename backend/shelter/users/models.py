# shelter/users/models.py
import uuid

from django.db import models
from django.contrib.auth.models import AbstractUser, UserManager as BaseManager


class UserManager(BaseManager):
    use_in_migrations = True

    def create_anonymous(self, **extra_fields):
        # 익명 로그인: username 은 내부용 랜덤값, 비밀번호 없음
        username = f"anon-{uuid.uuid4().hex[:20]}"
        user = self.model(username=username, is_anonymous_member=True, **extra_fields)
        user.set_unusable_password()
        user.save(using=self._db)
        return user


class User(AbstractUser):
    is_anonymous_member = models.BooleanField(default=False)

    objects = UserManager()

    @property
    def uid(self) -> str:
        # 매칭/룸에서 쓰는 안정적인 사용자 식별자
        return str(self.pk)

    def __str__(self):
        return f"{self.id} {self.username}"


class UserState(models.Model):
    """퇴장 시각 등 쿨다운 판정에 필요한 사용자별 상태."""

    uid = models.CharField(max_length=64, unique=True)
    last_left_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.uid} left={self.last_left_at}"
