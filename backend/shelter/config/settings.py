# config/settings.py
import os
from pathlib import Path

from dotenv import load_dotenv
import dj_database_url
from datetime import timedelta

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # backend/
load_dotenv(BASE_DIR / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


REDIS_HOST = os.environ.get("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
REDIS_DB = int(os.environ.get("REDIS_DB", "0"))


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "").split(",")
    if h.strip()
]
CORS_ALLOW_ALL_ORIGINS = True

CORS_ALLOW_CREDENTIALS = True

DATABASES = {
    "default": dj_database_url.config(
        default=os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,
    )
}

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # third party
    "rest_framework",
    "channels",
    "corsheaders",
    # local apps
    "shelter.users",
    "shelter.matches",
    "shelter.rooms",
    "shelter.metrics",
    "shelter.events",
    "shelter.sweeper",
]

ASGI_APPLICATION = "shelter.config.asgi.application"

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [(REDIS_HOST, REDIS_PORT)],
        },
    }
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "EXCEPTION_HANDLER": "shelter.common.exceptions.custom_exception_handler",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(days=7),
    "SIGNING_KEY": os.environ.get("JWT_SECRET", SECRET_KEY),
}

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

ROOT_URLCONF = "shelter.config.urls"

USE_TZ = True
TIME_ZONE = "UTC"

APPEND_SLASH = False
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
AUTH_USER_MODEL = "users.User"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"
    },
}

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "shelter": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# ---- matching / room lifecycle ----
QUEUE_KEYS = ("country", "global")
QUEUE_EXPIRE_MIN = _env_int("QUEUE_EXPIRE_MIN", 12)
ENTRY_STALE_SEC = _env_int("ENTRY_STALE_SEC", 45)  # lastSeenAt 이후 이만큼 지나면 stale
MATCH_CANDIDATE_LIMIT = _env_int("MATCH_CANDIDATE_LIMIT", 10)
ROOM_EXPIRE_HOURS = _env_int("ROOM_EXPIRE_HOURS", 3)
ROOM_LEAVE_GRACE_MIN = _env_int("ROOM_LEAVE_GRACE_MIN", 5)
PAIR_HISTORY_TTL_HOURS = _env_int("PAIR_HISTORY_TTL_HOURS", 48)
DEFAULT_COOLDOWN_SEC = _env_int("DEFAULT_COOLDOWN_SEC", 30)
CANCEL_PAGE_SIZE = _env_int("CANCEL_PAGE_SIZE", 50)
TX_MAX_ATTEMPTS = _env_int("TX_MAX_ATTEMPTS", 5)

# off | log | enforce
WEATHER_GATE_MODE = os.environ.get("WEATHER_GATE_MODE", "off")
WEATHER_GATE_PREDICATE = os.environ.get(
    "WEATHER_GATE_PREDICATE", "shelter.matches.weather.allow_all"
)
OWNER_RESPONDER = os.environ.get(
    "OWNER_RESPONDER", "shelter.rooms.responders.canned_reply"
)

# redis 의 config:global 오버라이드를 다시 읽는 주기
CONFIG_REFRESH_SEC = _env_int("CONFIG_REFRESH_SEC", 60)

# KPI 는 이 타임존 기준 날짜로 집계 (pair history 는 UTC 날짜)
METRICS_TIME_ZONE = os.environ.get("METRICS_TIME_ZONE", "Asia/Tokyo")

# ---- events ----
EVENTS_EAGER = os.environ.get("EVENTS_EAGER", "1") == "1"
EVENT_MAX_ATTEMPTS = _env_int("EVENT_MAX_ATTEMPTS", 5)
# 처리 중인 이벤트를 다른 dispatch 가 건드리지 않는 시간 (핸들러가 죽으면 이후 재시도)
EVENT_LEASE_SEC = _env_int("EVENT_LEASE_SEC", 60)

# ---- sweeper ----
MESSAGE_MAX_AGE_HOURS = _env_int("MESSAGE_MAX_AGE_HOURS", 6)
DIAG_MAX_AGE_HOURS = _env_int("DIAG_MAX_AGE_HOURS", 72)
ANALYTICS_MAX_AGE_DAYS = _env_int("ANALYTICS_MAX_AGE_DAYS", 30)
GC_BATCH_SIZE = _env_int("GC_BATCH_SIZE", 250)
GC_MAX_DELETES_PER_RUN = _env_int("GC_MAX_DELETES_PER_RUN", 5000)
GC_ROOM_PAGE_SIZE = _env_int("GC_ROOM_PAGE_SIZE", 50)
GC_MESSAGE_LOOPS = _env_int("GC_MESSAGE_LOOPS", 20)
GC_INTERVAL_SEC = _env_int("GC_INTERVAL_SEC", 300)
