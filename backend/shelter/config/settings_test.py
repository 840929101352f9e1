# config/settings_test.py
from .settings import *  # noqa: F401,F403

SECRET_KEY = "test-secret-key-not-for-production"
SIMPLE_JWT = {**SIMPLE_JWT, "SIGNING_KEY": SECRET_KEY}  # noqa: F405

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"
    },
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

WEATHER_GATE_MODE = "off"
DEFAULT_COOLDOWN_SEC = 30
EVENTS_EAGER = True
CONFIG_REFRESH_SEC = 60
LOGGING["loggers"]["shelter"]["level"] = "WARNING"  # noqa: F405
