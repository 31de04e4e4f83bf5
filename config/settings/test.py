"""Settings for the pytest suite."""
from .base import *  # noqa


DEBUG = False
SECRET_KEY = "test-insecure-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Throttling would make API tests order-dependent.
REST_FRAMEWORK = {**REST_FRAMEWORK, "DEFAULT_THROTTLE_CLASSES": []}  # noqa: F405

LOGGING["loggers"]["courses"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["purchases"]["level"] = "WARNING"  # noqa: F405
for _name in ("courses", "purchases", "activity"):
    LOGGING["loggers"][_name]["propagate"] = True  # noqa: F405
