# config/settings/local.py
from .base import *  # noqa

DEBUG = True

# SQLite keeps local runs and the test suite free of a database server.
# Point DB_ENGINE at postgresql to develop against the production engine.
if os.getenv("DB_ENGINE", "sqlite") == "sqlite":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }
