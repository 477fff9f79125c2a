"""Settings for the example project and the test suite."""

from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

SECRET_KEY = "example-project-not-secret"
DEBUG = True
ALLOWED_HOSTS = ["*"]
USE_TZ = True

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django_company_tree",
    "example_project.documents",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

COMPANY_TREE = {
    "MAX_DEPTH": 10,
    "MAX_NODES": 10_000,
    "MAX_REPAIR_PASSES": 10,
    "SUPERADMIN_ROLES": ["superadmin", "administrator"],
    "SUBTREE_ROLES": ["admin"],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "django_company_tree": {"handlers": ["console"], "level": "INFO"},
    },
}
