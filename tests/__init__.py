"""Test package for django-company-tree."""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "example_project.settings")
