import os

import django


def pytest_configure(config):
    """Point Django at the project settings before any test module imports views."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'postcard_rectifier.settings')
    django.setup()
