import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    return os.environ.get(name, '1' if default else '0') in ('1', 'true', 'True')


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, '') else default


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value not in (None, '') else default


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'postcard-rectifier-dev-key')  # Replace in production!
DEBUG = _env_bool('DJANGO_DEBUG')
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'core',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'postcard_rectifier.urls'
WSGI_APPLICATION = 'postcard_rectifier.wsgi.application'

# Requests are stateless; nothing is persisted.
DATABASES = {}

USE_TZ = True
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Base64 images arrive in the JSON body.
DATA_UPLOAD_MAX_MEMORY_SIZE = _env_int('RECTIFIER_MAX_UPLOAD_BYTES', 25 * 1024 * 1024)

# Rectification limits
RECTIFIER_MAX_DIMENSION = _env_int('RECTIFIER_MAX_DIMENSION', 8000)
RECTIFIER_MAX_OUTPUT_PIXELS = _env_int('RECTIFIER_MAX_OUTPUT_PIXELS', 40_000_000)
RECTIFIER_JPEG_QUALITY = _env_int('RECTIFIER_JPEG_QUALITY', 85)
RECTIFIER_WORKERS = _env_int('RECTIFIER_WORKERS', None)  # None -> os.cpu_count()
RECTIFIER_ROWS_PER_TASK = _env_int('RECTIFIER_ROWS_PER_TASK', 64)
RECTIFIER_DEADLINE_SECONDS = _env_float('RECTIFIER_DEADLINE_SECONDS', 30.0)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'core': {
            'handlers': ['console'],
            'level': os.environ.get('RECTIFIER_LOG_LEVEL', 'INFO'),
            'propagate': True,
        },
    },
}
