"""
Django settings for mediakit project.

Every MEDIAKIT_* setting can be overridden with an environment variable of
the same name.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-mediakit-development-key')

DEBUG = env_bool('DJANGO_DEBUG', True)

ALLOWED_HOSTS = [host for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if host]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',
    'huey.contrib.djhuey',
    'attachments',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'mediakit.urls'

WSGI_APPLICATION = 'mediakit.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('DJANGO_DB_PATH', BASE_DIR / 'db.sqlite3'),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

USE_TZ = True
TIME_ZONE = 'UTC'

STATIC_URL = 'static/'

MEDIA_URL = '/media/'
MEDIA_ROOT = Path(os.environ.get('MEDIAKIT_MEDIA_ROOT', BASE_DIR / 'media_root'))

# Huey task queue. Immediate mode runs tasks in-process (development, tests).
HUEY = {
    'name': 'mediakit',
    'huey_class': 'huey.SqliteHuey',
    'filename': str(BASE_DIR / 'huey.sqlite3'),
    'immediate': env_bool('HUEY_IMMEDIATE', DEBUG),
}

# Media processing

# Size ceilings in bytes; a file of exactly the limit is rejected
MEDIAKIT_IMAGE_LIMIT = int(os.environ.get('MEDIAKIT_IMAGE_LIMIT', 16 * 1024 * 1024))
MEDIAKIT_VIDEO_LIMIT = int(os.environ.get('MEDIAKIT_VIDEO_LIMIT', 99 * 1024 * 1024))

MEDIAKIT_FFMPEG_BINARY = os.environ.get('MEDIAKIT_FFMPEG_BINARY', 'ffmpeg')
MEDIAKIT_FFPROBE_BINARY = os.environ.get('MEDIAKIT_FFPROBE_BINARY', 'ffprobe')

# Seconds allowed for a single ffmpeg/ffprobe run
MEDIAKIT_CODEC_TIMEOUT = float(os.environ.get('MEDIAKIT_CODEC_TIMEOUT', 60))

# Codec subprocesses running at once, per process
MEDIAKIT_CODEC_CONCURRENCY = int(os.environ.get('MEDIAKIT_CODEC_CONCURRENCY', 4))

# Threads rendering the styles of one attachment
MEDIAKIT_STYLE_WORKERS = int(os.environ.get('MEDIAKIT_STYLE_WORKERS', 2))

MEDIAKIT_STORAGE_PREFIX = os.environ.get('MEDIAKIT_STORAGE_PREFIX', 'media_attachments')

# Per-attachment task logs; empty disables them
MEDIAKIT_LOG_DIR = os.environ.get('MEDIAKIT_LOG_DIR', '')
