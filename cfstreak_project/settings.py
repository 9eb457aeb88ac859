from pathlib import Path

from celery.schedules import crontab
from decouple import config, Csv
from kombu import Queue
import dj_database_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Quick-start development settings - unsuitable for production
SECRET_KEY = config('SECRET_KEY', default='django-insecure-cfstreak-dev-only')

DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Local
    'tracker',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'cfstreak_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'cfstreak_project.wsgi.application'

# Database
# Uses DATABASE_URL from .env
DATABASES = {
    'default': dj_database_url.config(
        default=config('DATABASE_URL', default='sqlite:///db.sqlite3')
    )
}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = config('TIME_ZONE', default='America/Lima')
USE_I18N = True
USE_TZ = True

# Streak days are counted in this zone; submissions are always stored in UTC.
STREAK_TIME_ZONE = config('STREAK_TIME_ZONE', default=TIME_ZONE)

# Static files (CSS, JavaScript, Images)
STATIC_URL = 'static/'

# Session/CSRF security
SESSION_COOKIE_HTTPONLY = True
if not DEBUG:
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = config('LOG_LEVEL', default='INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'default',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'tracker': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Celery Configuration
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_DEFAULT_QUEUE = 'celery'
CELERY_TASK_QUEUES = (
    Queue('celery'),
    Queue('tracker'),
)
# Tracker tasks share a queue; tracker.locks keeps two runs off the same handle.
CELERY_TASK_ROUTES = {
    'tracker.tasks.track_all_users': {'queue': 'tracker'},
    'tracker.tasks.track_single_user': {'queue': 'tracker'},
    'tracker.tasks.daily_maintenance': {'queue': 'tracker'},
    'tracker.tasks.sync_codeforces_contests': {'queue': 'tracker'},
    'tracker.tasks.sync_rating_histories': {'queue': 'tracker'},
}
CELERY_BEAT_SCHEDULE = {
    'track-users-every-30-min': {
        'task': 'tracker.tasks.track_all_users',
        'schedule': crontab(minute='0,30'),
    },
    'daily-maintenance': {
        'task': 'tracker.tasks.daily_maintenance',
        'schedule': crontab(minute=0, hour=0),
    },
    'sync-contests-daily': {
        'task': 'tracker.tasks.sync_codeforces_contests',
        'schedule': crontab(minute=0, hour=1),
    },
    # After the contest sync so new contests are already cached.
    'sync-rating-histories-daily': {
        'task': 'tracker.tasks.sync_rating_histories',
        'schedule': crontab(minute=30, hour=1),
    },
}

# Codeforces API
CF_API_URL = config('CF_API_URL', default='https://codeforces.com/api')
CF_API_KEY = config('CF_API_KEY', default='')
CF_API_SECRET = config('CF_API_SECRET', default='')
CF_API_TIMEOUT_SECONDS = config('CF_API_TIMEOUT_SECONDS', default=15, cast=int)
CF_API_MAX_ATTEMPTS = config('CF_API_MAX_ATTEMPTS', default=3, cast=int)

# 2025-01-01T00:00:00Z; older submissions are never ingested.
CF_SUBMISSION_CUTOFF = config('CF_SUBMISSION_CUTOFF', default=1735689600, cast=int)
CF_SYNC_INITIAL_COUNT = config('CF_SYNC_INITIAL_COUNT', default=500, cast=int)
CF_SYNC_RECENT_COUNT = config('CF_SYNC_RECENT_COUNT', default=100, cast=int)
CF_RATING_SUBMISSIONS_COUNT = config('CF_RATING_SUBMISSIONS_COUNT', default=5000, cast=int)
CF_PROBLEM_CACHE_PAUSE_SECONDS = config('CF_PROBLEM_CACHE_PAUSE_SECONDS', default=0.2, cast=float)

# Tracker sweep
TRACKER_USER_PAUSE_SECONDS = config('TRACKER_USER_PAUSE_SECONDS', default=0.5, cast=float)
TRACKER_AVATAR_PAUSE_SECONDS = config('TRACKER_AVATAR_PAUSE_SECONDS', default=0.1, cast=float)
TRACKER_QUIET_HOURS = config('TRACKER_QUIET_HOURS', default='3-8')
# Unset: lock through the Celery broker. Empty string: no locking.
TRACKER_LOCK_URL = config('TRACKER_LOCK_URL', default=None)
TRACKER_LOCK_TTL_SECONDS = config('TRACKER_LOCK_TTL_SECONDS', default=600, cast=int)
