"""
Django settings for the controllab project.

Values that change between a laptop and the classroom server are read from
the environment; everything else is fixed here.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('CONTROLLAB_SECRET_KEY', 'django-insecure-controllab-dev-key')

DEBUG = os.environ.get('CONTROLLAB_DEBUG', 'true').lower() == 'true'

ALLOWED_HOSTS = [h for h in os.environ.get('CONTROLLAB_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'controllab.apps.ControlLabAppConfig',
    'home',
    'questions',
    'submissions',
    'controlgroup',
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

ROOT_URLCONF = 'controllab.urls'

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

WSGI_APPLICATION = 'controllab.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('CONTROLLAB_DB_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

SESSION_ENGINE = 'django.contrib.sessions.backends.db'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'


# Activity data and limits

QUESTIONS_PATH = os.environ.get('QUESTIONS_PATH', str(BASE_DIR / 'questions' / 'data' / 'questions.json'))

MAX_NEW_CONTROL_COLUMNS = 6
PEER_DISPLAY_LIMIT = 15
OLD_SUBMISSION_DAYS = 30

# First entry is the pre-selected colour in the DIFFERENT dialog.
DIFFERENT_COLOR_PALETTE = [
    '#ff7ef2',
    '#ee8d7f',
    '#39e1f8',
    '#f03add',
    '#00a3ff',
    '#00c802',
    '#ff5a00',
    '#a0ff00',
]


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
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'controllab': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'controlgroup': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'submissions': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'questions': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
    },
}
