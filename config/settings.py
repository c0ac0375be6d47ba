"""
Django settings for the dynamic form engine.

The engine itself is stateless; Django provides configuration, logging,
validators and the REST layer used to expose evaluation over HTTP.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'insecure-dev-key-change-me')

DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() == 'true'

ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')


INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'drf_spectacular',
    'formbuilder',
    'submissions',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

# No models live in this project; the database is only configured so that
# contrib apps required by DRF can load.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Django REST framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Dynamic Form Engine API',
    'DESCRIPTION': 'Stateless conditional logic evaluation and submission validation',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}


# Form engine
FORM_ENGINE = {
    'PHONE_MIN_DIGITS': int(os.environ.get('FORM_ENGINE_PHONE_MIN_DIGITS', 7)),
    'PHONE_MAX_DIGITS': int(os.environ.get('FORM_ENGINE_PHONE_MAX_DIGITS', 15)),
    'MAX_EXPRESSION_LENGTH': int(os.environ.get('FORM_ENGINE_MAX_EXPRESSION_LENGTH', 500)),
    'SANITIZE_SUBMISSIONS': True,
    'VALIDATE_HIDDEN_FIELDS': False,
}


# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'formbuilder': {
            'handlers': ['console'],
            'level': os.environ.get('FORM_ENGINE_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'submissions': {
            'handlers': ['console'],
            'level': os.environ.get('FORM_ENGINE_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
