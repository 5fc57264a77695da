"""
Django settings for the lettergen project.

Only the district resolution engine lives in this project; the letter form,
campaign management and text generation are separate services.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-insecure-change-me')

DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() in ('1', 'true', 'yes')

ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',
    'districts',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'lettergen.urls'

WSGI_APPLICATION = 'lettergen.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'lettergen-default',
    }
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Europe/Berlin'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# District resolution
# Versioned snapshot files, one directory per country:
#   <DISTRICT_DATA_DIR>/<cc>/districts.json         district catalog
#   <DISTRICT_DATA_DIR>/<cc>/representatives.json   representative roster
#   <DISTRICT_DATA_DIR>/<cc>/<table>                 resolution table
DISTRICT_DATA_DIR = Path(os.environ.get('DISTRICT_DATA_DIR', BASE_DIR / 'data'))

DISTRICT_RESOLUTION = {
    'DE': {
        'strategy': 'spatial',
        'table': 'plz-wahlkreis.json',
    },
    'FR': {
        'strategy': 'crosswalk',
        'table': 'plz-circonscription.json',
    },
    'US': {
        'strategy': 'crosswalk',
        'table': 'zip-district.json',
    },
    'CA': {
        'strategy': 'prefix',
        'table': 'fsa-riding.json',
    },
    'GB': {
        'strategy': 'geocoding',
        'endpoint': 'https://api.postcodes.io/postcodes/',
        'result_field': 'parliamentary_constituency_2024',
    },
}

GEOCODING_TIMEOUT_SECONDS = float(os.environ.get('GEOCODING_TIMEOUT_SECONDS', '5'))
GEOCODING_CACHE_SECONDS = int(os.environ.get('GEOCODING_CACHE_SECONDS', str(60 * 60 * 24)))
GEOCODING_USER_AGENT = 'lettergen/0.1 (district lookup)'

# Offline builds fail when more postal codes than this stay unmatched.
SPATIAL_MAX_UNMATCHED_RATIO = float(os.environ.get('SPATIAL_MAX_UNMATCHED_RATIO', '0.02'))

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
    'loggers': {
        'districts': {
            'handlers': ['console'],
            'level': os.environ.get('DISTRICTS_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
