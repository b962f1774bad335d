"""
Django project settings for the School Election backend
=======================================================

Configuration file for Django project. Contains database settings, security
configurations, installed apps, middleware, election engine tuning and
logging.

All deploy-time values come from the environment (or a .env file) through
python-decouple; DATABASE_URL is parsed with dj-database-url.
"""

import os
from pathlib import Path
from decouple import config  # pyright: ignore[reportMissingImports]
import dj_database_url  # pyright: ignore[reportMissingImports]

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config('SECRET_KEY', default='django-insecure-dev-key-change-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver').split(',')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'corsheaders',
    'elections',  # Election engine and API
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',  # Static files
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',  # CSRF protection
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',  # Clickjacking protection
    'elections.middleware.SecurityHeadersMiddleware',  # Custom security headers
    'elections.middleware.ApiErrorMiddleware',  # JSON error responses for /api/
]

ROOT_URLCONF = 'election_project.urls'

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

WSGI_APPLICATION = 'election_project.wsgi.application'
ASGI_APPLICATION = 'election_project.asgi.application'

# Database configuration
# Default: SQLite (development)
# Production: PostgreSQL (set DATABASE_URL environment variable)
DATABASE_URL = config('DATABASE_URL', default='')

if DATABASE_URL:
    DATABASES = {
        'default': dj_database_url.config(
            default=DATABASE_URL,
            conn_max_age=600,
            conn_health_checks=True,
        )
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.path.join(BASE_DIR, 'db.sqlite3'),
        }
    }

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en'
# Voting windows are entered in school-local time
TIME_ZONE = config('TIME_ZONE', default='UTC')
USE_I18N = False
USE_TZ = True

# Static files (admin CSS/JS)
STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Check if we are in a build process (dummy secret key)
IS_BUILD_PROCESS = SECRET_KEY == 'dummy-key-for-build'

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        # Manifest storage needs collectstatic, so only in production
        'BACKEND': (
            'django.contrib.staticfiles.storage.StaticFilesStorage'
            if DEBUG or IS_BUILD_PROCESS
            else 'whitenoise.storage.CompressedManifestStaticFilesStorage'
        ),
    },
}

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ============================================================================
# ELECTION ENGINE
# ============================================================================

ELECTIONS = {
    # Cache lifetimes (seconds)
    'STATUS_CACHE_TTL': config('ELECTION_STATUS_CACHE_TTL', default=30, cast=int),
    'SETTINGS_CACHE_TTL': config('SETTINGS_CACHE_TTL', default=600, cast=int),
    'SETTINGS_UPDATE_CACHE_TTL': config('SETTINGS_UPDATE_CACHE_TTL', default=300, cast=int),
    # Background sweep of expired cache entries, 0 disables
    'CACHE_SWEEP_INTERVAL': config('CACHE_SWEEP_INTERVAL', default=300, cast=int),
    # Bounded waits for database reads on the status/settings path
    'QUERY_TIMEOUT': config('SETTINGS_QUERY_TIMEOUT', default=10, cast=float),
    'ELECTION_QUERY_TIMEOUT': config('ELECTION_QUERY_TIMEOUT', default=5, cast=float),
    # Circuit breaker
    'BREAKER_FAILURE_THRESHOLD': config('BREAKER_FAILURE_THRESHOLD', default=3, cast=int),
    'BREAKER_RESET_TIMEOUT': config('BREAKER_RESET_TIMEOUT', default=60, cast=float),
    'BREAKER_SUCCESS_THRESHOLD': config('BREAKER_SUCCESS_THRESHOLD', default=2, cast=int),
    # Receipt token length
    'TOKEN_LENGTH': config('VOTE_TOKEN_LENGTH', default=6, cast=int),
}

# ============================================================================
# SECURITY SETTINGS (CRITICAL FOR PRODUCTION)
# ============================================================================

# Trust the X-Forwarded-Proto header coming from the proxy
SECURE_PROXY_SSL_HEADER = config('SECURE_PROXY_SSL_HEADER', default=None)
if SECURE_PROXY_SSL_HEADER:
    SECURE_PROXY_SSL_HEADER = tuple(SECURE_PROXY_SSL_HEADER.split(','))

# HTTPS redirect is usually done by the proxy in front of the app
SECURE_SSL_REDIRECT = config('SECURE_SSL_REDIRECT', default=False, cast=bool)

if not DEBUG:
    SESSION_COOKIE_SECURE = config('SESSION_COOKIE_SECURE', default=True, cast=bool)
    CSRF_COOKIE_SECURE = config('CSRF_COOKIE_SECURE', default=True, cast=bool)
    SESSION_COOKIE_SAMESITE = config('SESSION_COOKIE_SAMESITE', default='Lax')
    CSRF_COOKIE_SAMESITE = config('CSRF_COOKIE_SAMESITE', default='Lax')
else:
    # Development: Allow all cookies without strict security
    SESSION_COOKIE_SECURE = config('SESSION_COOKIE_SECURE', default=False, cast=bool)
    CSRF_COOKIE_SECURE = config('CSRF_COOKIE_SECURE', default=False, cast=bool)
    SESSION_COOKIE_SAMESITE = config('SESSION_COOKIE_SAMESITE', default='Lax')
    CSRF_COOKIE_SAMESITE = config('CSRF_COOKIE_SAMESITE', default='Lax')

# Session & Cookie settings
SESSION_COOKIE_AGE = config('SESSION_COOKIE_AGE', default=28800, cast=int)  # one school day
SESSION_COOKIE_HTTPONLY = config('SESSION_COOKIE_HTTPONLY', default=True, cast=bool)

# Security Headers
SECURE_HSTS_SECONDS = config('SECURE_HSTS_SECONDS', default=0, cast=int)
SECURE_HSTS_INCLUDE_SUBDOMAINS = config('SECURE_HSTS_INCLUDE_SUBDOMAINS', default=False, cast=bool)
X_FRAME_OPTIONS = config('X_FRAME_OPTIONS', default='DENY')  # Prevent clickjacking

# CORS configuration (the voting frontend runs on its own origin)
CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:3000,http://127.0.0.1:3000'
).split(',')
CORS_ALLOW_CREDENTIALS = True
CORS_EXPOSE_HEADERS = ['ETag', 'X-Settings-Source', 'X-Data-Source']

# CSRF Trusted Origins (required for POST requests from the frontend)
CSRF_TRUSTED_ORIGINS = config(
    'CSRF_TRUSTED_ORIGINS',
    default='http://localhost:8000,http://127.0.0.1:8000,http://localhost:3000'
).split(',')

# Logging configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[{levelname}] {asctime} {module} - {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO' if not DEBUG else 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'verbose' if not DEBUG else 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'elections': {
            'handlers': ['console'],
            'level': config('ELECTIONS_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}
