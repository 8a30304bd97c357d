from pathlib import Path
import sys
import os
from dotenv import load_dotenv
import dj_database_url
from urllib.parse import urlparse, parse_qsl

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Shared core apps live in company_core for reuse across projects.
CORE_DIR = BASE_DIR / "company_core"
if CORE_DIR.exists() and str(CORE_DIR) not in sys.path:
    sys.path.insert(0, str(CORE_DIR))

# Load environment variables from .env (default) or .env.example (fallback)
_env_file = os.getenv("ENV_FILE")
if _env_file:
    # Load an explicit env file first (e.g. for CI or alternate configs).
    # Then load .env.example as a "defaults" layer (does not override).
    load_dotenv(_env_file)
    load_dotenv(BASE_DIR / '.env.example', override=False)
else:
    load_dotenv(BASE_DIR / '.env')
    load_dotenv(BASE_DIR / '.env.example', override=False)


def _env_truthy(value, default=False):
    """Return True when the provided environment value represents truthy."""

    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_strip(value):
    return value.strip() if value else ''


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-local-development-key')

DEBUG = _env_truthy(os.getenv('DEBUG'), True)

_DEFAULT_ALLOWED_HOSTS = [
    'localhost',
    '127.0.0.1',
    'testserver',
]

_allowed_hosts_env = os.getenv('ALLOWED_HOSTS')
_configured_hosts = (
    [h.strip() for h in _allowed_hosts_env.split(',') if h.strip()]
    if _allowed_hosts_env
    else []
)

ALLOWED_HOSTS = []
for _host in _DEFAULT_ALLOWED_HOSTS + _configured_hosts:
    if _host not in ALLOWED_HOSTS:
        ALLOWED_HOSTS.append(_host)

# CSRF trusted origins (comma-separated) e.g. https://fleet.example.com
_csrf_env = os.getenv('CSRF_TRUSTED_ORIGINS', '')
if _csrf_env:
    CSRF_TRUSTED_ORIGINS = [o.strip() for o in _csrf_env.split(',') if o.strip()]
else:
    CSRF_TRUSTED_ORIGINS = [
        'http://localhost:8000',
        'http://127.0.0.1:8000',
    ]

# Shared-secret gate in front of the whole API. Leave both blank to disable.
BASIC_AUTH_USERNAME = _env_strip(os.getenv('BASIC_AUTH_USERNAME', ''))
BASIC_AUTH_PASSWORD = _env_strip(os.getenv('BASIC_AUTH_PASSWORD', ''))
BASIC_AUTH_EXEMPT_PATHS = ['/healthz/', '/api/health/']

# Trip settlement policy. Defaults match the fixed business percentages.
TRIP_SETTLEMENT_POLICY = {
    'fuel_cost_per_liter': os.getenv('FUEL_COST_PER_LITER', '80'),
    'advance_fraction': os.getenv('ADVANCE_FRACTION', '0.35'),
    'driver_fraction': os.getenv('DRIVER_FRACTION', '0.20'),
}

# Application definition

INSTALLED_APPS = [
    'django.contrib.staticfiles',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'corsheaders',
    'rest_framework',
    'rest_framework.authtoken',
    'fleet',
    'api',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'fleet_backoffice.basic_auth.BasicAuthGateMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

CORS_ORIGIN_ALLOW_ALL = True
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = [
    'accept',
    'authorization',
    'content-type',
    'origin',
    'token',
    'x-csrftoken',
    'x-requested-with',
]

ROOT_URLCONF = 'fleet_backoffice.urls'

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

WSGI_APPLICATION = 'fleet_backoffice.wsgi.application'

# Database
# https://docs.djangoproject.com/en/5.0/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

# Keep SQLite when explicitly requested.
_force_sqlite = _env_truthy(os.getenv('FORCE_SQLITE'), False)

# Enable DATABASE_URL parsing when provided; fallback stays SQLite
_raw_db_url = os.getenv('DATABASE_URL', '')
_clean_db_url = _raw_db_url.strip().strip('"').strip("'")
if (not _force_sqlite) and _clean_db_url:
    try:
        DATABASES['default'] = dj_database_url.parse(
            _clean_db_url,
            conn_max_age=600,
            ssl_require=_env_truthy(os.getenv('DB_SSL_REQUIRE'), True),
        )
    except ValueError:
        # Fallback manual parse for Postgres URLs if dj_database_url fails
        _u = urlparse(_clean_db_url)
        if _u.scheme in ('postgres', 'postgresql', 'pgsql'):
            _opts = dict(parse_qsl(_u.query or ''))
            if _env_truthy(os.getenv('DB_SSL_REQUIRE'), True) and 'sslmode' not in _opts:
                _opts['sslmode'] = 'require'
            DATABASES['default'] = {
                'ENGINE': 'django.db.backends.postgresql',
                'NAME': (_u.path or '').lstrip('/'),
                'USER': _u.username,
                'PASSWORD': _u.password,
                'HOST': _u.hostname,
                'PORT': _u.port or 5432,
                'OPTIONS': _opts,
            }

if DATABASES['default']['ENGINE'] in {
    'django.db.backends.postgresql',
    'django.db.backends.postgresql_psycopg2',
}:
    DATABASES['default']['DISABLE_SERVER_SIDE_CURSORS'] = True


# Password validation
# https://docs.djangoproject.com/en/5.0/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {
            'min_length': 8,
        }
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'api.authentication.HeaderTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_PAGINATION_CLASS': 'api.pagination.StandardPagination',
    'PAGE_SIZE': 10,
    'COERCE_DECIMAL_TO_STRING': False,
}

# Internationalization
# https://docs.djangoproject.com/en/5.0/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')

USE_I18N = True

USE_TZ = True

# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.0/howto/static-files/

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

if not DEBUG:
    STORAGES = {
        'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
        'staticfiles': {'BACKEND': 'whitenoise.storage.CompressedStaticFilesStorage'},
    }
    WHITENOISE_MANIFEST_STRICT = False
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_SSL_REDIRECT = _env_truthy(os.getenv('SECURE_SSL_REDIRECT'), False)

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_TO_FILE = _env_truthy(os.getenv('LOG_TO_FILE'), False)
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
        **({
            'file': {
                'level': 'INFO',
                'class': 'logging.FileHandler',
                'filename': os.path.join(BASE_DIR, 'logs', 'fleet_backoffice.log'),
                'formatter': 'simple',
            }
        } if LOG_TO_FILE else {})
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'fleet': {
            'handlers': ['file'] if LOG_TO_FILE else ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'api': {
            'handlers': ['file'] if LOG_TO_FILE else ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
