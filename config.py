import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _int_env(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


DATABASE_PATH = os.environ.get('DATABASE_PATH', os.path.join(BASE_DIR, 'hyakumeizan.db'))
SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-only-change-me')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

# Comma-separated list of admin e-mail addresses
ADMIN_EMAILS = [e.strip() for e in os.environ.get('ADMIN_EMAILS', '').split(',') if e.strip()]

USER_AGENT = os.environ.get('USER_AGENT', 'hyakumeizan-guide/1.0 (+https://hyakumeizan-guide.example)')

COMMONS_API = os.environ.get('COMMONS_API', 'https://commons.wikimedia.org/w/api.php')
JAWIKI_API = os.environ.get('JAWIKI_API', 'https://ja.wikipedia.org/w/api.php')

# Image proxy limits
IMAGE_MAX_BYTES = _int_env('IMAGE_MAX_BYTES', 5 * 1024 * 1024)
IMAGE_TIMEOUT = _float_env('IMAGE_TIMEOUT', 10.0)
IMAGE_MAX_RETRIES = _int_env('IMAGE_MAX_RETRIES', 2)
API_TIMEOUT = _float_env('API_TIMEOUT', 10.0)

# Fixed-window limiter for the proxy endpoints
RATE_LIMIT_REQUESTS = _int_env('RATE_LIMIT_REQUESTS', 120)
RATE_LIMIT_WINDOW = _int_env('RATE_LIMIT_WINDOW', 60)

BATCH_MAX_WORKERS = _int_env('BATCH_MAX_WORKERS', 8)
