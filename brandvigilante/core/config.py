import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV.lower() == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG").upper()

ORIGIN = os.getenv("ORIGIN", "http://localhost:5173").rstrip("/")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", ORIGIN).split(",") if origin.strip()]
TRUST_PROXY_HEADERS = _get_bool(os.getenv("TRUST_PROXY_HEADERS"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "")
DB_DRIVER = os.getenv("DB_DRIVER", "postgresql+psycopg2")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = _get_int(os.getenv("DB_PORT"), 5432)
DB_USER = os.getenv("DB_USER", "")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "brandvigilante")
DB_POOL_SIZE = _get_int(os.getenv("DB_POOL_SIZE"), 10)
QUERY_TIMEOUT_SECONDS = float(os.getenv("QUERY_TIMEOUT_SECONDS", "5"))

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
SESSION_MAX_AGE_DAYS = min(max(_get_int(os.getenv("SESSION_MAX_AGE_DAYS"), 30), 7), 30)
SESSION_SAME_SITE = os.getenv("SESSION_SAME_SITE", "lax").lower()
SESSION_COOKIE_SECURE = _get_bool(os.getenv("SESSION_COOKIE_SECURE"), default=IS_PRODUCTION)
COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None

ARGON2_MEMORY_COST = _get_int(os.getenv("ARGON2_MEMORY_COST"), 2 ** 16)
ARGON2_TIME_COST = _get_int(os.getenv("ARGON2_TIME_COST"), 3)
ARGON2_PARALLELISM = _get_int(os.getenv("ARGON2_PARALLELISM"), 1)

LOGIN_RATE_LIMIT_WINDOW_SECONDS = _get_int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS"), 15 * 60)
LOGIN_RATE_LIMIT_MAX_ATTEMPTS = _get_int(os.getenv("LOGIN_RATE_LIMIT_MAX_ATTEMPTS"), 5)
CACHE_SWEEP_INTERVAL_SECONDS = _get_int(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS"), 5 * 60)
SESSION_SWEEP_INTERVAL_SECONDS = _get_int(os.getenv("SESSION_SWEEP_INTERVAL_SECONDS"), 60 * 60)

PASSWORD_RESET_TOKEN_HOURS = 24
VERIFICATION_TOKEN_DAYS = 7
MAX_VERIFICATION_ATTEMPTS = 3

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{ORIGIN}/login/google/callback")
GOOGLE_AUTH_URI = os.getenv("GOOGLE_AUTH_URI", "https://accounts.google.com/o/oauth2/v2/auth")
GOOGLE_TOKEN_URI = os.getenv("GOOGLE_TOKEN_URI", "https://oauth2.googleapis.com/token")
GOOGLE_USERINFO_URI = os.getenv("GOOGLE_USERINFO_URI", "https://openidconnect.googleapis.com/v1/userinfo")
GOOGLE_HTTP_TIMEOUT_SECONDS = float(os.getenv("GOOGLE_HTTP_TIMEOUT_SECONDS", "10"))
OAUTH_COOKIE_MAX_AGE_SECONDS = 10 * 60

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = _get_int(os.getenv("SMTP_PORT"), 587)
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", os.getenv("SMTP_PASS", ""))
SMTP_FROM = os.getenv("SMTP_FROM", SMTP_USER)
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)

ADMIN_NOTIFICATION_EMAIL = os.getenv("ADMIN_NOTIFICATION_EMAIL", "")


def validate_runtime_config() -> None:
    if not IS_PRODUCTION:
        return
    if not ORIGIN.startswith("https://"):
        raise RuntimeError("ORIGIN must be an https URL in production.")
    if GOOGLE_CLIENT_ID and not GOOGLE_CLIENT_SECRET:
        raise RuntimeError("GOOGLE_CLIENT_SECRET must be set when GOOGLE_CLIENT_ID is configured.")
