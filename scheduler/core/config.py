import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduler.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

PUBLIC_BOOKING_RATE_LIMIT = int(os.getenv("PUBLIC_BOOKING_RATE_LIMIT", "10"))
PUBLIC_BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("PUBLIC_BOOKING_RATE_WINDOW_SECONDS", str(15 * 60)))
PUBLIC_BOOKING_LOOKAHEAD_DAYS = int(os.getenv("PUBLIC_BOOKING_LOOKAHEAD_DAYS", "30"))

# Only honour X-Forwarded-For when the app sits behind a proxy that sets it.
TRUST_PROXY_HEADERS = _get_bool(os.getenv("TRUST_PROXY_HEADERS"), default=False)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
