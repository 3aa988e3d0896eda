import os

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "1" if default else "0").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return bool(default)


def _get_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    APP_NAME = os.getenv("APP_NAME", "Isa Nails Design API").strip()
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0").strip()
    HOST = os.getenv("HOST", "0.0.0.0").strip()
    PORT = _get_int("PORT", 3333)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./nailbook.db")
    DB_AUTO_CREATE_ALL = _get_bool("DB_AUTO_CREATE_ALL", True)

    AUTH_SECRET_KEY = os.getenv("AUTH_SECRET_KEY", "isa-nails-secret-key-change-in-production").strip()
    AUTH_ALGORITHM = os.getenv("AUTH_ALGORITHM", "HS256").strip()
    AUTH_ACCESS_TOKEN_MINUTES = _get_int("AUTH_ACCESS_TOKEN_MINUTES", 60 * 24 * 7)
    AUTH_PASSWORD_MIN_LENGTH = _get_int("AUTH_PASSWORD_MIN_LENGTH", 6)
    AUTH_TOKEN_COOKIE = os.getenv("AUTH_TOKEN_COOKIE", "token").strip()

    CORS_ORIGINS = _get_list("CORS_ORIGINS", "http://localhost:3000")
    SECURITY_HEADERS_ENABLED = _get_bool("SECURITY_HEADERS_ENABLED", True)

    SLOT_STEP_MINUTES = max(1, _get_int("SLOT_STEP_MINUTES", 30))


settings = Settings()
