import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv


DEFAULT_JWT_SECRET = "change-me"


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed explicitly."""

    app_env: str = "development"
    database_url: str = "sqlite:///./clinic.db"
    sql_echo: bool = False

    jwt_secret_key: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 24 * 60

    cors_origins: tuple[str, ...] = field(default_factory=lambda: ("http://localhost:3000",))
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


def load_settings(environ: dict | None = None) -> Settings:
    if environ is None:
        load_dotenv()
        environ = os.environ

    defaults = Settings()
    return Settings(
        app_env=environ.get("APP_ENV", defaults.app_env),
        database_url=environ.get("DATABASE_URL", defaults.database_url),
        sql_echo=_get_bool(environ.get("SQL_ECHO"), default=defaults.sql_echo),
        jwt_secret_key=environ.get("JWT_SECRET_KEY", defaults.jwt_secret_key),
        jwt_algorithm=environ.get("JWT_ALGORITHM", defaults.jwt_algorithm),
        jwt_expires_minutes=int(environ.get("JWT_EXPIRES_MINUTES", str(defaults.jwt_expires_minutes))),
        cors_origins=_get_list(environ.get("CORS_ORIGINS"), defaults.cors_origins),
        log_level=environ.get("LOG_LEVEL", defaults.log_level).upper(),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


def validate_runtime_config(settings: Settings) -> None:
    if settings.is_production and settings.jwt_secret_key == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
