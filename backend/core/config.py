import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Identity provider (HS256 shared secret for ID tokens)
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_ALGORITHMS: str = "HS256"  # comma-separated

    # Database & Cache
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None
    REDIS_URL: str = "redis://localhost:6379/0"

    # Badge persistence backends
    BADGE_DOCUMENT_BACKEND: str = "memory"  # memory | sql
    STREAK_STORAGE_BACKEND: str = "memory"  # memory | redis

    # Evaluation
    BADGE_DEBOUNCE_MS: int = 100
    BADGE_TIMEZONE: str = "UTC"

    # WebSocket
    WS_ALLOWED_ORIGINS: str = "*"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate backend selection against the configured URLs.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("smi")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.BADGE_DOCUMENT_BACKEND not in ("memory", "sql"):
        problems.append(f"BADGE_DOCUMENT_BACKEND={cfg.BADGE_DOCUMENT_BACKEND!r}")
    if cfg.STREAK_STORAGE_BACKEND not in ("memory", "redis"):
        problems.append(f"STREAK_STORAGE_BACKEND={cfg.STREAK_STORAGE_BACKEND!r}")
    if cfg.BADGE_DOCUMENT_BACKEND == "sql" and not (cfg.DATABASE_URL or cfg.TEST_DATABASE_URL):
        problems.append("DATABASE_URL")
    if cfg.STREAK_STORAGE_BACKEND == "redis" and not cfg.REDIS_URL:
        problems.append("REDIS_URL")
    if cfg.BADGE_DEBOUNCE_MS < 0:
        problems.append("BADGE_DEBOUNCE_MS")

    if problems:
        message = f"Invalid or missing configuration: {', '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
