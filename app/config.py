# app/config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Process-wide settings, read once at startup and handed to create_app().


@dataclass(frozen=True)
class Settings:
    database_url: str = "memory://productsDB"
    host: str = "0.0.0.0"
    port: int = 3000
    api_key: Optional[str] = None
    environment: str = "development"
    max_page_size: int = 100
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def database_name(self) -> str:
        # "memory://productsDB" -> "productsDB"
        name = self.database_url.split("://", 1)[-1].rstrip("/")
        return name.rsplit("/", 1)[-1] or "productsDB"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            host=os.getenv("HOST", cls.host),
            port=_int_env("PORT", cls.port),
            api_key=os.getenv("API_KEY") or None,
            environment=os.getenv("APP_ENV", cls.environment),
            max_page_size=_int_env("MAX_PAGE_SIZE", cls.max_page_size),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
