import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        auth_secret: str,
        token_max_age_days: int,
        environment: str,
        cors_origins: list[str],
        create_schema: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.auth_secret = auth_secret
        self.token_max_age_days = token_max_age_days
        self.environment = environment
        self.cors_origins = cors_origins
        self.create_schema = create_schema

    @property
    def token_max_age_secs(self) -> int:
        return self.token_max_age_days * 24 * 3600

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINTRACK_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    auth_secret = os.getenv("FINTRACK_AUTH_SECRET", "").strip()
    if not auth_secret:
        raise RuntimeError("FINTRACK_AUTH_SECRET environment variable is not set")

    database_url = os.getenv("FINTRACK_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "fintrack.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("FINTRACK_TIMEZONE", "UTC")
    token_max_age_days = int(os.getenv("FINTRACK_TOKEN_MAX_AGE_DAYS", "7"))
    environment = os.getenv("FINTRACK_ENVIRONMENT", "development")
    cors_origins = _split_origins(os.getenv("FINTRACK_CORS_ORIGINS", "*"))
    create_schema = os.getenv("FINTRACK_CREATE_SCHEMA", "1") not in {"0", "false", "no"}
    return Settings(
        database_url=database_url,
        timezone=timezone,
        auth_secret=auth_secret,
        token_max_age_days=token_max_age_days,
        environment=environment,
        cors_origins=cors_origins,
        create_schema=create_schema,
    )
