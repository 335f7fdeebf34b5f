import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early so env vars are available for YAML interpolation
load_dotenv(Path.cwd() / ".env")

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")

_config_path_override: Path | None = None


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def set_config_path(path: Path | str | None) -> None:
    """Override the config file location (used by the --config-file option)."""
    global _config_path_override
    _config_path_override = Path(path) if path is not None else None


def get_config_path() -> Path:
    """Return the YAML config path: override, app.<PACKHUB_ENV>.yaml, or app.yaml."""
    if _config_path_override is not None:
        return _config_path_override

    env = os.environ.get("PACKHUB_ENV", "").strip()
    if env and env != "production":
        return Path.cwd() / f"app.{env}.yaml"
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse the YAML config with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./packhub.db"
    pool_size: int = 5
    pool_overflow: int = 10
    pool_timeout: int = 30
    pool_pre_ping: bool = True
    echo: bool = False


class StorageConfig(BaseModel):
    """Upload tree and staging cleanup configuration."""

    base_path: str = "uploads"
    # Staging directories idle for longer than this are swept (seconds)
    staging_max_age: int = 86400
    # How often the background sweep runs; 0 disables it
    sweep_interval: int = 3600
    # Upper bound for a single multipart request body
    max_request_size: int = 512 * 1024 * 1024


class AuthConfig(BaseModel):
    """Static API key configuration."""

    token_path: str = "apiToken/apiToken.json"
    header: str = "x-api-key"


class RateLimitConfig(BaseModel):
    """Sliding window limit applied to the authentication endpoint."""

    enabled: bool = True
    requests: int = 15
    window: int = 15 * 60
    paths: list[str] = ["/authenticate"]


class LoggingConfig(BaseModel):
    """Application and request log configuration."""

    level: str = "INFO"
    request_log: str | None = "logs/logs.log"


class LogfireConfig(BaseModel):
    """Optional Pydantic Logfire tracing."""

    enabled: bool = False
    service_name: str = "packhub"
    environment: str | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PACKHUB_",
        extra="ignore",
    )

    # Application
    debug: bool = False
    api_url: str = "/api"

    db: DatabaseConfig = DatabaseConfig()
    storage: StorageConfig = StorageConfig()
    auth: AuthConfig = AuthConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    logging: LoggingConfig = LoggingConfig()
    logfire: LogfireConfig = LogfireConfig()


_SECTIONS = {
    "db": DatabaseConfig,
    "storage": StorageConfig,
    "auth": AuthConfig,
    "rate_limit": RateLimitConfig,
    "logging": LoggingConfig,
    "logfire": LogfireConfig,
}


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment and the YAML config file."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {}
    for key in ("debug", "api_url"):
        if key in app_config:
            updates[key] = app_config[key]

    for key, model in _SECTIONS.items():
        if key in app_config:
            updates[key] = model(**(app_config[key] or {}))

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings


def clear_settings_cache() -> None:
    get_settings.cache_clear()
