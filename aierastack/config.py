import os
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

from aierastack.errors import ConfigError


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


class Config:
    """Application configuration."""
    def __init__(self, load_env=True):
        if load_env:
            load_dotenv()
        self.github_token = _env_optional("GITHUB_TOKEN")
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///aierastack.db")
        self.cache_max_age_hours = _env_number("CACHE_MAX_AGE_HOURS", "24", float)
        self.default_model_id = os.getenv("DEFAULT_MODEL_ID", "gpt-5.2-codex")
        self.http_timeout = _env_number("HTTP_TIMEOUT", "10", float)
        self.max_retries = _env_number("UPSTREAM_MAX_RETRIES", "3", int)
        self.model_registry_path = _env_optional("MODEL_REGISTRY_PATH")
        self.curated_repos_path = _env_optional("CURATED_REPOS_PATH")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_file = _env_optional("LOG_FILE")

        if self.cache_max_age_hours < 0:
            raise ConfigError("CACHE_MAX_AGE_HOURS must not be negative")
        if self.max_retries < 0:
            raise ConfigError("UPSTREAM_MAX_RETRIES must not be negative")

    @property
    def cache_max_age(self) -> timedelta:
        return timedelta(hours=self.cache_max_age_hours)


def get_config(load_env=True):
    return Config(load_env=load_env)


if __name__ == '__main__':
    config = get_config()
    print(f"Database URL: {config.database_url}")
    print(f"GitHub token set: {bool(config.github_token)}")
    print(f"Cache max age: {config.cache_max_age}")
    print(f"Default model: {config.default_model_id}")
