"""Configuration for kube-stack."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings, read from ``KUBE_STACK_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="KUBE_STACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Credentials
    credentials_dir: Path = Field(
        default_factory=lambda: Path.home() / ".kube-stack",
        description="Directory holding one kubeconfig file per host address",
    )

    # Stacks
    resources_dir: Path = Field(
        default_factory=lambda: Path(__file__).parent / "resources",
        description="Directory holding one sub-directory of manifests per stack",
    )

    # HTTP transport
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_wait_min_seconds: float = Field(default=1.0, ge=0)
    retry_wait_max_seconds: float = Field(default=10.0, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
