"""Configuration from environment: manifest directory, CDN URL, hashing, logging."""

import hashlib
import os
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CDN_URL = "http://static.cdn.ea.com/blackbox/static"


def get_config_dir() -> Path:
    """Platform-specific config directory (no admin). SPEEDLOAD_CONFIG_DIR overrides it."""
    override = os.environ.get("SPEEDLOAD_CONFIG_DIR", "").strip()
    if override:
        return Path(override)
    if os.name == "nt":
        base = os.environ.get("APPDATA", os.path.expanduser("~"))
        return Path(base) / "SpeedLoad"
    if os.environ.get("XDG_CONFIG_HOME"):
        return Path(os.environ["XDG_CONFIG_HOME"]) / "speedload"
    return Path.home() / ".config" / "speedload"


class Settings(BaseSettings):
    """Downloader settings from env."""

    model_config = SettingsConfigDict(env_prefix="SPEEDLOAD_", extra="ignore")

    # Hash files (HashFile<id>.hsh) live here; unset means the config dir
    manifest_dir: Optional[Path] = None

    # CDN
    cdn_url: str = DEFAULT_CDN_URL
    request_timeout: float = 60.0
    max_workers: int = 4

    # Any fixed-length hashlib algorithm name; digests are stored base64-encoded
    hash_algorithm: str = "sha256"

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = "INFO"
    log_file: str = ""

    @field_validator("cdn_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("max_workers")
    @classmethod
    def _at_least_one_worker(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_workers must be >= 1")
        return v

    @field_validator("hash_algorithm")
    @classmethod
    def _fixed_length_algorithm(cls, v: str) -> str:
        name = v.strip().lower()
        if name not in hashlib.algorithms_available:
            raise ValueError(f"unknown hash algorithm {v!r}")
        # shake_* report digest_size 0 and need an explicit length
        if hashlib.new(name).digest_size == 0:
            raise ValueError(f"variable-length hash algorithm {v!r} is not supported")
        return name

    @property
    def manifest_path(self) -> Path:
        """Directory for hash files, falling back to the config dir when unset."""
        return self.manifest_dir or get_config_dir()


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
