"""Process-level settings, read from ``DESTINOTE_*`` environment variables."""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import ROOM_KEY_PREFIX


class EngineSettings(BaseSettings):
    storage_dir: str = ".destinote"
    key_prefix: str = ROOM_KEY_PREFIX
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DESTINOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
