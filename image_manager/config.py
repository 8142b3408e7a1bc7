"""Настройки библиотеки, читаемые из окружения."""
from __future__ import annotations

import logging

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Параметры ImageManager из переменных окружения `IMAGE_MANAGER_*`."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGE_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # no default: an implicit secret would make every container decryptable
    secret: SecretStr
    autorotate: bool = False
    default_quality: int = Field(100, ge=0, le=100)
    log_level: str = "INFO"

    @field_validator("secret")
    @classmethod
    def secret_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("secret must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level


def configure_logging(level: str = "INFO") -> None:
    """Базовая настройка логирования для приложений, использующих библиотеку."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
