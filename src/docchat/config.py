from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import dotenv_values
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Configuration settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_max_bytes: int = 1024 * 1024
    log_backup_count: int = 3

    data_dir: str = "data"
    upload_dir: Optional[str] = None
    documents_dir: Optional[str] = None
    registry_path: Optional[str] = None
    tmp_dir: Optional[str] = None

    ollama_host: str = "http://localhost:11434"
    ollama_timeout: float = 120.0
    ollama_max_attempts: int = 3
    default_model: str = "llama3"
    fallback_models: List[str] = ["llama3", "mistral"]

    @model_validator(mode="after")
    def _derive_paths(self) -> "Settings":
        base = Path(self.data_dir)
        if self.upload_dir is None:
            self.upload_dir = str(base / "uploads")
        if self.documents_dir is None:
            self.documents_dir = str(base / "documents")
        if self.registry_path is None:
            self.registry_path = str(base / "documents.json")
        return self


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Прочитать ``config.yml``; отсутствующий файл даёт пустой словарь."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top-level value is not a mapping", path)
        return {}
    return data


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Собрать настройки из ``config.yml`` и окружения.

    Путь к YAML можно переопределить переменной ``CONFIG_PATH``. Порядок
    приоритета: переменные окружения, затем ``.env``, затем ``config.yml``.
    """
    path = Path(config_path or os.getenv("CONFIG_PATH", "config.yml"))
    env_file = Settings.model_config.get("env_file")
    overridden = {key.lower() for key in os.environ}
    if env_file and Path(env_file).exists():
        overridden.update(key.lower() for key in dotenv_values(env_file))
    values = {
        key: value
        for key, value in _read_yaml(path).items()
        if key.lower() not in overridden
    }
    return Settings(**values)


__all__ = ["Settings", "load_settings"]
