"""Runtime configuration.

Settings come from the environment (optionally a `.env` file). Everything the
pipeline needs is carried on one `Settings` object so components can be built
with explicit values in tests.
"""

from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .normalize import parse_keywords


DEFAULT_PROFESSION_KEYWORDS = (
    "motorista de caminhão, caminhoneiro, condutor de caminhão, motorista profissional, "
    "condutor profissional, motorista de longa distância, condutor de longa distância, "
    "motorista internacional, condutor internacional, motorista de estrada, condutor rodoviário, "
    "motorista de carreta, condutor de carreta, motorista de caminhão articulado, motorista CE, "
    "condutor CE, motorista categoria C, condutor categoria C, motorista de caminhão basculante, "
    "motorista de caminhão-tanque, motorista de caminhão frigorífico, motorista entregador, "
    "motorista de cegonha, motorista de transporte de cargas, condutor de caminhão guindaste, "
    "motorista de transporte especial, motorista entregador de cargas pesadas, condutor entregador, "
    "motorista de utilitário, motorista de veículo leve, condutor de veículo leve"
)


class Settings(BaseModel):
    feed_url: str = ""
    max_jobs: int = Field(default=1000, ge=0)
    cron_schedule: str = "0 */6 * * *"

    openai_api_key: Optional[str] = None
    ai_enabled: bool = True
    ai_process_limit: int = Field(default=0, ge=0, description="0 = unlimited.")
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.2

    profession_keywords: List[str] = Field(default_factory=lambda: parse_keywords(DEFAULT_PROFESSION_KEYWORDS))
    target_profession: str = "motorista"
    target_lang: str = "pt"
    site_url: str = "http://localhost:3004"
    default_country: str = "US"

    db_path: str = "jobs.db"
    batch_size: int = Field(default=100, ge=1)
    fetch_timeout: Optional[float] = None
    ai_timeout: Optional[float] = None

    @field_validator("profession_keywords", mode="before")
    @classmethod
    def _split_keywords(cls, value):
        if isinstance(value, str):
            return parse_keywords(value)
        return parse_keywords(",".join(value or []))

    @field_validator("site_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def ai_available(self) -> bool:
        return self.ai_enabled and bool(self.openai_api_key)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from environment variables (after loading `.env`)."""
        load_dotenv(env_file)

        def _get(name: str) -> Optional[str]:
            val = os.getenv(name)
            if val is None or not val.strip():
                return None
            return val.strip()

        mapping = {
            "feed_url": "FEED_URL",
            "max_jobs": "MAX_JOBS",
            "cron_schedule": "CRON_SCHEDULE",
            "openai_api_key": "OPENAI_API_KEY",
            "ai_enabled": "AI_ENABLED",
            "ai_process_limit": "AI_PROCESS_LIMIT",
            "openai_model": "OPENAI_MODEL",
            "openai_temperature": "OPENAI_TEMPERATURE",
            "profession_keywords": "PROFESSION_KEYWORDS",
            "target_profession": "TARGET_PROFESSION",
            "target_lang": "TARGET_LANG",
            "site_url": "SITE_URL",
            "default_country": "DEFAULT_COUNTRY",
            "db_path": "DB_PATH",
            "batch_size": "BATCH_SIZE",
            "fetch_timeout": "FETCH_TIMEOUT",
            "ai_timeout": "AI_TIMEOUT",
        }
        values = {field: _get(env) for field, env in mapping.items()}
        # Pydantic coerces the strings; unset variables keep their defaults.
        return cls(**{k: v for k, v in values.items() if v is not None})
