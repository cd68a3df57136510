"""
Настройки приложения, загружаемые из переменных окружения.

Переменные имеют префикс TRAVEL_ (например, TRAVEL_DRAFT_MAX_AGE_HOURS=24)
и могут быть заданы в файле .env.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Настройки черновиков, изображений и расчета цен."""

    model_config = SettingsConfigDict(
        env_prefix="TRAVEL_", env_file=".env", extra="ignore"
    )

    # Черновики
    draft_key_prefix: str = "draft"
    draft_max_age_hours: int = 72

    # Изображения
    uploads_root: str = "/uploads"
    local_preview_schemes: List[str] = ["blob:"]

    # Цены
    default_currency: str = "EGP"

    # Логирование
    log_level: str = "INFO"


# Глобальный экземпляр настроек
settings = Settings()
