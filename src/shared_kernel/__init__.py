"""
Общее ядро (Shared Kernel) для каталога туров и расчета цен.

Содержит общие типы данных, исключения, настройки и логирование,
используемые контекстами черновиков и расчета стоимости.
"""

from .config import Settings, settings
from .domain import (
    BusinessRuleValidationException,
    BusyError,
    CurrencyMismatchError,
    # Исключения
    DomainException,
    DraftDisposedError,
    DiscountType,
    DomainEvent,
    derive_discounted_price,
    # Базовые типы
    EntityId,
    # Перечисления
    EntityType,
    InvalidPathError,
    InvalidSelectionError,
    # Основные классы
    Money,
    NotFoundError,
    NotReadyError,
    SubmissionError,
    UploadError,
    format_money,
    generate_id,
    # Утилиты
    now,
    to_major_units,
    to_minor_units,
)
from .monitoring import ILogger, StdLogger, configure_logging

__all__ = [
    # Базовые типы
    "EntityId",
    "generate_id",
    # Основные классы
    "Money",
    "format_money",
    "to_minor_units",
    "to_major_units",
    # Перечисления
    "EntityType",
    "DiscountType",
    "DomainEvent",
    "derive_discounted_price",
    # Исключения
    "DomainException",
    "BusinessRuleValidationException",
    "CurrencyMismatchError",
    "NotFoundError",
    "BusyError",
    "NotReadyError",
    "InvalidPathError",
    "UploadError",
    "SubmissionError",
    "DraftDisposedError",
    "InvalidSelectionError",
    # Настройки и логирование
    "Settings",
    "settings",
    "ILogger",
    "StdLogger",
    "configure_logging",
    # Утилиты
    "now",
]
