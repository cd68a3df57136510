"""
Основные доменные типы и утилиты общего ядра.

Деньги всегда хранятся в минимальных единицах валюты (центы, пиастры),
перевод в основные единицы выполняется только на границах системы.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Общие типы идентификаторов
EntityId = UUID

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")

MajorAmount = Union[int, float, str, Decimal]


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


# Общие исключения
class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    pass


class BusinessRuleValidationException(DomainException):
    """Исключение при нарушении бизнес-правил."""

    pass


class CurrencyMismatchError(DomainException):
    """Операция над суммами в разных валютах."""

    pass


class NotFoundError(DomainException):
    """Запрошенный объект отсутствует."""

    pass


class BusyError(DomainException):
    """Повторный запуск процесса, который еще не завершился."""

    pass


class NotReadyError(DomainException):
    """Операция вызвана раньше, чем объект к ней готов."""

    pass


class InvalidPathError(DomainException):
    """Некорректный путь к полю черновика (ошибка программиста)."""

    pass


class UploadError(DomainException):
    """Ошибка загрузки изображения. Частичного результата не бывает."""

    pass


class SubmissionError(DomainException):
    """Бэкенд или транспорт отклонили отправку черновика."""

    pass


class DraftDisposedError(SubmissionError):
    """Черновик был закрыт, пока шла загрузка изображений."""

    pass


class InvalidSelectionError(DomainException):
    """Некорректные входные данные для расчета стоимости."""

    pass


def to_minor_units(value: MajorAmount) -> int:
    """Переводит сумму в основных единицах в целое число минимальных единиц."""
    try:
        major = Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except ArithmeticError as e:
        raise BusinessRuleValidationException(f"Некорректная сумма: {value!r}") from e
    return int(major * MINOR_UNITS_PER_MAJOR)


def to_major_units(minor: int) -> Decimal:
    """Переводит минимальные единицы в основные (Decimal с двумя знаками)."""
    return (Decimal(minor) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


class Money(BaseModel):
    """Денежная сумма с валютой в минимальных единицах."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., ge=0, description="Сумма в минимальных единицах")
    currency: str = Field(
        ..., min_length=3, max_length=3, description="Код валюты (ISO 4217)"
    )

    @field_validator("currency")
    @classmethod
    def currency_must_be_iso_code(cls, v: str) -> str:
        if not v.isalpha() or not v.isupper():
            raise ValueError(
                "Код валюты должен состоять из 3 заглавных букв (например, USD, EGP)"
            )
        return v

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(amount=0, currency=currency)

    @classmethod
    def from_major(cls, value: MajorAmount, currency: str) -> "Money":
        """Создает сумму из значения в основных единицах (например, 1000.00)."""
        return cls(amount=to_minor_units(value), currency=currency)

    def to_major(self) -> Decimal:
        return to_major_units(self.amount)

    def is_zero(self) -> bool:
        return self.amount == 0

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Нельзя смешивать валюты {self.currency} и {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        if self.amount < other.amount:
            raise BusinessRuleValidationException(
                "Результат не может быть отрицательным"
            )
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __mul__(self, multiplier: int) -> "Money":
        if isinstance(multiplier, bool) or not isinstance(multiplier, int):
            raise TypeError("Множитель должен быть целым числом")
        if multiplier < 0:
            raise BusinessRuleValidationException("Множитель не может быть отрицательным")
        return Money(amount=self.amount * multiplier, currency=self.currency)

    __rmul__ = __mul__

    def __lt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return format_money(self)


def format_money(money: Money) -> str:
    """Форматирует сумму для отображения в валюте самой суммы."""
    return f"{money.to_major():,.2f} {money.currency}"


# Общие перечисления
class EntityType(str, Enum):
    """Типы редактируемых записей каталога."""

    TOUR = "tour"
    HOTEL = "hotel"
    PACKAGE = "package"


class DiscountType(str, Enum):
    """Способ задания скидки в пакете."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


def derive_discounted_price(
    base: Money, discount_type: DiscountType, value: MajorAmount
) -> Money:
    """Вычисляет цену со скидкой из процента или фиксированной суммы.

    Фиксированная скидка задается в основных единицах. Результат не бывает
    отрицательным.
    """
    value = Decimal(str(value))
    if value < 0:
        raise BusinessRuleValidationException("Скидка не может быть отрицательной")
    if discount_type == DiscountType.PERCENTAGE:
        if value > 100:
            raise BusinessRuleValidationException("Скидка не может превышать 100%")
        off = (Decimal(base.amount) * value / 100).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        off = int(off)
    else:
        off = to_minor_units(value)
    return Money(amount=max(base.amount - off, 0), currency=base.currency)


class DomainEvent(BaseModel):
    """Базовый класс для всех доменных событий."""

    event_id: UUID = Field(default_factory=uuid4)
    occurred_on: datetime = Field(default_factory=lambda: now())
    event_type: str


# Общие утилиты
def now() -> datetime:
    """Возвращает текущую дату и время (UTC)."""
    return datetime.now(timezone.utc)
