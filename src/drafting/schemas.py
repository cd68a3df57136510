"""
Схемы форм записей каталога и правила проверки полей.

Каждая схема - pydantic-модель, повторяющая форму администратора. Денежные
поля в формах хранятся в основных единицах; схема перечисляет пути к ним,
чтобы конвейер отправки мог перевести их в минимальные единицы.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, ClassVar, Dict, List, Literal, Optional, Tuple, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from shared_kernel import (
    DiscountType,
    EntityType,
    Money,
    derive_discounted_price,
    settings,
)


class ValidationIssue(BaseModel):
    """Ошибка, которую оператор может исправить в конкретном поле."""

    model_config = ConfigDict(frozen=True)

    path: str
    reason: str


class ValidationResult(BaseModel):
    """Результат проверки черновика."""

    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def for_path(self, path: str) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.path == path]


# Пути к полям


def format_path(loc: Tuple[Any, ...]) -> str:
    """Собирает путь вида restaurants[2].cuisine_type из кортежа pydantic."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def map_paths(
    values: Dict[str, Any], paths: Tuple[str, ...], convert: Callable[[Any], Any]
) -> Dict[str, Any]:
    """Применяет convert к значениям по путям вида hotels[].rooms[].price.

    Отсутствующие поля и None пропускаются. Словарь изменяется на месте.
    """
    for path in paths:
        _map_path(values, path.split("."), convert)
    return values


def _map_path(node: Any, parts: List[str], convert: Callable[[Any], Any]) -> None:
    if not isinstance(node, dict) or not parts:
        return
    head, rest = parts[0], parts[1:]
    if head.endswith("[]"):
        items = node.get(head[:-2])
        if isinstance(items, list):
            for item in items:
                _map_path(item, rest, convert)
        return
    if head not in node or node[head] is None:
        return
    if rest:
        _map_path(node[head], rest, convert)
    else:
        node[head] = convert(node[head])


def _revive_decimal(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return value


def _revive_date(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        if "T" in value:
            return datetime.fromisoformat(value)
        return date.fromisoformat(value)
    except ValueError:
        return value


# Сообщения для типовых ошибок pydantic
_REASONS = {
    "missing": "Обязательное поле",
    "string_too_short": "Минимальная длина: {min_length}",
    "string_too_long": "Максимальная длина: {max_length}",
    "greater_than": "Значение должно быть больше {gt}",
    "greater_than_equal": "Значение должно быть не меньше {ge}",
    "less_than_equal": "Значение должно быть не больше {le}",
    "literal_error": "Допустимые значения: {expected}",
    "int_parsing": "Ожидается целое число",
    "decimal_parsing": "Ожидается число",
    "date_from_datetime_parsing": "Ожидается дата",
    "date_parsing": "Ожидается дата",
    "string_pattern_mismatch": "Некорректный формат",
    "value_error": "{error}",
}


def issues_from_error(error: ValidationError) -> List[ValidationIssue]:
    """Переводит ошибки pydantic в список (путь, причина)."""
    issues = []
    for err in error.errors():
        template = _REASONS.get(err["type"])
        reason = template.format(**err.get("ctx", {})) if template else err["msg"]
        issues.append(ValidationIssue(path=format_path(err["loc"]), reason=reason))
    return issues


# Базовая схема


class FormModel(BaseModel):
    """Базовая схема формы администратора."""

    model_config = ConfigDict(extra="ignore")

    money_paths: ClassVar[Tuple[str, ...]] = ()
    date_fields: ClassVar[Tuple[str, ...]] = ()
    number_paths: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def revive(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Восстанавливает даты и суммы после JSON (снимок черновика)."""
        for name in cls.date_fields:
            if name in values:
                values[name] = _revive_date(values[name])
        return cls.coerce_numbers(values)

    @classmethod
    def coerce_numbers(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Приводит суммы и числовые поля к Decimal. Словарь изменяется на месте."""
        return map_paths(values, cls.money_paths + cls.number_paths, _revive_decimal)

    def payload_values(self) -> Dict[str, Any]:
        """Проверенные значения формы для отправки (суммы в основных единицах)."""
        return self.model_dump()


class TourForm(FormModel):
    """Форма тура."""

    money_paths: ClassVar[Tuple[str, ...]] = ("price", "discounted_price")
    date_fields: ClassVar[Tuple[str, ...]] = ("start_date", "end_date")

    name: str = Field(..., min_length=3)
    description: str = Field(..., min_length=20)
    destination_id: int = Field(..., gt=0)
    trip_type: str = Field(..., min_length=1)
    duration: int = Field(..., ge=1)
    duration_type: Literal["days", "hours"] = "days"
    start_date: date
    end_date: date
    num_passengers: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0)
    discounted_price: Optional[Decimal] = Field(None, ge=0)
    included: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)
    itinerary: str = Field(..., min_length=20)
    max_group_size: Optional[int] = Field(None, ge=1)
    category_id: Optional[int] = Field(None, gt=0)
    featured: bool = False
    active: bool = True
    currency: str = Field(
        default_factory=lambda: settings.default_currency, pattern=r"^[A-Z]{3}$"
    )


class Restaurant(BaseModel):
    name: str = Field(..., min_length=1)
    cuisine_type: str = Field(..., min_length=1)
    breakfast_options: List[str] = Field(default_factory=list)


class Landmark(BaseModel):
    name: str = Field(..., min_length=1)
    distance: str = ""
    description: str = ""


class Faq(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class RoomType(BaseModel):
    name: str = Field(..., min_length=1)
    capacity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0)
    description: str = ""


class HotelForm(FormModel):
    """Форма отеля с вложенными ресторанами, достопримечательностями и типами номеров."""

    money_paths: ClassVar[Tuple[str, ...]] = ("room_types[].price",)

    name: str = Field(..., min_length=3)
    description: Optional[str] = None
    destination_id: int = Field(..., gt=0)
    address: str = Field(..., min_length=1)
    city: Optional[str] = None
    country: Optional[str] = None
    stars: int = Field(3, ge=1, le=5)
    amenities: List[str] = Field(default_factory=list)
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    restaurants: List[Restaurant] = Field(default_factory=list)
    landmarks: List[Landmark] = Field(default_factory=list)
    faqs: List[Faq] = Field(default_factory=list)
    room_types: List[RoomType] = Field(default_factory=list)
    featured: bool = False
    currency: str = Field(
        default_factory=lambda: settings.default_currency, pattern=r"^[A-Z]{3}$"
    )


class PackageRoom(BaseModel):
    type: str = Field(..., min_length=1)
    price_per_night: Decimal = Field(..., ge=0)
    max_occupancy: int = Field(2, ge=1, le=10)
    amenities: List[str] = Field(default_factory=list)


class PackageHotel(BaseModel):
    name: str = Field(..., min_length=1)
    stars: int = Field(..., ge=1, le=5)
    rooms: List[PackageRoom] = Field(default_factory=list)


class PackageForm(FormModel):
    """Форма пакета, собранного вручную из нескольких отелей."""

    money_paths: ClassVar[Tuple[str, ...]] = (
        "price",
        "discounted_price",
        "transportation_price",
        "hotels[].rooms[].price_per_night",
    )
    date_fields: ClassVar[Tuple[str, ...]] = ("start_date", "end_date", "valid_until")
    number_paths: ClassVar[Tuple[str, ...]] = ("discount_value",)

    title: str = Field(..., min_length=3)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    discounted_price: Optional[Decimal] = Field(None, ge=0)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    destination_id: int = Field(..., gt=0)
    category_id: int = Field(..., gt=0)
    duration: int = Field(..., ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    valid_until: Optional[date] = None
    transportation_details: Optional[str] = None
    transportation_price: Optional[Decimal] = Field(None, ge=0)
    hotels: List[PackageHotel] = Field(default_factory=list)
    included_features: List[str] = Field(default_factory=list)
    excluded_items: List[str] = Field(default_factory=list)
    featured: bool = False
    currency: str = Field(
        default_factory=lambda: settings.default_currency, pattern=r"^[A-Z]{3}$"
    )

    @field_validator("discount_value")
    @classmethod
    def percentage_not_above_hundred(
        cls, v: Optional[Decimal], info
    ) -> Optional[Decimal]:
        # discount_type объявлен раньше и уже проверен
        if (
            v is not None
            and info.data.get("discount_type") == DiscountType.PERCENTAGE
            and v > 100
        ):
            raise ValueError("Скидка в процентах не может превышать 100")
        return v

    def payload_values(self) -> Dict[str, Any]:
        values = super().payload_values()
        if (
            self.discounted_price is None
            and self.discount_type is not None
            and self.discount_value is not None
        ):
            base = Money.from_major(self.price, self.currency)
            discounted = derive_discounted_price(
                base, self.discount_type, self.discount_value
            )
            values["discounted_price"] = discounted.to_major()
        return values


SCHEMAS: Dict[EntityType, Type[FormModel]] = {
    EntityType.TOUR: TourForm,
    EntityType.HOTEL: HotelForm,
    EntityType.PACKAGE: PackageForm,
}


def schema_for(entity_type: EntityType) -> Type[FormModel]:
    return SCHEMAS[EntityType(entity_type)]
