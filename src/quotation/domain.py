"""
Доменная модель контекста расчета стоимости.

Функция quote - чистая: не выполняет ввода-вывода, не изменяет входные
объекты и для одинаковых входных данных всегда возвращает одинаковый
результат. Все вычисления ведутся в минимальных единицах валюты.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from shared_kernel import InvalidSelectionError, Money


class RoomDistribution(str, Enum):
    """Размещение путешественников по номерам."""

    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"


# Мест в номере при каждом типе размещения
ROOM_CAPACITY: Dict[RoomDistribution, int] = {
    RoomDistribution.SINGLE: 1,
    RoomDistribution.DOUBLE: 2,
    RoomDistribution.TRIPLE: 3,
}


class TravelerParty(BaseModel):
    """Состав группы путешественников.

    Взрослые и дети платят по ставке за человека и занимают места в номерах,
    младенцы - нет.
    """

    model_config = ConfigDict(frozen=True)

    adults: int = 1
    children: int = 0
    infants: int = 0

    @property
    def paying_heads(self) -> int:
        return self.adults + self.children

    @property
    def occupants(self) -> int:
        return self.adults + self.children

    def rooms_required(self, room_capacity: int) -> int:
        """Количество номеров заданной вместимости для размещения группы."""
        if room_capacity <= 0:
            raise InvalidSelectionError("Вместимость номера должна быть положительной")
        return max(1, math.ceil(self.occupants / room_capacity))


class Offering(BaseModel):
    """Предложение с ценами (тур, пакет).

    Ставки взрослых и детей задаются целым процентом от цены за человека.
    Младенцы по ставке не платят, для них есть отдельный сбор infant_fee.
    """

    model_config = ConfigDict(frozen=True)

    base_price: Money
    discounted_price: Optional[Money] = None
    tier_surcharges: Dict[str, Money] = Field(default_factory=dict)
    single_room_supplement: Optional[Money] = None
    infant_fee: Optional[Money] = None
    adult_rate_percent: int = Field(100, ge=0)
    child_rate_percent: int = Field(100, ge=0)

    @property
    def currency(self) -> str:
        return self.base_price.currency


class QuoteSelection(BaseModel):
    """Выбор покупателя: состав группы, размещение и уровень обслуживания."""

    model_config = ConfigDict(frozen=True)

    adults: int = 1
    children: int = 0
    infants: int = 0
    room_distribution: RoomDistribution = RoomDistribution.DOUBLE
    tier_id: Optional[str] = None

    @property
    def party(self) -> TravelerParty:
        return TravelerParty(
            adults=self.adults, children=self.children, infants=self.infants
        )


class LineKind(str, Enum):
    """Типы строк расчета."""

    PER_HEAD = "per_head"
    TIER = "tier"
    SINGLE_SUPPLEMENT = "single_supplement"
    INFANT_FEE = "infant_fee"
    CHILD = "child"
    DISCOUNT = "discount"


class QuoteLine(BaseModel):
    """Строка расчета.

    Строка скидки информационная: скидка уже учтена в цене за человека.
    """

    model_config = ConfigDict(frozen=True)

    kind: LineKind
    unit: Money
    quantity: int
    amount: Money
    counts_toward_total: bool = True


class PriceQuote(BaseModel):
    """Итоговый расчет стоимости."""

    model_config = ConfigDict(frozen=True)

    currency: str
    party: TravelerParty
    base_unit: Money
    effective_unit: Money
    tier_surcharge: Money
    per_head_total: Money
    room_surcharge: Money
    infant_fees: Money
    discount: Money
    rooms: int
    lines: Tuple[QuoteLine, ...]
    total: Money


def _at_rate(price: Money, percent: int) -> Money:
    """Доля цены в процентах, округленная до минимальной единицы."""
    amount = (Decimal(price.amount) * percent / 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return Money(amount=int(amount), currency=price.currency)


def _validate(offering: Offering, selection: QuoteSelection) -> None:
    for name, count in (
        ("adults", selection.adults),
        ("children", selection.children),
        ("infants", selection.infants),
    ):
        if count < 0:
            raise InvalidSelectionError(
                f"Количество ({name}) не может быть отрицательным: {count}"
            )

    if selection.tier_id is not None and selection.tier_id not in offering.tier_surcharges:
        raise InvalidSelectionError(f"Неизвестный уровень обслуживания: {selection.tier_id}")

    prices = [offering.discounted_price, offering.single_room_supplement, offering.infant_fee]
    prices.extend(offering.tier_surcharges.values())
    for price in prices:
        if price is not None and price.currency != offering.currency:
            raise InvalidSelectionError(
                f"Цены предложения заданы в разных валютах: "
                f"{offering.currency} и {price.currency}"
            )


def quote(offering: Offering, selection: QuoteSelection) -> PriceQuote:
    """Рассчитывает стоимость для выбранного состава группы.

    Цена за человека умножается на ставку категории (взрослый, ребенок).
    Надбавка уровня обслуживания от ставки не зависит.

    Raises:
        InvalidSelectionError: отрицательное количество, неизвестный уровень
            обслуживания или цены в разных валютах.
    """
    _validate(offering, selection)

    currency = offering.currency
    zero = Money.zero(currency)
    base = offering.base_price
    discounted = offering.discounted_price
    party = selection.party

    # Скидка не меньше базовой цены считается отсутствием скидки
    has_discount = discounted is not None and discounted < base
    effective_unit = discounted if has_discount else base
    heads = party.paying_heads

    adult_unit = _at_rate(effective_unit, offering.adult_rate_percent)
    child_unit = _at_rate(effective_unit, offering.child_rate_percent)
    # Дети в одной строке со взрослыми, если ставки совпадают
    separate_children = child_unit != adult_unit and party.children > 0
    per_head_quantity = party.adults if separate_children else heads

    tier_surcharge = (
        offering.tier_surcharges[selection.tier_id]
        if selection.tier_id is not None
        else zero
    )
    per_head_total = (
        adult_unit * party.adults
        + child_unit * party.children
        + tier_surcharge * heads
    )

    room_surcharge = zero
    if (
        selection.room_distribution == RoomDistribution.SINGLE
        and party.adults > 1
        and offering.single_room_supplement is not None
    ):
        room_surcharge = offering.single_room_supplement

    infant_fees = zero
    if offering.infant_fee is not None:
        infant_fees = offering.infant_fee * party.infants

    discount = zero
    if has_discount:
        discount = (
            _at_rate(base, offering.adult_rate_percent) - adult_unit
        ) * party.adults + (
            _at_rate(base, offering.child_rate_percent) - child_unit
        ) * party.children

    lines = [
        QuoteLine(
            kind=LineKind.PER_HEAD,
            unit=adult_unit,
            quantity=per_head_quantity,
            amount=adult_unit * per_head_quantity,
        )
    ]
    if separate_children:
        lines.append(
            QuoteLine(
                kind=LineKind.CHILD,
                unit=child_unit,
                quantity=party.children,
                amount=child_unit * party.children,
            )
        )
    if not tier_surcharge.is_zero():
        lines.append(
            QuoteLine(
                kind=LineKind.TIER,
                unit=tier_surcharge,
                quantity=heads,
                amount=tier_surcharge * heads,
            )
        )
    if not room_surcharge.is_zero():
        lines.append(
            QuoteLine(
                kind=LineKind.SINGLE_SUPPLEMENT,
                unit=room_surcharge,
                quantity=1,
                amount=room_surcharge,
            )
        )
    if not infant_fees.is_zero():
        lines.append(
            QuoteLine(
                kind=LineKind.INFANT_FEE,
                unit=offering.infant_fee,
                quantity=party.infants,
                amount=infant_fees,
            )
        )
    if not discount.is_zero():
        lines.append(
            QuoteLine(
                kind=LineKind.DISCOUNT,
                unit=base - discounted,
                quantity=heads,
                amount=discount,
                counts_toward_total=False,
            )
        )

    return PriceQuote(
        currency=currency,
        party=party,
        base_unit=base,
        effective_unit=effective_unit,
        tier_surcharge=tier_surcharge,
        per_head_total=per_head_total,
        room_surcharge=room_surcharge,
        infant_fees=infant_fees,
        discount=discount,
        rooms=party.rooms_required(ROOM_CAPACITY[selection.room_distribution]),
        lines=tuple(lines),
        total=per_head_total + room_surcharge + infant_fees,
    )
