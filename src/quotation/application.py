"""
Прикладной слой контекста расчета стоимости.

Принимает цены в основных единицах (как их вводит оператор или отдает
витрина), строит доменные объекты и возвращает расчет с суммами
в минимальных единицах и строками для отображения.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from shared_kernel import (
    BusinessRuleValidationException,
    DiscountType,
    ILogger,
    InvalidSelectionError,
    Money,
    StdLogger,
    derive_discounted_price,
    format_money,
    settings,
)

from .domain import (
    LineKind,
    Offering,
    PriceQuote,
    QuoteLine,
    QuoteSelection,
    RoomDistribution,
    quote,
)

# ===================================================================
# DTO (Data Transfer Objects)
# ===================================================================


class QuoteRequest(BaseModel):
    """Запрос расчета. Цены в основных единицах."""

    base_price: Decimal = Field(..., ge=0)
    discounted_price: Optional[Decimal] = Field(None, ge=0)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    tier_surcharges: Dict[str, Decimal] = Field(default_factory=dict)
    single_room_supplement: Optional[Decimal] = Field(None, ge=0)
    infant_fee: Optional[Decimal] = Field(None, ge=0)
    adult_rate_percent: int = Field(100, ge=0)
    child_rate_percent: int = Field(100, ge=0)
    currency: str = Field(default_factory=lambda: settings.default_currency)

    adults: int = 1
    children: int = 0
    infants: int = 0
    room_distribution: RoomDistribution = RoomDistribution.DOUBLE
    tier_id: Optional[str] = None


class QuoteLineDTO(BaseModel):
    """DTO строки расчета."""

    kind: LineKind
    quantity: int
    unit_amount: int
    amount: int
    display: str
    counts_toward_total: bool

    @classmethod
    def from_domain(cls, line: QuoteLine) -> "QuoteLineDTO":
        return cls(
            kind=line.kind,
            quantity=line.quantity,
            unit_amount=line.unit.amount,
            amount=line.amount.amount,
            display=format_money(line.amount),
            counts_toward_total=line.counts_toward_total,
        )


class QuoteDTO(BaseModel):
    """DTO расчета стоимости."""

    currency: str
    paying_heads: int
    effective_unit: int
    per_head_total: int
    room_surcharge: int
    infant_fees: int
    discount: int
    rooms: int
    total: int
    total_display: str
    discount_display: Optional[str] = None
    lines: List[QuoteLineDTO]

    @classmethod
    def from_domain(cls, price_quote: PriceQuote) -> "QuoteDTO":
        """Создает DTO из доменной модели."""
        return cls(
            currency=price_quote.currency,
            paying_heads=price_quote.party.paying_heads,
            effective_unit=price_quote.effective_unit.amount,
            per_head_total=price_quote.per_head_total.amount,
            room_surcharge=price_quote.room_surcharge.amount,
            infant_fees=price_quote.infant_fees.amount,
            discount=price_quote.discount.amount,
            rooms=price_quote.rooms,
            total=price_quote.total.amount,
            total_display=format_money(price_quote.total),
            discount_display=(
                None
                if price_quote.discount.is_zero()
                else format_money(price_quote.discount)
            ),
            lines=[QuoteLineDTO.from_domain(line) for line in price_quote.lines],
        )


# ===================================================================
# Прикладные сервисы
# ===================================================================


class QuotationService:
    """Сервис приложения для расчета стоимости."""

    def __init__(self, logger: Optional[ILogger] = None):
        self._logger = logger or StdLogger("travel.quotation")

    def build_offering(self, request: QuoteRequest) -> Offering:
        """Строит предложение из запроса.

        Если цена со скидкой не задана, она вычисляется из типа и размера скидки.
        """
        currency = request.currency

        def money(value: Optional[Decimal]) -> Optional[Money]:
            if value is None:
                return None
            return Money.from_major(value, currency)

        try:
            base = money(request.base_price)
            discounted = money(request.discounted_price)
            if (
                discounted is None
                and request.discount_type is not None
                and request.discount_value is not None
            ):
                discounted = derive_discounted_price(
                    base, request.discount_type, request.discount_value
                )
            return Offering(
                base_price=base,
                discounted_price=discounted,
                tier_surcharges={
                    tier: money(value) for tier, value in request.tier_surcharges.items()
                },
                single_room_supplement=money(request.single_room_supplement),
                infant_fee=money(request.infant_fee),
                adult_rate_percent=request.adult_rate_percent,
                child_rate_percent=request.child_rate_percent,
            )
        except (BusinessRuleValidationException, ValueError) as e:
            raise InvalidSelectionError(f"Некорректные цены предложения: {e}") from e

    def quote(self, request: QuoteRequest) -> QuoteDTO:
        """Рассчитывает стоимость.

        Raises:
            InvalidSelectionError: некорректный выбор или цены предложения.
        """
        offering = self.build_offering(request)
        selection = QuoteSelection(
            adults=request.adults,
            children=request.children,
            infants=request.infants,
            room_distribution=request.room_distribution,
            tier_id=request.tier_id,
        )
        try:
            price_quote = quote(offering, selection)
        except InvalidSelectionError as e:
            self._logger.warning("Расчет стоимости отклонен", error=str(e))
            raise

        self._logger.debug(
            "Стоимость рассчитана",
            currency=price_quote.currency,
            heads=price_quote.party.paying_heads,
            total=price_quote.total.amount,
        )
        return QuoteDTO.from_domain(price_quote)


def create_quotation_service(logger: Optional[ILogger] = None) -> QuotationService:
    """Фабрика сервиса расчета стоимости."""
    return QuotationService(logger=logger)
