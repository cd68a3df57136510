"""
Тесты для доменной модели расчета стоимости.
"""

import pytest
from quotation.domain import (
    LineKind,
    Offering,
    QuoteSelection,
    RoomDistribution,
    TravelerParty,
    quote,
)
from shared_kernel import InvalidSelectionError, Money


def usd(major):
    return Money.from_major(major, "USD")


@pytest.fixture
def offering():
    """Тур за 1000 USD со скидкой до 900 USD."""
    return Offering(
        base_price=usd(1000),
        discounted_price=usd(900),
        tier_surcharges={"standard": usd(0), "premium": usd(150)},
        single_room_supplement=usd(200),
    )


class TestTravelerParty:
    def test_counts(self):
        party = TravelerParty(adults=2, children=1, infants=1)

        assert party.paying_heads == 3
        assert party.occupants == 3

    def test_rooms_required(self):
        party = TravelerParty(adults=3, children=2)

        assert party.rooms_required(2) == 3
        assert party.rooms_required(3) == 2
        assert TravelerParty(adults=0).rooms_required(2) == 1

    def test_room_capacity_must_be_positive(self):
        with pytest.raises(InvalidSelectionError):
            TravelerParty().rooms_required(0)


class TestQuote:
    """Тесты для функции quote."""

    def test_discounted_price_per_head(self, offering):
        # Подготовка: 2 взрослых и 1 ребенок, двухместное размещение
        selection = QuoteSelection(adults=2, children=1)

        # Действие
        result = quote(offering, selection)

        # Проверка
        assert result.effective_unit.amount == 90000
        assert result.per_head_total.amount == 270000
        assert result.total.amount == 270000
        assert result.discount.amount == 30000
        assert result.room_surcharge.is_zero()

    def test_single_room_supplement(self, offering):
        selection = QuoteSelection(
            adults=2, children=1, room_distribution=RoomDistribution.SINGLE
        )

        result = quote(offering, selection)

        assert result.room_surcharge.amount == 20000
        assert result.total.amount == 290000

    def test_no_supplement_for_single_traveler(self, offering):
        selection = QuoteSelection(adults=1, room_distribution=RoomDistribution.SINGLE)

        result = quote(offering, selection)

        assert result.room_surcharge.is_zero()
        assert result.total.amount == 90000

    def test_tier_surcharge_per_head(self, offering):
        selection = QuoteSelection(adults=2, tier_id="premium")

        result = quote(offering, selection)

        assert result.tier_surcharge.amount == 15000
        assert result.total.amount == (90000 + 15000) * 2
        # Скидка считается от базовой цены без уровня обслуживания
        assert result.discount.amount == 20000

    def test_discount_not_below_base_is_ignored(self):
        offering = Offering(base_price=usd(1000), discounted_price=usd(1200))

        result = quote(offering, QuoteSelection(adults=2))

        assert result.effective_unit.amount == 100000
        assert result.discount.is_zero()
        assert result.total.amount == 200000

    def test_infant_fee(self):
        offering = Offering(base_price=usd(500), infant_fee=usd(25))
        selection = QuoteSelection(adults=2, infants=2)

        result = quote(offering, selection)

        assert result.infant_fees.amount == 5000
        assert result.total.amount == 105000
        assert [line.kind for line in result.lines] == [LineKind.PER_HEAD, LineKind.INFANT_FEE]

    def test_infants_are_free_without_fee(self, offering):
        result = quote(offering, QuoteSelection(adults=1, infants=1))

        assert result.total.amount == 90000

    def test_total_equals_counted_lines(self, offering):
        selection = QuoteSelection(
            adults=2, children=2, room_distribution=RoomDistribution.SINGLE, tier_id="premium"
        )

        result = quote(offering, selection)

        counted = sum(line.amount.amount for line in result.lines if line.counts_toward_total)
        assert counted == result.total.amount
        discount_lines = [line for line in result.lines if line.kind == LineKind.DISCOUNT]
        assert len(discount_lines) == 1
        assert not discount_lines[0].counts_toward_total

    def test_child_rate(self):
        # Подготовка: детская ставка 75% от цены за человека
        offering = Offering(base_price=usd(1000), child_rate_percent=75)
        selection = QuoteSelection(adults=2, children=1)

        # Действие
        result = quote(offering, selection)

        # Проверка
        assert result.per_head_total.amount == 200000 + 75000
        assert result.total.amount == 275000
        assert [(line.kind, line.quantity, line.unit.amount) for line in result.lines] == [
            (LineKind.PER_HEAD, 2, 100000),
            (LineKind.CHILD, 1, 75000),
        ]

    def test_child_rate_applies_to_discounted_price(self, offering):
        priced = offering.model_copy(update={"child_rate_percent": 75})

        result = quote(priced, QuoteSelection(adults=2, children=1))

        assert result.total.amount == 90000 * 2 + 67500
        # Скидка тоже считается по ставке категории
        assert result.discount.amount == 10000 * 2 + 7500

    def test_tier_surcharge_is_not_scaled_by_rate(self, offering):
        priced = offering.model_copy(update={"child_rate_percent": 50})

        result = quote(priced, QuoteSelection(children=1, adults=0, tier_id="premium"))

        assert result.total.amount == 45000 + 15000

    def test_rate_is_rounded_half_up_in_minor_units(self):
        offering = Offering(base_price=usd("333.33"), child_rate_percent=75)

        result = quote(offering, QuoteSelection(adults=0, children=1))

        # 33333 * 0.75 = 24999.75
        assert result.total.amount == 25000

    def test_adult_rate(self):
        offering = Offering(base_price=usd(1000), adult_rate_percent=110)

        result = quote(offering, QuoteSelection(adults=2))

        assert result.total.amount == 220000
        assert [line.kind for line in result.lines] == [LineKind.PER_HEAD]

    def test_equal_rates_share_one_line(self, offering):
        result = quote(offering, QuoteSelection(adults=2, children=1))

        assert [line.kind for line in result.lines] == [LineKind.PER_HEAD, LineKind.DISCOUNT]
        assert result.lines[0].quantity == 3

    @pytest.mark.parametrize(
        "distribution, rooms",
        [
            (RoomDistribution.SINGLE, 5),
            (RoomDistribution.DOUBLE, 3),
            (RoomDistribution.TRIPLE, 2),
        ],
    )
    def test_rooms_for_distribution(self, offering, distribution, rooms):
        selection = QuoteSelection(
            adults=3, children=2, infants=1, room_distribution=distribution
        )

        result = quote(offering, selection)

        assert result.rooms == rooms

    def test_is_deterministic(self, offering):
        selection = QuoteSelection(adults=2, children=1, tier_id="premium")

        assert quote(offering, selection) == quote(offering, selection)

    def test_empty_party(self, offering):
        result = quote(offering, QuoteSelection(adults=0))

        assert result.total.is_zero()

    @pytest.mark.parametrize("field", ["adults", "children", "infants"])
    def test_negative_counts(self, offering, field):
        with pytest.raises(InvalidSelectionError):
            quote(offering, QuoteSelection(**{field: -1}))

    def test_unknown_tier(self, offering):
        with pytest.raises(InvalidSelectionError):
            quote(offering, QuoteSelection(adults=1, tier_id="vip"))

    def test_mixed_currencies(self):
        offering = Offering(
            base_price=usd(1000), single_room_supplement=Money.from_major(200, "EGP")
        )

        with pytest.raises(InvalidSelectionError):
            quote(offering, QuoteSelection(adults=1))
