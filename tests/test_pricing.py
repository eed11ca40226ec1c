from datetime import date, timedelta
from decimal import Decimal

import pytest

from tourhub.src import exceptions
from tourhub.src.enums import AddonType, BookingKind, InsuranceType
from tourhub.src.functions import percentOf
from tourhub.src.schemas import toMajorUnits
from tourhub.src.intervals import Interval
from tourhub.src.pricing import PricingEngine, rentalDays

from conftest import NOW, at


@pytest.fixture
def pricing(sessionMaker):
    return PricingEngine(sessionMaker, defaultTransferRate=None)


@pytest.mark.parametrize(
    "hours, days",
    [(1, 1), (24, 1), (25, 2), (48, 2), (24 * 10, 10), (24 * 10 + 1, 11)],
)
def test_rental_days_round_up(hours, days):
    assert rentalDays(Interval(start=at(), end=at(hours=hours))) == days


def test_rental_tiering(pricing, factory, rentalRequest):
    factory.vehicle()
    factory.rentalTariff(daily_rate=1000, weekly_rate=6000)

    quote = pricing.quote(rentalRequest(ending_at=at(days=11)))

    assert quote.kind == BookingKind.RENTAL
    assert quote.rental_days == 10
    assert quote.base_price == 9000
    assert quote.total == 9000


@pytest.mark.parametrize(
    "days, expected",
    [
        (6, 6 * 1000),
        (7, 6000),
        (29, 4 * 6000 + 1 * 1000),
        (30, 20000),
        (45, 20000 + 2 * 6000 + 1 * 1000),
    ],
)
def test_monthly_then_weekly_then_daily(pricing, factory, rentalRequest, days, expected):
    factory.rentalTariff(daily_rate=1000, weekly_rate=6000, monthly_rate=20000)

    quote = pricing.quote(rentalRequest(ending_at=at(days=1 + days)))

    assert quote.base_price == expected


def test_missing_weekly_rate_falls_to_daily(pricing, factory, rentalRequest):
    factory.rentalTariff(daily_rate=1000, monthly_rate=20000)

    quote = pricing.quote(rentalRequest(ending_at=at(days=1 + 37)))

    assert quote.base_price == 20000 + 7 * 1000


def test_rental_addons_insurance_and_deposit(pricing, factory, rentalRequest):
    factory.rentalTariff(daily_rate=400050, deposit=1500000)

    quote = pricing.quote(
        rentalRequest(
            ending_at=at(days=4),
            addons=[AddonType.GPS, AddonType.CHILD_SEAT],
            insurance=InsuranceType.PREMIUM,
        )
    )

    assert quote.base_price == 3 * 400050
    assert quote.addon_price == 3 * (500 + 300) * 100
    assert quote.insurance_price == percentOf(3 * 400050, 15)
    assert quote.deposit == 1500000
    assert quote.total == quote.base_price + quote.addon_price + quote.insurance_price


def test_insurance_rounds_half_up():
    assert percentOf(1250, 8) == 100
    assert percentOf(1256, 8) == 100
    assert percentOf(1257, 8) == 101
    assert percentOf(1000, 0) == 0


def test_display_conversion(pricing, factory, rentalRequest):
    assert toMajorUnits(900050) == Decimal("9000.50")

    factory.rentalTariff(daily_rate=400050, deposit=1500000)
    quote = pricing.quote(rentalRequest(ending_at=at(days=2)))

    assert quote.display_total == Decimal("4000.50")
    assert quote.display_deposit == Decimal("15000.00")


def test_planned_vehicle_category_selects_tariff(pricing, factory, rentalRequest):
    suv = factory.vehicle(category="suv")
    factory.rentalTariff(daily_rate=1000, category="sedan")
    factory.rentalTariff(daily_rate=5000, category="suv")

    quote = pricing.quote(rentalRequest(ending_at=at(days=2)), vehicleId=suv.id)

    assert quote.base_price == 5000


def test_narrowest_tariff_wins(pricing, factory, rentalRequest):
    factory.rentalTariff(daily_rate=1000)
    factory.rentalTariff(
        daily_rate=3000, valid_from=date(2026, 5, 1), valid_to=date(2026, 8, 31)
    )
    factory.rentalTariff(
        daily_rate=2000, valid_from=date(2026, 6, 1), valid_to=date(2026, 6, 30)
    )

    quote = pricing.quote(rentalRequest(ending_at=at(days=2)))

    assert quote.base_price == 2000


def test_equal_ranges_prefer_most_recent(pricing, factory, transferRequest):
    route = factory.route()
    window = dict(valid_from=date(2026, 6, 1), valid_to=date(2026, 6, 30))
    factory.routeTariff(route.id, 4000, created_on=NOW - timedelta(days=1), **window)
    factory.routeTariff(route.id, 5000, created_on=NOW, **window)
    factory.routeTariff(route.id, 3000, created_on=NOW - timedelta(days=2), **window)

    quote = pricing.quote(transferRequest(route.id))

    assert quote.base_price == 5000


def test_transfer_is_flat_with_flat_addons(pricing, factory, transferRequest):
    route = factory.route()
    factory.routeTariff(route.id, 350000, date(2026, 1, 1), date(2026, 12, 31))

    small = pricing.quote(transferRequest(route.id, party_size=1))
    large = pricing.quote(
        transferRequest(route.id, party_size=6, addons=[AddonType.CHILD_SEAT])
    )

    assert small.total == 350000
    assert large.base_price == 350000
    assert large.addon_price == 300 * 100
    assert large.deposit == 0
    assert large.rental_days is None


def test_transfer_falls_back_to_route_default_then_configured_default(
    sessionMaker, factory, transferRequest
):
    route = factory.route(default_rate=250000)
    bare = factory.route()
    factory.routeTariff(route.id, 999, date(2025, 1, 1), date(2025, 12, 31))

    assert PricingEngine(sessionMaker).quote(transferRequest(route.id)).total == 250000
    assert (
        PricingEngine(sessionMaker, defaultTransferRate=100000)
        .quote(transferRequest(bare.id))
        .total
        == 100000
    )


def test_no_tariff_no_default_is_price_unavailable(pricing, factory, transferRequest, rentalRequest):
    route = factory.route()

    with pytest.raises(exceptions.PriceUnavailable):
        pricing.quote(transferRequest(route.id))
    with pytest.raises(exceptions.PriceUnavailable):
        pricing.quote(rentalRequest())


def test_route_of_other_operator_is_rejected(pricing, factory, transferRequest):
    route = factory.route(default_rate=1000, operator_id=2)

    with pytest.raises(exceptions.InvalidAssociation):
        pricing.quote(transferRequest(route.id))


def test_quote_is_deterministic(pricing, factory, rentalRequest):
    factory.rentalTariff(daily_rate=1234, weekly_rate=7000, deposit=500)
    request = rentalRequest(
        ending_at=at(days=9, hours=3),
        addons=[AddonType.EXTRA_DRIVER],
        insurance=InsuranceType.BASIC,
    )

    assert pricing.quote(request) == pricing.quote(request)
