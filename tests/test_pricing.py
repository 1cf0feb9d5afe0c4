import datetime
from types import SimpleNamespace

import pytest

from plek.models import Package
from plek.pricing import (Offer, compute_total, entitlement_tier, find_offer, nights_between,
                          nights_for_period, offer_from_package, offer_from_product, offers_for_stay,
                          primary_recommendation, resolve_offers, suggested_packages)
from plek.revenuecat import Product


def day(value):
    return datetime.datetime.fromisoformat(value)


def setting(package_ref, custom_name=None, enabled=True):
    return SimpleNamespace(package_ref=str(package_ref), custom_name=custom_name, enabled=enabled)


def post_with(*settings):
    return SimpleNamespace(package_settings=list(settings))


def local(id=1, **fields):
    fields.setdefault('name', 'Weekly')
    fields.setdefault('multiplier', 0.8)
    fields.setdefault('category', 'standard')
    fields.setdefault('min_nights', 4)
    fields.setdefault('max_nights', 7)
    fields.setdefault('entitlement_required', 'standard')
    fields.setdefault('is_enabled', True)
    return Package(id=id, post_id=1, **fields)


@pytest.mark.parametrize('period,count,nights', [
    ('hour', 5, 1),
    ('day', 3, 3),
    ('week', 2, 14),
    ('month', 1, 30),
    ('year', 1, 365),
    ('fortnight', 4, 4),
    ('week', None, 7),
])
def test_nights_for_period(period, count, nights):
    assert nights_for_period(period, count) == nights


def test_nights_between_rounds_up():
    assert nights_between(day('2025-06-01'), day('2025-06-04')) == 3
    assert nights_between(day('2025-06-01T00:00'), day('2025-06-01T10:00')) == 1
    assert nights_between(day('2025-06-01T12:00'), day('2025-06-03T13:00')) == 3


def test_total_for_three_nights():
    assert compute_total(150, day('2025-06-01'), day('2025-06-04'), 0.9) == pytest.approx(405)


def test_total_falls_back_to_default_base_rate():
    assert compute_total(None, day('2025-06-01'), day('2025-06-03')) == 300


@pytest.mark.parametrize('base_rate,nights,multiplier', [(100, 1, 1.0), (220, 5, 0.8), (99.5, 14, 1.3)])
def test_total_is_rate_times_nights_times_multiplier(base_rate, nights, multiplier):
    start = day('2026-01-10')
    end = start + datetime.timedelta(days=nights)
    assert compute_total(base_rate, start, end, multiplier) == pytest.approx(base_rate * nights * multiplier)


def test_local_package_enabled_without_override():
    offer = offer_from_package(local())
    assert offer.is_enabled is True
    assert offer.source == 'database'


def test_external_product_disabled_without_override():
    product = Product(id='per_hour', title='Studio', price=25, period='hour')
    assert offer_from_product(product).is_enabled is False
    assert offer_from_product(product, setting('per_hour')).is_enabled is True


def test_override_can_disable_and_rename():
    offer = offer_from_package(local(id=7), setting(7, custom_name='Week at the Farm'))
    assert offer.name == 'Week at the Farm'
    assert offer.original_name == 'Weekly'
    assert offer.has_custom_name is True
    assert offer_from_package(local(id=7), setting(7, enabled=False)).is_enabled is False


def test_locally_disabled_package_stays_disabled():
    assert offer_from_package(local(is_enabled=False), setting(1, enabled=True)).is_enabled is False


def test_resolve_offers_merges_both_sources():
    post = post_with(setting('week_x2_customer', custom_name='Two Weeks'))
    products = [
        Product(id='week_x2_customer', title='Two Week Paradise', price=299.99, period='week', period_count=2),
        Product(id='per_hour', title='Studio', price=25, period='hour'),
    ]
    offers = resolve_offers(post, [local(id=1), local(id=2, is_enabled=False)], products)

    assert [(o.id, o.source) for o in offers] == [('1', 'database'), ('week_x2_customer', 'revenuecat')]
    external = offers[1]
    assert external.name == 'Two Weeks'
    assert (external.min_nights, external.max_nights) == (14, 14)
    assert external.base_rate == 299.99


def make_offer(id, min_nights, max_nights, tier):
    return Offer(id=id, name=id, original_name=id, source='database', min_nights=min_nights,
                 max_nights=max_nights, entitlement_required=tier)


CATALOG = [
    make_offer('night', 1, 1, 'standard'),
    make_offer('short', 2, 3, 'standard'),
    make_offer('hosted_short', 2, 3, 'pro'),
    make_offer('wine', 1, 365, 'none'),
    make_offer('month', 29, 365, 'standard'),
]


@pytest.mark.parametrize('nights', [1, 2, 3, 7, 30])
@pytest.mark.parametrize('tier', ['none', 'standard', 'pro'])
def test_offers_for_stay_respects_nights_and_tier(nights, tier):
    for offer in offers_for_stay(CATALOG, nights, tier):
        assert offer.min_nights <= nights <= offer.max_nights
        assert offer.entitlement_required in (tier, 'none')


def test_offers_for_stay_examples():
    assert [o.id for o in offers_for_stay(CATALOG, 3, 'pro')] == ['hosted_short', 'wine']
    assert [o.id for o in offers_for_stay(CATALOG, 3, 'none')] == ['wine']


def test_find_offer_matches_id_or_revenuecat_id_case_insensitively():
    offers = [Offer(id='12', name='Weekly', original_name='Weekly', source='database', revenuecat_id='Weekly')]
    assert find_offer(offers, 'weekly').id == '12'
    assert find_offer(offers, '12').id == '12'
    assert find_offer(offers, 'monthly') is None


def test_entitlement_tier():
    assert entitlement_tier([]) == 'none'
    assert entitlement_tier(['monthly_member']) == 'standard'
    assert entitlement_tier(['monthly_member', 'pro_host']) == 'pro'
    assert entitlement_tier(['$rc_six_month']) == 'pro'


def test_suggested_packages_by_tier():
    standard = [p['id'] for p in suggested_packages(3, 'standard', include_addons=False)]
    assert standard == ['three_nights_customer']

    pro = [p['id'] for p in suggested_packages(3, 'pro', include_addons=False)]
    assert pro == ['hosted3nights', 'gathering_monthly', 'three_nights_customer']

    upsell = [p['id'] for p in suggested_packages(3, 'none')]
    assert upsell[-1] == 'wine'
    assert 'three_nights_customer' in upsell and 'hosted3nights' in upsell


def test_suggested_packages_falls_back_to_per_night():
    assert [p['id'] for p in suggested_packages(500, 'standard', include_addons=False)] == ['per_night_customer']


def test_primary_recommendation():
    assert primary_recommendation(5, 'standard')['id'] == 'weekly_customer'
    assert primary_recommendation(5, 'none')['id'] == 'weekly_customer'
