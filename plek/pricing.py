"""Catálogo efectivo de paquetes y cálculo de precios.

Los paquetes vienen de dos fuentes: los registros ``Package`` de la base de
datos y los productos de RevenueCat. Ambos se normalizan a ``Offer`` antes de
filtrar, y los ajustes por propiedad (``PackageSetting``) deciden el nombre
visible y si el paquete está activo para esa propiedad.
"""
import math
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from plek.catalog import SUGGESTED_PACKAGES

DEFAULT_BASE_RATE = 150
SECONDS_PER_DAY = 60 * 60 * 24

PERIOD_NIGHTS = {
    'day': 1,
    'week': 7,
    'month': 30,
    'year': 365,
}


@dataclass
class Offer:
    id: str
    name: str
    original_name: str
    source: str
    multiplier: float = 1.0
    category: Optional[str] = None
    description: Optional[str] = None
    min_nights: int = 1
    max_nights: int = 365
    entitlement_required: str = 'none'
    revenuecat_id: Optional[str] = None
    base_rate: Optional[float] = None
    features: List[str] = field(default_factory=list)
    is_enabled: bool = True
    has_custom_name: bool = False

    def to_dict(self):
        data = asdict(self)
        return {
            'id': data['id'],
            'name': data['name'],
            'originalName': data['original_name'],
            'description': data['description'],
            'multiplier': data['multiplier'],
            'category': data['category'],
            'minNights': data['min_nights'],
            'maxNights': data['max_nights'],
            'entitlementRequired': data['entitlement_required'],
            'revenueCatId': data['revenuecat_id'],
            'baseRate': data['base_rate'],
            'features': data['features'],
            'isEnabled': data['is_enabled'],
            'source': data['source'],
            'hasCustomName': data['has_custom_name'],
        }


def nights_for_period(period, count=None):
    try:
        count = int(count) if count else 1
    except (TypeError, ValueError):
        count = 1
    if period == 'hour':
        return 1
    return count * PERIOD_NIGHTS.get(period, 1)


def nights_between(from_date, to_date):
    seconds = (to_date - from_date).total_seconds()
    return max(1, int(math.ceil(seconds / SECONDS_PER_DAY)))


def effective_base_rate(base_rate):
    if base_rate is None:
        return DEFAULT_BASE_RATE
    try:
        value = float(base_rate)
    except (TypeError, ValueError):
        return DEFAULT_BASE_RATE
    if math.isnan(value) or value <= 0:
        return DEFAULT_BASE_RATE
    return value


def compute_total(base_rate, from_date, to_date, multiplier=1.0):
    nights = nights_between(from_date, to_date)
    if multiplier is None:
        multiplier = 1.0
    return round(effective_base_rate(base_rate) * nights * multiplier, 2)


def _setting_for(settings, ref):
    if not settings:
        return None
    return settings.get(str(ref))


def offer_from_package(package, setting=None):
    custom_name = setting.custom_name if setting is not None else None
    # sin ajuste para la propiedad: activo por defecto
    enabled_for_post = setting is None or setting.enabled is not False
    return Offer(
        id=str(package.id),
        name=custom_name or package.name,
        original_name=package.name,
        description=package.description,
        multiplier=package.multiplier if package.multiplier is not None else 1.0,
        category=package.category,
        min_nights=package.min_nights,
        max_nights=package.max_nights,
        entitlement_required=package.entitlement_required or 'none',
        revenuecat_id=package.revenuecat_id,
        base_rate=package.base_rate,
        features=list(package.features or []),
        is_enabled=bool(package.is_enabled) and enabled_for_post,
        source='database',
        has_custom_name=bool(custom_name),
    )


def offer_from_product(product, setting=None):
    custom_name = setting.custom_name if setting is not None else None
    # productos externos: inactivos salvo que la propiedad los active
    enabled_for_post = setting is not None and setting.enabled is not False
    nights = nights_for_period(product.period, product.period_count)
    return Offer(
        id=product.id,
        name=custom_name or product.title,
        original_name=product.title,
        description=product.description,
        multiplier=1.0,
        category=product.category,
        min_nights=nights,
        max_nights=nights,
        entitlement_required=product.entitlement or 'none',
        revenuecat_id=product.id,
        base_rate=product.price,
        features=list(product.features or []),
        is_enabled=bool(product.is_enabled) and enabled_for_post,
        source='revenuecat',
        has_custom_name=bool(custom_name),
    )


def settings_by_ref(post):
    if post is None:
        return {}
    return {setting.package_ref: setting for setting in post.package_settings}


def resolve_offers(post, packages, products=()):
    settings = settings_by_ref(post)
    offers = [offer_from_package(p, _setting_for(settings, p.id)) for p in packages]
    offers += [offer_from_product(p, _setting_for(settings, p.id)) for p in products]
    return [offer for offer in offers if offer.is_enabled]


def tier_allows(required, tier):
    return required in ('none', tier)


def offers_for_stay(offers, nights, tier):
    return [
        offer for offer in offers
        if offer.min_nights <= nights <= offer.max_nights
        and tier_allows(offer.entitlement_required, tier)
    ]


def find_offer(offers, package_type):
    if not package_type:
        return None
    wanted = str(package_type).lower()
    for offer in offers:
        if offer.id.lower() == wanted:
            return offer
        if offer.revenuecat_id and offer.revenuecat_id.lower() == wanted:
            return offer
    return None


PRO_ENTITLEMENTS = ('$rc_six_month', 'professional', 'pro')


def entitlement_tier(active_entitlements):
    if not active_entitlements:
        return 'none'
    for entitlement in active_entitlements:
        if any(pro in entitlement for pro in PRO_ENTITLEMENTS):
            return 'pro'
    return 'standard'


def _matching(nights, tier):
    return [
        pkg for pkg in SUGGESTED_PACKAGES
        if pkg['isPrimary']
        and pkg['minNights'] <= nights <= pkg['maxNights']
        and pkg['entitlementRequired'] == tier
    ]


def suggested_packages(nights, tier, include_addons=True):
    suggestions = _matching(nights, tier)

    if tier == 'pro':
        # alternativa estándar más barata
        suggestions += _matching(nights, 'standard')
    elif tier == 'none':
        # lo que tendría con cada suscripción
        suggestions += _matching(nights, 'standard') + _matching(nights, 'pro')

    if include_addons:
        suggestions += [pkg for pkg in SUGGESTED_PACKAGES if pkg['id'] == 'wine']

    if not suggestions:
        suggestions = [pkg for pkg in SUGGESTED_PACKAGES if pkg['id'] == 'per_night_customer']
    return suggestions


def primary_recommendation(nights, tier):
    suggestions = suggested_packages(nights, tier, include_addons=False)
    for pkg in suggestions:
        if pkg['entitlementRequired'] == tier:
            return pkg
    return suggestions[0] if suggestions else None
