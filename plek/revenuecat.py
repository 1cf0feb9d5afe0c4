import logging
import datetime
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from plek.errors import UpstreamError

log = logging.getLogger(__name__)


@dataclass
class Product:
    id: str
    title: str
    price: float
    period: str
    period_count: int = 1
    description: Optional[str] = None
    currency: str = 'USD'
    category: str = 'standard'
    features: List[str] = field(default_factory=list)
    is_enabled: bool = True
    entitlement: Optional[str] = None

    @classmethod
    def from_json(cls, data):
        return cls(
            id=str(data['id']),
            title=data.get('title') or str(data['id']),
            price=float(data.get('price') or 0),
            period=data.get('period') or 'day',
            period_count=int(data.get('periodCount') or 1),
            description=data.get('description'),
            currency=data.get('currency') or 'USD',
            category=data.get('category') or 'standard',
            features=list(data.get('features') or []),
            is_enabled=data.get('isEnabled', True) is not False,
            entitlement=data.get('entitlement'),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'price': self.price,
            'currency': self.currency,
            'period': self.period,
            'periodCount': self.period_count,
            'category': self.category,
            'features': self.features,
            'isEnabled': self.is_enabled,
            'entitlement': self.entitlement,
        }


class RevenueCatClient:
    """Cliente mínimo de la API REST de RevenueCat."""

    def __init__(self, api_key=None, api_url='https://api.revenuecat.com', products_url=None,
                 timeout=10, session=None):
        self.api_key = api_key
        self.api_url = api_url.rstrip('/')
        self.products_url = products_url
        self.timeout = timeout
        self.http = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get('REVENUECAT_API_KEY'),
            api_url=config.get('REVENUECAT_API_URL', 'https://api.revenuecat.com'),
            products_url=config.get('REVENUECAT_PRODUCTS_URL'),
            timeout=config.get('HTTP_TIMEOUT', 10),
        )

    @property
    def configured(self):
        return bool(self.api_key)

    def _get(self, url):
        headers = {'Authorization': 'Bearer %s' % self.api_key, 'Accept': 'application/json'}
        try:
            response = self.http.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            log.error('RevenueCat request to %s failed: %s', url, exc)
            raise UpstreamError('RevenueCat request failed', details=str(exc))

    def get_products(self):
        if not self.configured or not self.products_url:
            log.warning('RevenueCat not configured, no external products')
            return []
        data = self._get(self.products_url)
        items = data.get('products', []) if isinstance(data, dict) else data
        return [Product.from_json(item) for item in items]

    def get_active_entitlements(self, app_user_id):
        if not self.configured:
            log.warning('RevenueCat not configured, no entitlements for %s', app_user_id)
            return []
        data = self._get('%s/v1/subscribers/%s' % (self.api_url, app_user_id))
        entitlements = (data.get('subscriber') or {}).get('entitlements') or {}
        now = datetime.datetime.now(datetime.timezone.utc)
        active = []
        for name, info in entitlements.items():
            expires = (info or {}).get('expires_date')
            if expires is None or _parse_date(expires) > now:
                active.append(name)
        return active


def _parse_date(value):
    parsed = datetime.datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed
