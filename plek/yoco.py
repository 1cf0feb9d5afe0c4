import logging

import requests

from plek.errors import UpstreamError

log = logging.getLogger(__name__)


def amount_in_cents(total):
    return int(round(float(total) * 100))


class YocoClient:
    """Consulta un checkout de Yoco antes de marcar un pago."""

    def __init__(self, secret_key=None, api_url='https://payments.yoco.com/api', timeout=10,
                 session=None, currency='ZAR'):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.currency = currency.upper()
        self.http = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config.get('YOCO_SECRET_KEY'),
            api_url=config.get('YOCO_API_URL', 'https://payments.yoco.com/api'),
            timeout=config.get('HTTP_TIMEOUT', 10),
            currency=config.get('YOCO_CURRENCY', 'ZAR'),
        )

    def get_checkout(self, checkout_id):
        if not self.secret_key:
            raise UpstreamError('Payment provider not configured')
        url = '%s/checkouts/%s' % (self.api_url, checkout_id)
        try:
            response = self.http.get(url, headers={'Authorization': 'Bearer %s' % self.secret_key},
                                     timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            log.error('Yoco checkout lookup %s failed: %s', checkout_id, exc)
            raise UpstreamError('Payment verification failed', details=str(exc))

    def settles(self, checkout_id, total):
        """True si el checkout está completado por el importe exacto y en la moneda configurada."""
        checkout = self.get_checkout(checkout_id)
        if checkout.get('status') != 'completed':
            return False
        if (checkout.get('currency') or '').upper() != self.currency:
            log.warning('Checkout %s paid in %s, expected %s', checkout_id, checkout.get('currency'),
                        self.currency)
            return False
        if checkout.get('amount') != amount_in_cents(total):
            log.warning('Checkout %s paid %s cents for a total of %s', checkout_id, checkout.get('amount'),
                        total)
            return False
        return True
