import pytest
import requests

from plek.errors import UpstreamError
from plek.revenuecat import RevenueCatClient
from plek.yoco import YocoClient


class StubResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError('%d error' % self.status_code)

    def json(self):
        return self.payload


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers))
        if self.error is not None:
            raise self.error
        return self.response


def test_products_need_configuration():
    http = StubSession()
    assert RevenueCatClient(session=http).get_products() == []
    assert http.calls == []


def test_products_are_parsed():
    http = StubSession(StubResponse({'products': [
        {'id': 'week_x2_customer', 'title': 'Two Weeks', 'price': '299.99', 'period': 'week', 'periodCount': 2},
        {'id': 'per_hour', 'isEnabled': False},
    ]}))
    client = RevenueCatClient(api_key='key', products_url='https://rc.example/products', session=http)

    two_weeks, per_hour = client.get_products()
    assert (two_weeks.price, two_weeks.period, two_weeks.period_count) == (299.99, 'week', 2)
    assert per_hour.title == 'per_hour'
    assert per_hour.is_enabled is False
    assert http.calls[0][1]['Authorization'] == 'Bearer key'


def test_products_failure_raises():
    http = StubSession(error=requests.ConnectionError('down'))
    client = RevenueCatClient(api_key='key', products_url='https://rc.example/products', session=http)
    with pytest.raises(UpstreamError):
        client.get_products()


def test_active_entitlements_skip_expired():
    http = StubSession(StubResponse({'subscriber': {'entitlements': {
        'monthly_member': {'expires_date': '2999-01-01T00:00:00Z'},
        'pro_host': {'expires_date': '2001-01-01T00:00:00Z'},
        'lifetime': {'expires_date': None},
    }}}))
    client = RevenueCatClient(api_key='key', api_url='https://rc.example/', session=http)

    assert client.get_active_entitlements('42') == ['monthly_member', 'lifetime']
    assert http.calls[0][0] == 'https://rc.example/v1/subscribers/42'


def yoco_with(payload, status=200, **kwargs):
    return YocoClient(secret_key='sk', session=StubSession(StubResponse(payload, status=status)), **kwargs)


def test_yoco_settles_exact_amount():
    assert yoco_with({'status': 'completed', 'amount': 40500, 'currency': 'ZAR'}).settles('ch_1', 405) is True
    assert yoco_with({'status': 'completed', 'amount': 40500, 'currency': 'zar'}).settles('ch_1', 405.0) is True
    assert yoco_with({'status': 'started', 'amount': 40500, 'currency': 'ZAR'}).settles('ch_1', 405) is False


def test_yoco_rejects_other_amount_or_currency():
    assert yoco_with({'status': 'completed', 'amount': 100, 'currency': 'ZAR'}).settles('ch_1', 405) is False
    assert yoco_with({'status': 'completed', 'amount': 40500, 'currency': 'USD'}).settles('ch_1', 405) is False
    usd = yoco_with({'status': 'completed', 'amount': 40500, 'currency': 'USD'}, currency='usd')
    assert usd.settles('ch_1', 405) is True


def test_yoco_errors():
    with pytest.raises(UpstreamError):
        YocoClient(session=StubSession()).get_checkout('ch_1')
    with pytest.raises(UpstreamError):
        yoco_with({}, status=502).settles('ch_1', 405)
