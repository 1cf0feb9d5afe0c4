import pytest

from plek import create_app, db
from plek.auth import hash_password
from plek.config import TestConfig
from plek.models import Post, User
from plek.errors import UpstreamError
from plek.revenuecat import Product
from plek.yoco import YocoClient


class FakeRevenueCat:
    def __init__(self):
        self.products = []
        self.entitlements = {}
        self.fail = False

    def get_products(self):
        if self.fail:
            raise UpstreamError('RevenueCat request failed', details='boom')
        return list(self.products)

    def get_active_entitlements(self, app_user_id):
        return list(self.entitlements.get(app_user_id, []))


class FakeYoco(YocoClient):
    def __init__(self):
        super().__init__(secret_key='sk_test')
        self.checkouts = {}

    def pay(self, checkout_id, amount, currency='ZAR'):
        self.checkouts[checkout_id] = {'id': checkout_id, 'status': 'completed', 'amount': amount,
                                       'currency': currency}

    def get_checkout(self, checkout_id):
        return self.checkouts.get(checkout_id, {'id': checkout_id, 'status': 'created'})


class FakeSuggester:
    def __init__(self):
        self.response = '{}'
        self.error = None
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def app():
    app = create_app(TestConfig)
    app.extensions['revenuecat'] = FakeRevenueCat()
    app.extensions['yoco'] = FakeYoco()
    app.extensions['suggester'] = FakeSuggester()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def revenuecat(app):
    return app.extensions['revenuecat']


@pytest.fixture
def yoco(app):
    return app.extensions['yoco']


@pytest.fixture
def suggester(app):
    return app.extensions['suggester']


@pytest.fixture
def make_user(app):
    def make(email='ana@example.com', roles=('customer',), password='password123', **fields):
        user = User(name=email.split('@')[0], email=email, password=hash_password(password), **fields)
        user.set_roles(roles)
        db.session.add(user)
        db.session.commit()
        return user
    return make


@pytest.fixture
def make_post(app):
    def make(slug='cape-cottage', base_rate=150, status='published', author=None, **fields):
        post = Post(title=slug.replace('-', ' ').title(), slug=slug, base_rate=base_rate,
                    status=status, author_id=author.id if author else None, **fields)
        db.session.add(post)
        db.session.commit()
        return post
    return make


@pytest.fixture
def login(client):
    def do_login(user, password='password123'):
        response = client.post('/api/users/login', json={'email': user.email, 'password': password})
        assert response.status_code == 200, response.get_json()
        return response
    return do_login


def product(id, period='day', period_count=1, **fields):
    fields.setdefault('title', id.replace('_', ' ').title())
    fields.setdefault('price', 100.0)
    return Product(id=id, period=period, period_count=period_count, **fields)


@pytest.fixture
def make_product():
    return product
