from plek import db
from plek.models import User
from plek.serializers import user_to_dict


def test_user_list_is_admin_only(client, make_user, login):
    customer = make_user('ana@example.com')
    assert client.get('/api/users').status_code == 401

    login(customer)
    assert client.get('/api/users').status_code == 403

    login(make_user('admin@example.com', roles=('admin',)))
    emails = [u['email'] for u in client.get('/api/users').get_json()]
    assert emails == ['ana@example.com', 'admin@example.com']


def test_check_subscription_syncs_tier(client, make_user, login, revenuecat):
    user = make_user('ana@example.com')
    assert client.get('/api/check-subscription').get_json() == {'hasActiveSubscription': False}

    revenuecat.entitlements[str(user.id)] = ['pro_host']
    login(user)
    data = client.get('/api/check-subscription').get_json()
    assert data['hasActiveSubscription'] is True
    assert data['entitlementTier'] == 'pro'
    assert db.session.get(User, user.id).plan_tier == 'pro'


def test_upgrade_role_requires_subscription(client, make_user, login, revenuecat):
    user = make_user('ana@example.com', roles=('guest', 'customer'))
    login(user)

    response = client.post('/api/upgrade-role', json={'targetRole': 'wizard'})
    assert response.status_code == 400

    response = client.post('/api/upgrade-role', json={'targetRole': 'host'})
    assert response.status_code == 403
    assert response.get_json()['details']['hasSubscription'] is False

    revenuecat.entitlements[str(user.id)] = ['monthly_member']
    data = client.post('/api/upgrade-role', json={'targetRole': 'host'}).get_json()
    assert data['success'] is True
    assert data['previousRoles'] == ['customer', 'guest']
    assert data['newRoles'] == ['customer', 'host']


def test_promote_host(client, make_user, login):
    admin = make_user('admin@example.com', roles=('admin',))
    target = make_user('ana@example.com', roles=('guest',))
    login(admin)

    response = client.post('/api/users/promote-host', json={'targetUserId': admin.id})
    assert response.status_code == 403

    data = client.post('/api/users/promote-host', json={'targetUserId': target.id}).get_json()
    assert data['message'] == 'User successfully promoted to host'
    assert data['user']['role'] == ['host']

    again = client.post('/api/users/promote-host', json={'targetUserId': target.id}).get_json()
    assert again['message'] == 'User is already a host'


def test_promote_host_needs_admin(client, make_user, login):
    target = make_user('ana@example.com')
    login(make_user('host@example.com', roles=('host',)))
    response = client.post('/api/users/promote-host', json={'targetUserId': target.id})
    assert response.status_code == 403


def test_private_fields_hidden_from_other_users(make_user):
    ana = make_user('ana@example.com')
    eve = make_user('eve@example.com')
    admin = make_user('admin@example.com', roles=('admin',))

    assert 'email' not in user_to_dict(ana, eve)
    assert 'email' not in user_to_dict(ana)
    assert user_to_dict(ana, ana)['email'] == 'ana@example.com'
    assert user_to_dict(ana, admin)['entitlementTier'] == 'none'
