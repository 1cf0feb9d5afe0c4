import datetime

from plek import db
from plek.access import (admin_or_customer, admin_or_published, admin_or_self, admin_or_self_field,
                         admin_or_self_or_guests, allows, apply_access, is_admin, is_admin_field,
                         is_host, is_host_field)
from plek.models import Booking, Post


def test_anonymous_is_denied_everywhere():
    assert is_admin(None) is False
    assert is_host(None) is False
    assert admin_or_customer(None) is False
    assert admin_or_self('customer_id')(None) is False
    assert admin_or_self_field('customer_id')(None, {'customer_id': 1}) is False
    assert is_admin_field(None) is False
    assert is_host_field(None) is False


def test_role_predicates(make_user):
    admin = make_user('admin@example.com', roles=('admin',))
    host = make_user('host@example.com', roles=('host',))
    customer = make_user('c@example.com', roles=('customer',))
    guest = make_user('g@example.com', roles=('guest',))

    assert is_admin(admin) and not is_admin(host)
    assert is_host(host) and not is_host(customer)
    assert admin_or_customer(admin) and admin_or_customer(customer)
    assert not admin_or_customer(guest)


def test_admin_or_self_filters_by_owner(make_user):
    admin = make_user('admin@example.com', roles=('admin',))
    user = make_user('c@example.com')

    assert admin_or_self('customer_id')(admin) is True
    assert admin_or_self('customer_id')(user) == {'customer_id': {'equals': user.id}}


def test_anonymous_sees_only_published():
    assert admin_or_published(None) == {'_status': {'equals': 'published'}}


def test_published_filter_applies_to_posts(make_user, make_post):
    make_post('open-house', status='published')
    make_post('hidden-house', status='draft')
    admin = make_user('admin@example.com', roles=('admin',))

    visible = apply_access(Post.query, Post, admin_or_published(None)).all()
    assert [p.slug for p in visible] == ['open-house']
    assert len(apply_access(Post.query, Post, admin_or_published(admin)).all()) == 2


def test_field_level_self_access_matches_record_level(make_user):
    host = make_user('host@example.com', roles=('host',))
    doc = {'customer_id': host.id}

    assert admin_or_self_field('customer_id')(host, doc) is True
    assert allows(admin_or_self('customer_id')(host), doc) is True
    assert admin_or_self_field('customer_id')(host, {'customer_id': host.id + 1}) is False


def test_non_admin_never_sees_other_users_bookings(make_user, make_post):
    owner = make_user('owner@example.com')
    other = make_user('other@example.com')
    post = make_post()
    booking = Booking(post_id=post.id, customer_id=owner.id,
                      from_date=datetime.datetime(2030, 1, 1), to_date=datetime.datetime(2030, 1, 3))
    db.session.add(booking)
    db.session.commit()

    query = apply_access(Booking.query, Booking, admin_or_self('customer_id')(other))
    assert query.filter(Booking.id == booking.id).all() == []
    assert apply_access(Booking.query, Booking, admin_or_self('customer_id')(None)).all() == []


def test_guests_can_see_shared_bookings(make_user, make_post):
    owner = make_user('owner@example.com')
    guest = make_user('guest@example.com')
    stranger = make_user('stranger@example.com')
    post = make_post()
    booking = Booking(post_id=post.id, customer_id=owner.id,
                      from_date=datetime.datetime(2030, 1, 1), to_date=datetime.datetime(2030, 1, 3))
    booking.guests = [guest]
    db.session.add(booking)
    db.session.commit()

    check = admin_or_self_or_guests('customer_id', 'guests')
    assert apply_access(Booking.query, Booking, check(guest)).count() == 1
    assert apply_access(Booking.query, Booking, check(stranger)).count() == 0
    assert allows(check(guest), booking) is True
    assert allows(check(stranger), booking) is False
