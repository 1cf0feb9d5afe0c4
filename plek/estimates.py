import math
import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from plek import db
from plek.access import admin_or_self_or_guests, allows, is_admin
from plek.bookings import create_booking, load_guests, overlapping, parse_range
from plek.errors import Conflict, Forbidden, NotFound, UpstreamError, ValidationError
from plek.models import Estimate, Package, User, utcnow
from plek.packages import get_post, offers_for_post
from plek.pricing import compute_total, find_offer, offer_from_package

log = logging.getLogger(__name__)


def _needs_total(total):
    if total is None:
        return True
    try:
        value = float(total)
    except (TypeError, ValueError):
        return True
    return math.isnan(value) or value == 0


def heal_total(estimate):
    """Corrige un total vacío, cero o NaN. Un total correcto no se escribe."""
    if not _needs_total(estimate.total):
        return estimate
    post = estimate.post
    estimate.total = compute_total(post.base_rate if post else None, estimate.from_date, estimate.to_date)
    db.session.commit()
    log.info('Corrected total for estimate %s', estimate.id)
    return estimate


def resolve_package(post, package_type):
    """Busca el paquete entre las ofertas activas, luego por id local y por nombre."""
    try:
        _, offers = offers_for_post(post.id)
    except UpstreamError:
        log.warning('External products unavailable, resolving %s from local packages', package_type)
        _, offers = offers_for_post(post.id, include_external=False)
    offer = find_offer(offers, package_type)
    if offer is not None:
        return offer

    package = None
    if str(package_type).isdigit():
        package = db.session.get(Package, int(package_type))
        if package is not None and package.post_id != post.id:
            package = None
    if package is None:
        package = Package.query.filter_by(post_id=post.id, name=package_type, is_enabled=True).first()
    if package is None:
        return None
    offer = offer_from_package(package, post.setting_for(package.id))
    return offer if offer.is_enabled else None


def create_estimate(user, data):
    post_id = data.get('postId')
    package_type = data.get('packageType')
    if not post_id or not package_type:
        raise ValidationError('postId and packageType are required')

    post = get_post(post_id)
    from_date, to_date = parse_range(data.get('fromDate'), data.get('toDate'))

    offer = resolve_package(post, package_type)
    if offer is None:
        raise ValidationError('Package not found',
                              details='Package %s not found for post %s' % (package_type, post.id))

    base_rate = offer.base_rate if offer.base_rate else post.base_rate
    total = compute_total(base_rate, from_date, to_date, offer.multiplier)

    estimate = Estimate.query.filter_by(post_id=post.id, customer_id=user.id,
                                        from_date=from_date, to_date=to_date).first()
    created = estimate is None
    if created:
        estimate = Estimate(post_id=post.id, customer_id=user.id, from_date=from_date, to_date=to_date,
                            title=data.get('title') or 'Estimate for %s' % post.title)
        db.session.add(estimate)

    estimate.total = total
    estimate.package_type = offer.name or offer.id
    estimate.selected_package_id = int(offer.id) if offer.source == 'database' else None
    if 'guests' in data:
        estimate.guests = load_guests(data.get('guests'))
    db.session.commit()
    return estimate, created


def _visible(user, estimate):
    return allows(admin_or_self_or_guests('customer_id', 'guests')(user), estimate)


def get_estimate(user, estimate_id):
    estimate = db.session.get(Estimate, estimate_id)
    if estimate is None or not _visible(user, estimate):
        raise NotFound('Estimate not found')
    return heal_total(estimate)


def latest_estimate(user, post=None, customer_id=None):
    query = Estimate.query
    if customer_id is not None and customer_id != user.id and not is_admin(user):
        raise Forbidden('Insufficient permissions')
    query = query.filter_by(customer_id=customer_id if customer_id is not None else user.id)
    if post is not None:
        query = query.filter_by(post_id=post.id)
    estimate = query.order_by(Estimate.created_at.desc(), Estimate.id.desc()).first()
    if estimate is None:
        return None
    return heal_total(estimate)


def _owned(user, estimate_id):
    estimate = db.session.get(Estimate, estimate_id)
    if estimate is None:
        raise NotFound('Estimate not found')
    if estimate.customer_id != user.id and not is_admin(user):
        raise Forbidden('Insufficient permissions')
    return estimate


def add_guest(user, estimate_id, guest_id):
    estimate = _owned(user, estimate_id)
    guest = db.session.get(User, guest_id)
    if guest is None:
        raise NotFound('User not found')
    if guest not in estimate.guests:
        estimate.guests.append(guest)
        db.session.commit()
    return estimate


def remove_guest(user, estimate_id, guest_id):
    estimate = _owned(user, estimate_id)
    estimate.guests = [g for g in estimate.guests if g.id != guest_id]
    db.session.commit()
    return estimate


def confirm_estimate(user, estimate_id, data):
    """Marca el presupuesto como pagado tras verificar el checkout con Yoco."""
    estimate = _owned(user, estimate_id)

    if not data.get('paymentValidated'):
        raise ValidationError('Payment validation required')
    checkout_id = data.get('checkoutId')
    if not checkout_id:
        raise ValidationError('checkoutId is required')
    if estimate.payment_status == 'paid':
        if estimate.checkout_id != checkout_id:
            raise Conflict('Estimate already paid')
        return estimate, None

    used = Estimate.query.filter(Estimate.checkout_id == checkout_id, Estimate.id != estimate.id).first()
    if used is not None:
        raise Conflict('Checkout already used')

    heal_total(estimate)
    if _needs_total(estimate.total):
        raise ValidationError('Estimate has no total')
    if not current_app.extensions['yoco'].settles(checkout_id, estimate.total):
        raise ValidationError('Payment not verified')

    if overlapping(estimate.post_id, estimate.from_date, estimate.to_date):
        raise Conflict('Booking dates are not available.')

    estimate.payment_status = 'paid'
    estimate.checkout_id = checkout_id
    estimate.confirmed_at = utcnow()
    if data.get('packageType'):
        estimate.package_type = data['packageType']
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict('Checkout already used')

    booking = create_booking(
        estimate.customer,
        post_id=estimate.post_id,
        from_value=estimate.from_date,
        to_value=estimate.to_date,
        guest_ids=[g.id for g in estimate.guests],
        payment_status='paid',
        estimate_id=estimate.id,
    )
    log.info('Estimate %s confirmed as booking %s', estimate.id, booking.id)
    return estimate, booking


