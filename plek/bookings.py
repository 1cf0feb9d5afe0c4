import logging
import secrets
import datetime

import jwt
from flask import current_app

from plek import db
from plek.access import admin_or_self_or_guests, apply_access
from plek.errors import Conflict, NotFound, ValidationError
from plek.models import Booking, User, utcnow
from plek.packages import find_post

log = logging.getLogger(__name__)

BOOKING_TOKEN_DAYS = 7


def parse_date(value, name):
    if isinstance(value, datetime.datetime):
        return value
    if not value:
        raise ValidationError('%s is required' % name)
    try:
        parsed = datetime.datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError('Invalid %s' % name)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return parsed


def parse_range(from_value, to_value):
    from_date = parse_date(from_value, 'fromDate')
    to_date = parse_date(to_value, 'toDate')
    if from_date >= to_date:
        raise ValidationError('Start date must be before end date.')
    return from_date, to_date


def overlapping(post_id, from_date, to_date, exclude_id=None):
    query = Booking.query.filter(
        (Booking.post_id == post_id) & (Booking.from_date < to_date) & (Booking.to_date > from_date)
    )
    if exclude_id is not None:
        query = query.filter(Booking.id != exclude_id)
    return query.all()


def is_available(post_id, from_date, to_date):
    return not overlapping(post_id, from_date, to_date)


def load_guests(ids):
    if not ids:
        return []
    guests = User.query.filter(User.id.in_([int(i) for i in ids])).all()
    if len(guests) != len(set(int(i) for i in ids)):
        raise ValidationError('Unknown guest')
    return guests


def create_booking(user, slug=None, post_id=None, from_value=None, to_value=None, guest_ids=None,
                   payment_status='unpaid', estimate_id=None):
    post = find_post(slug=slug, post_id=post_id)
    if post is None:
        raise NotFound('Post not found')
    from_date, to_date = parse_range(from_value, to_value)

    if overlapping(post.id, from_date, to_date):
        raise Conflict('Booking dates are not available.',
                       details='The selected dates overlap with an existing booking.')

    booking = Booking(
        title=post.title,
        post_id=post.id,
        customer_id=user.id,
        from_date=from_date,
        to_date=to_date,
        token=secrets.token_urlsafe(24),
        payment_status=payment_status,
        estimate_id=estimate_id,
    )
    booking.guests = load_guests(guest_ids)
    db.session.add(booking)
    db.session.commit()
    log.info('Booking %s created for post %s', booking.id, post.id)
    return booking


def visible_bookings(user):
    access = admin_or_self_or_guests('customer_id', 'guests')(user)
    return apply_access(Booking.query, Booking, access)


def bookings_for(user, now=None):
    """Reservas próximas (fromDate >= ahora) y pasadas; se decide al consultar."""
    now = now or utcnow()
    base = visible_bookings(user)
    upcoming = base.filter(Booking.from_date >= now).order_by(Booking.from_date).all()
    past = base.filter(Booking.from_date < now).order_by(Booking.from_date.desc()).all()
    return upcoming, past


def get_booking(user, booking_id):
    booking = visible_bookings(user).filter(Booking.id == booking_id).first()
    if booking is None:
        raise NotFound('Booking not found')
    return booking


def unavailable_dates(post):
    dates = set()
    for booking in Booking.query.filter_by(post_id=post.id).all():
        current = booking.from_date
        while current < booking.to_date:
            dates.add(current.isoformat())
            current += datetime.timedelta(days=1)
    return sorted(dates)


### TOKENS DE RESERVA ###

def _sign_booking_token(booking):
    now = datetime.datetime.now(datetime.timezone.utc)
    claims = {
        'bookingId': booking.id,
        'customerId': booking.customer_id,
        'jti': secrets.token_hex(8),
        'iat': now,
        'exp': now + datetime.timedelta(days=BOOKING_TOKEN_DAYS),
    }
    return jwt.encode(claims, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def _owned(user, booking_id):
    booking = Booking.query.filter_by(id=booking_id, customer_id=user.id).first()
    if booking is None:
        raise NotFound('Booking not found')
    return booking


def booking_token(user, booking_id):
    booking = _owned(user, booking_id)
    if booking.share_token:
        return booking.share_token
    booking.share_token = _sign_booking_token(booking)
    db.session.commit()
    return booking.share_token


def refresh_booking_token(user, booking_id):
    # el token anterior deja de ser el vigente
    booking = _owned(user, booking_id)
    booking.share_token = _sign_booking_token(booking)
    db.session.commit()
    return booking.share_token


def read_booking_token(token):
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])
    except jwt.PyJWTError:
        raise ValidationError('Invalid or expired token')


def _invited_booking(token):
    """Reserva del enlace de invitación. Un token reemplazado por refresh ya no vale."""
    claims = read_booking_token(token)
    booking = Booking.query.filter_by(id=claims.get('bookingId'), share_token=token).first()
    if booking is None:
        raise NotFound('Booking not found')
    return booking, claims


def invite_details(token):
    _, claims = _invited_booking(token)
    return claims


def accept_invite(user, booking_id, token):
    """Añade al usuario como invitado. Devuelve (reserva, añadido)."""
    booking, _ = _invited_booking(token)
    if booking.id != booking_id:
        raise NotFound('Booking not found')
    if booking.customer_id == user.id or user in booking.guests:
        return booking, False
    booking.guests.append(user)
    db.session.commit()
    log.info('User %s joined booking %s', user.id, booking.id)
    return booking, True
