import json
import hashlib

from flask import Blueprint, current_app, jsonify, redirect, request
from sqlalchemy import false
from werkzeug.exceptions import HTTPException

from plek import auth, bookings, estimates, packages, users
from plek import db
from plek.access import admin_or_host, admin_or_published, allows, apply_access, is_admin
from plek.errors import ApiError, NotFound, ValidationError
from plek.models import Package, Post, User
from plek.pricing import nights_between, offers_for_stay, suggested_packages
from plek.serializers import (booking_to_dict, estimate_to_dict, package_to_dict, post_to_dict,
                              user_to_dict)
from plek.session import (clear_session_cookie, current_principal, require, require_principal,
                          set_session_cookie)
from plek.suggest import suggest_packages

api = Blueprint('api', __name__)


@api.errorhandler(ApiError)
def handle_api_error(error):
    db.session.rollback()
    return jsonify(error.to_dict()), error.status


@api.errorhandler(Exception)
def handle_unexpected(error):
    if isinstance(error, HTTPException):
        return jsonify({'error': error.description}), error.code
    db.session.rollback()
    current_app.logger.exception('Unhandled error on %s %s', request.method, request.path)
    return jsonify({'error': 'Unexpected error', 'details': str(error)}), 500


def body():
    return request.get_json(silent=True) or {}


def package_cache_headers(response, payload):
    cfg = current_app.config
    response.headers['Cache-Control'] = 'public, max-age=%d, s-maxage=%d' % (
        cfg['PACKAGE_CACHE_MAX_AGE'], cfg['PACKAGE_CACHE_S_MAXAGE'])
    digest = hashlib.sha1(json.dumps(payload, sort_keys=True, default=str).encode('utf-8')).hexdigest()
    response.set_etag(digest[:16])
    return response.make_conditional(request)


### RUTAS PARA USUARIOS ###

@api.route('/api/users', methods=['POST'])
def create_user():
    data = body()
    user = auth.register_user(data.get('name'), data.get('email'), data.get('password'))
    return jsonify({'message': 'User created', 'user': user_to_dict(user, user)}), 201


@api.route('/api/users/login', methods=['POST'])
def login_user():
    data = body()
    user, token = auth.login(data.get('email'), data.get('password'))
    response = jsonify({'message': 'Login successful', 'user': user_to_dict(user, user), 'token': token})
    return set_session_cookie(response, token), 200


@api.route('/api/users/logout', methods=['POST'])
def logout_user():
    return clear_session_cookie(jsonify({'message': 'Logged out'})), 200


@api.route('/api/users/me', methods=['GET'])
def get_me():
    user = current_principal()
    if user is None:
        return jsonify({'user': None}), 200
    return jsonify({'user': user_to_dict(user, user)}), 200


@api.route('/api/users', methods=['GET'])
def get_users():
    admin = require(is_admin)
    return jsonify([user_to_dict(u, admin) for u in User.query.order_by(User.id).all()]), 200


@api.route('/api/users/promote-host', methods=['POST'])
def promote_host():
    admin = require_principal()
    data = body()
    target, changed = users.promote_host(admin, data.get('targetUserId'), data.get('productId'))
    message = 'User successfully promoted to host' if changed else 'User is already a host'
    return jsonify({'message': message, 'user': user_to_dict(target, admin)}), 200


@api.route('/api/upgrade-role', methods=['POST'])
def upgrade_role():
    user = require_principal()
    target_role = body().get('targetRole')
    previous, active = users.upgrade_role(user, target_role)
    return jsonify({
        'success': True,
        'message': 'Successfully upgraded to %s role' % target_role,
        'previousRoles': previous,
        'newRoles': list(user.roles),
        'hasActiveSubscription': True,
        'activeEntitlements': active,
    }), 200


@api.route('/api/check-subscription', methods=['GET'])
def check_subscription():
    user = current_principal()
    if user is None:
        return jsonify({'hasActiveSubscription': False}), 200
    active = users.sync_subscription(user)
    return jsonify({
        'hasActiveSubscription': bool(active),
        'customerId': str(user.id),
        'activeEntitlements': active,
        'entitlementTier': user.entitlement_tier.value,
    }), 200


### MAGIC LINK / OTP ###

@api.route('/api/authRequests/magic', methods=['POST'])
def magic_request():
    result = auth.request_magic_link(body().get('email'), request.host_url)
    return jsonify(result), 200


@api.route('/api/authRequests/verify-code', methods=['POST'])
def magic_verify_code():
    data = body()
    user, token = auth.verify_code(data.get('email'), data.get('otp'), data.get('requestId'))
    response = jsonify({'message': 'Login successful', 'user': user_to_dict(user, user)})
    return set_session_cookie(response, token), 200


@api.route('/api/authRequests/verify-link', methods=['GET'])
def magic_verify_link():
    user, token = auth.verify_link(request.args.get('token'))
    response = redirect(current_app.config['MAGIC_LINK_LANDING'])
    return set_session_cookie(response, token)


### POSTS ###

@api.route('/api/posts', methods=['GET'])
def get_posts():
    user = current_principal()
    query = apply_access(Post.query, Post, admin_or_published(user))
    status = request.args.get('where[_status][equals]') or request.args.get('status')
    if status:
        query = query.filter(Post.status == status)
    limit = request.args.get('limit', 50, type=int)
    posts = query.order_by(Post.id).limit(limit).all()
    return jsonify({'docs': [post_to_dict(p) for p in posts], 'totalDocs': len(posts)}), 200


@api.route('/api/posts/<int:post_id>', methods=['GET'])
def get_post(post_id):
    post = db.session.get(Post, post_id)
    if post is None or not allows(admin_or_published(current_principal()), post):
        raise NotFound('Post not found')
    return jsonify(post_to_dict(post)), 200


@api.route('/api/posts', methods=['POST'])
def create_post():
    user = require(admin_or_host)
    data = body()
    if not data.get('title') or not data.get('slug'):
        raise ValidationError('title and slug are required')
    if Post.query.filter_by(slug=data['slug']).first():
        return jsonify({'error': 'Slug already in use'}), 409
    post = Post(
        title=data['title'],
        slug=data['slug'],
        description=data.get('description'),
        status=data.get('_status', 'draft'),
        base_rate=data.get('baseRate'),
        author_id=user.id,
    )
    db.session.add(post)
    db.session.commit()
    return jsonify(post_to_dict(post)), 201


@api.route('/api/posts/<int:post_id>/package-settings', methods=['PUT'])
def update_package_settings(post_id):
    user = require_principal()
    post = packages.set_package_settings(user, post_id, body().get('packageSettings'))
    return jsonify(post_to_dict(post)), 200


### PAQUETES ###

@api.route('/api/packages', methods=['GET'])
def get_packages():
    query = packages.visible_packages(current_principal())
    post_id = request.args.get('where[post][equals]') or request.args.get('post')
    if post_id:
        query = query.filter(Package.post_id == int(post_id)) if post_id.isdigit() else query.filter(false())
    enabled = request.args.get('where[isEnabled][equals]') or request.args.get('isEnabled')
    if enabled is not None:
        query = query.filter(Package.is_enabled == (enabled == 'true'))
    docs = [package_to_dict(p) for p in query.order_by(Package.id).all()]
    return jsonify({'docs': docs, 'totalDocs': len(docs)}), 200


@api.route('/api/packages', methods=['POST'])
def create_package():
    user = require_principal()
    package = packages.create_package(user, body())
    return jsonify(package_to_dict(package)), 201


@api.route('/api/packages/<int:package_id>', methods=['PATCH'])
def update_package(package_id):
    user = require_principal()
    package = packages.update_package(user, package_id, body())
    return jsonify(package_to_dict(package)), 200


@api.route('/api/packages', methods=['DELETE'])
def delete_packages():
    user = require_principal()
    ids = request.args.getlist('where[id][in][]') or request.args.getlist('id')
    deleted, failed = packages.delete_packages(user, ids)
    message = 'Successfully deleted %d packages' % len(deleted)
    if failed:
        message += ', %d failed' % len(failed)
    response = {'message': message, 'deletedPackages': deleted}
    if failed:
        response['failedPackages'] = failed
    return jsonify(response), 200


@api.route('/api/packages/post/<int:post_id>', methods=['GET'])
def get_post_packages(post_id):
    _, offers = packages.offers_for_post(post_id)
    nights = request.args.get('nights', type=int)
    if nights:
        user = current_principal()
        tier = user.entitlement_tier.value if user else 'none'
        offers = offers_for_stay(offers, nights, tier)
    payload = {'packages': [o.to_dict() for o in offers], 'total': len(offers)}
    return package_cache_headers(jsonify(payload), payload)


@api.route('/api/packages/addons/<int:post_id>', methods=['GET'])
def get_post_addons(post_id):
    _, offers = packages.offers_for_post(post_id, category='addon', include_external=False)
    payload = {'addons': [o.to_dict() for o in offers], 'total': len(offers)}
    return package_cache_headers(jsonify(payload), payload)


@api.route('/api/packages/suggested', methods=['GET'])
def get_suggested_packages():
    user = current_principal()
    tier = user.entitlement_tier.value if user else 'none'
    nights = request.args.get('nights', 1, type=int)
    include_addons = request.args.get('addons', 'true') != 'false'
    return jsonify({'packages': suggested_packages(nights, tier, include_addons), 'tier': tier}), 200


@api.route('/api/packages/sync-revenuecat', methods=['POST'])
def sync_revenuecat():
    require(is_admin)
    data = body()
    if not data.get('postId'):
        raise ValidationError('Post ID is required')
    imported, errors, total = packages.sync_revenuecat(data['postId'], data.get('selectedProducts'))
    response = {
        'message': 'Successfully imported %d packages' % len(imported),
        'importedPackages': [package_to_dict(p) for p in imported],
        'totalProducts': total,
    }
    if errors:
        response['errors'] = errors
    return jsonify(response), 200


@api.route('/api/packages/available-products', methods=['GET'])
def get_available_products():
    require(admin_or_host)
    products = current_app.extensions['revenuecat'].get_products()
    return jsonify({'products': [p.to_dict() for p in products], 'total': len(products)}), 200


@api.route('/api/packages/suggest', methods=['POST'])
def suggest():
    data = body()
    if not str(data.get('description') or '').strip():
        return jsonify({'recommendations': []}), 200

    user = current_principal()
    if user is None:
        return jsonify({'error': 'Unauthorized'}), 401
    host_context = bool(data.get('hostContext'))
    if host_context and not admin_or_host(user):
        return jsonify({'error': 'Forbidden'}), 403

    post = None
    if data.get('postId'):
        post = db.session.get(Post, int(data['postId'])) if str(data['postId']).isdigit() else None
    recommendations = suggest_packages(current_app.extensions['suggester'], data.get('description'),
                                       post=post, base_rate=data.get('baseRate'),
                                       host_context=host_context)
    return jsonify({'recommendations': recommendations}), 200


### RESERVAS ###

@api.route('/api/bookings', methods=['POST'])
def create_booking():
    user = require_principal()
    data = body()
    booking = bookings.create_booking(
        user,
        slug=data.get('slug'),
        post_id=data.get('postId'),
        from_value=data.get('fromDate'),
        to_value=data.get('toDate'),
        guest_ids=data.get('guests'),
    )
    return jsonify(booking_to_dict(booking, user)), 201


@api.route('/api/bookings', methods=['GET'])
def get_user_bookings():
    user = require_principal()
    upcoming, past = bookings.bookings_for(user)
    return jsonify({
        'upcoming': [booking_to_dict(b, user) for b in upcoming],
        'past': [booking_to_dict(b, user) for b in past],
    }), 200


@api.route('/api/bookings/<int:booking_id>', methods=['GET'])
def get_booking(booking_id):
    user = require_principal()
    return jsonify(booking_to_dict(bookings.get_booking(user, booking_id), user)), 200


@api.route('/api/bookings/<int:booking_id>/token', methods=['POST'])
def booking_token(booking_id):
    user = require_principal()
    return jsonify({'token': bookings.booking_token(user, booking_id)}), 200


@api.route('/api/bookings/<int:booking_id>/refresh-token', methods=['POST'])
def refresh_booking_token(booking_id):
    user = require_principal()
    return jsonify({'token': bookings.refresh_booking_token(user, booking_id)}), 200


@api.route('/api/bookings/token/<token>', methods=['GET'])
def booking_invite(token):
    require_principal()
    return jsonify(bookings.invite_details(token)), 200


@api.route('/api/bookings/<int:booking_id>/accept-invite/<token>', methods=['POST'])
def accept_booking_invite(booking_id, token):
    user = require_principal()
    booking, added = bookings.accept_invite(user, booking_id, token)
    message = 'Booking updated' if added else 'User already in booking'
    return jsonify({'message': message, 'booking': booking_to_dict(booking, user)}), 200


def _post_from_args():
    slug, post_id = request.args.get('slug'), request.args.get('postId')
    if not slug and not post_id:
        raise ValidationError('Post slug or ID is required')
    post = packages.find_post(slug=slug, post_id=post_id)
    if post is None:
        raise NotFound('Post not found')
    return post


@api.route('/api/bookings/unavailable-dates', methods=['GET'])
def get_unavailable_dates():
    post = _post_from_args()
    require_principal()
    return jsonify({'unavailableDates': bookings.unavailable_dates(post)}), 200


@api.route('/api/bookings/check-availability', methods=['GET'])
def check_availability():
    post = _post_from_args()
    from_date, to_date = bookings.parse_range(request.args.get('fromDate'), request.args.get('toDate'))
    return jsonify({
        'isAvailable': bookings.is_available(post.id, from_date, to_date),
        'nights': nights_between(from_date, to_date),
    }), 200


### PRESUPUESTOS ###

@api.route('/api/estimates', methods=['POST'])
def create_estimate():
    user = require_principal()
    estimate, created = estimates.create_estimate(user, body())
    return jsonify(estimate_to_dict(estimate, user)), 201 if created else 200


@api.route('/api/estimates/latest', methods=['GET'])
def get_latest_estimate():
    user = require_principal()
    post = None
    if request.args.get('slug') or request.args.get('postId'):
        post = _post_from_args()
    customer_id = request.args.get('userId', type=int)
    estimate = estimates.latest_estimate(user, post=post, customer_id=customer_id)
    return jsonify(estimate_to_dict(estimate, user) if estimate else None), 200


@api.route('/api/estimates/<int:estimate_id>', methods=['GET'])
def get_estimate(estimate_id):
    user = require_principal()
    return jsonify(estimate_to_dict(estimates.get_estimate(user, estimate_id), user)), 200


@api.route('/api/estimates/<int:estimate_id>/confirm', methods=['POST'])
def confirm_estimate(estimate_id):
    user = require_principal()
    estimate, booking = estimates.confirm_estimate(user, estimate_id, body())
    response = estimate_to_dict(estimate, user)
    if booking is not None:
        response['booking'] = booking_to_dict(booking, user)
    return jsonify(response), 200


@api.route('/api/estimates/<int:estimate_id>/guests/<int:guest_id>', methods=['POST'])
def add_estimate_guest(estimate_id, guest_id):
    user = require_principal()
    return jsonify(estimate_to_dict(estimates.add_guest(user, estimate_id, guest_id), user)), 200


@api.route('/api/estimates/<int:estimate_id>/guests/<int:guest_id>', methods=['DELETE'])
def remove_estimate_guest(estimate_id, guest_id):
    user = require_principal()
    return jsonify(estimate_to_dict(estimates.remove_guest(user, estimate_id, guest_id), user)), 200
