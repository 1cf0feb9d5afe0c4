import logging

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from plek import db
from plek.access import is_admin
from plek.errors import Forbidden, NotFound, ValidationError
from plek.models import PACKAGE_CATEGORIES, Package, PackageSetting, Post
from plek.pricing import nights_for_period, resolve_offers

log = logging.getLogger(__name__)

# Productos que se importan si no se eligen otros
DEFAULT_SYNC_PRODUCTS = [
    'week_x2_customer', 'week_x3_customer', 'week_x4_customer', 'per_hour', 'per_hour_guest',
    'per_hour_luxury', 'three_nights_customer', '3nights', 'weekly', 'hosted7nights',
    'hosted3nights', 'per_night_customer', 'per_night_luxury', 'weekly_customer', 'monthly',
    'gathering',
]

EDITABLE_FIELDS = {
    'name': 'name',
    'description': 'description',
    'multiplier': 'multiplier',
    'category': 'category',
    'minNights': 'min_nights',
    'maxNights': 'max_nights',
    'entitlementRequired': 'entitlement_required',
    'revenueCatId': 'revenuecat_id',
    'baseRate': 'base_rate',
    'isEnabled': 'is_enabled',
    'features': 'features',
}


def revenuecat():
    return current_app.extensions['revenuecat']


def get_post(post_id):
    post = db.session.get(Post, _int_id(post_id))
    if post is None:
        raise NotFound('Post not found')
    return post


def find_post(slug=None, post_id=None):
    """Busca por slug y, si no aparece, por id."""
    post = None
    if slug:
        post = Post.query.filter_by(slug=slug).first()
        if post is None and str(slug).isdigit():
            post = db.session.get(Post, int(slug))
    elif post_id is not None:
        post = db.session.get(Post, _int_id(post_id))
    return post


def _int_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise NotFound('Not found')


def can_manage(user, post):
    return is_admin(user) or (post.author_id is not None and post.author_id == user.id)


def visible_packages(user):
    """Paquetes listables: todos para admin, desactivados solo en posts propios."""
    query = Package.query
    if is_admin(user):
        return query
    if user is None:
        return query.filter_by(is_enabled=True)
    own_posts = db.session.query(Post.id).filter(Post.author_id == user.id)
    return query.filter(or_(Package.is_enabled.is_(True), Package.post_id.in_(own_posts)))


def local_packages(post_id, category=None, enabled_only=True):
    query = Package.query.filter_by(post_id=post_id)
    if enabled_only:
        query = query.filter_by(is_enabled=True)
    if category:
        query = query.filter_by(category=category)
    return query.order_by(Package.id).all()


def offers_for_post(post_id, category=None, include_external=True):
    post = db.session.get(Post, _int_id(post_id))
    if post is None:
        # sin la propiedad no hay nombres personalizados, se sigue igual
        log.warning('Post %s not found, continuing without package settings', post_id)
    packages = local_packages(_int_id(post_id), category=category)
    products = revenuecat().get_products() if include_external else []
    return post, resolve_offers(post, packages, products)


def _apply_fields(package, data):
    for key, attr in EDITABLE_FIELDS.items():
        if key in data:
            setattr(package, attr, data[key])
    if package.category not in PACKAGE_CATEGORIES:
        raise ValidationError('Invalid category')
    if package.min_nights is not None and package.max_nights is not None \
            and package.min_nights > package.max_nights:
        raise ValidationError('minNights must not exceed maxNights')


def create_package(user, data):
    if not data.get('post') or not data.get('name'):
        raise ValidationError('post and name are required')
    post = get_post(data['post'])
    if not can_manage(user, post):
        raise Forbidden('Insufficient permissions')

    package = Package(post_id=post.id, name=data['name'])
    _apply_fields(package, data)
    db.session.add(package)
    db.session.commit()
    return package


def update_package(user, package_id, data):
    package = db.session.get(Package, _int_id(package_id))
    if package is None:
        raise NotFound('Package not found')
    if not can_manage(user, package.post):
        raise Forbidden('Insufficient permissions')
    _apply_fields(package, data)
    db.session.commit()
    return package


def delete_packages(user, ids):
    """Borra uno por uno; los fallos no detienen el lote."""
    if not ids:
        raise ValidationError('No package IDs provided')

    deleted, failed = [], []
    for package_id in ids:
        try:
            package = db.session.get(Package, int(package_id))
            if package is None:
                raise NotFound('Package not found')
            if not can_manage(user, package.post):
                raise Forbidden('Insufficient permissions')
            db.session.delete(package)
            db.session.commit()
            deleted.append(package_id)
            log.info('Deleted package %s', package_id)
        except (ValueError, NotFound, Forbidden, SQLAlchemyError) as exc:
            db.session.rollback()
            log.error('Error deleting package %s: %s', package_id, exc)
            failed.append({'id': package_id, 'error': getattr(exc, 'message', str(exc))})
    return deleted, failed


def sync_revenuecat(post_id, selected=None):
    post = get_post(post_id)
    wanted = selected or DEFAULT_SYNC_PRODUCTS
    products = [p for p in revenuecat().get_products() if p.id in wanted]

    imported, errors = [], []
    for product in products:
        nights = 1 if product.period == 'hour' else nights_for_period(product.period, product.period_count)
        try:
            package = Package.query.filter_by(post_id=post.id, revenuecat_id=product.id).first()
            if package is None:
                package = Package(post_id=post.id, revenuecat_id=product.id)
                db.session.add(package)
            package.name = product.title
            package.description = product.description
            package.multiplier = 1.0
            package.category = product.category if product.category in PACKAGE_CATEGORIES else 'standard'
            package.min_nights = nights
            package.max_nights = nights
            package.entitlement_required = product.entitlement if product.entitlement in ('standard', 'pro') else 'none'
            package.is_enabled = product.is_enabled
            package.base_rate = product.price
            package.features = list(product.features)
            db.session.commit()
            imported.append(package)
        except SQLAlchemyError as exc:
            db.session.rollback()
            log.error('Failed to import product %s: %s', product.id, exc)
            errors.append({'productId': product.id, 'error': str(exc)})
    return imported, errors, len(products)


def set_package_settings(user, post_id, settings):
    post = get_post(post_id)
    if not can_manage(user, post):
        raise Forbidden('Insufficient permissions')
    if not isinstance(settings, list):
        raise ValidationError('packageSettings must be a list')

    for item in settings:
        ref = item.get('package') if isinstance(item, dict) else None
        if not ref:
            raise ValidationError('Each package setting needs a package')
        setting = post.setting_for(ref)
        if setting is None:
            setting = PackageSetting(package_ref=str(ref))
            post.package_settings.append(setting)
        if 'customName' in item:
            setting.custom_name = item['customName'] or None
        if 'enabled' in item:
            setting.enabled = item['enabled'] is not False
    db.session.commit()
    return post
