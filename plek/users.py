import logging

from flask import current_app

from plek import db
from plek.access import is_admin
from plek.errors import Forbidden, NotFound, ValidationError
from plek.models import Role, User
from plek.pricing import entitlement_tier

log = logging.getLogger(__name__)

UPGRADE_ROLES = (Role.HOST.value, Role.ADMIN.value)


def revenuecat():
    return current_app.extensions['revenuecat']


def sync_subscription(user):
    """Actualiza estado y plan del usuario según los entitlements activos."""
    active = revenuecat().get_active_entitlements(str(user.id))
    tier = entitlement_tier(active)
    user.subscription_status = 'active' if active else 'none'
    user.plan_tier = tier
    db.session.commit()
    return active


def upgrade_role(user, target_role):
    if target_role not in UPGRADE_ROLES:
        raise ValidationError('Invalid target role. Must be one of: %s' % ', '.join(UPGRADE_ROLES),
                              details={'currentRoles': list(user.roles or [])})

    active = sync_subscription(user)
    if not active:
        raise Forbidden('Active host subscription required to upgrade role',
                        details={'hasSubscription': False, 'activeEntitlements': active})

    previous = list(user.roles or [])
    roles = user.role_set - {Role.GUEST}
    roles.add(Role(target_role))
    user.set_roles(roles)
    db.session.commit()
    log.info('User %s upgraded to %s', user.id, target_role)
    return previous, active


def promote_host(admin, target_user_id, product_id=None):
    if not target_user_id:
        raise ValidationError('Target user ID is required')
    if not is_admin(admin):
        raise Forbidden('Insufficient permissions')
    if str(admin.id) == str(target_user_id):
        raise Forbidden('Users cannot promote themselves')

    try:
        target = db.session.get(User, int(target_user_id))
    except (TypeError, ValueError):
        target = None
    if target is None:
        raise NotFound('User not found')
    if Role.HOST in target.role_set:
        return target, False

    if product_id and not revenuecat().get_active_entitlements(str(target.id)):
        raise Forbidden('Valid subscription required for host promotion',
                        details={'requiredProduct': product_id})

    roles = target.role_set - {Role.GUEST}
    roles.add(Role.HOST)
    target.set_roles(roles)
    target.subscription_status = 'active'
    target.plan_tier = 'pro'
    db.session.commit()
    log.info('User %s promoted to host by %s', target.id, admin.id)
    return target, True
