from plek.access import admin_or_self_field, is_admin_field
from plek.pricing import nights_between


def _iso(value):
    return value.isoformat() if value is not None else None


def user_to_dict(user, principal=None):
    data = {
        'id': user.id,
        'name': user.name,
        'role': list(user.roles or []),
    }
    if admin_or_self_field('id')(principal, user):
        data.update({
            'email': user.email,
            'subscriptionStatus': user.subscription_status,
            'planTier': user.plan_tier,
            'entitlementTier': user.entitlement_tier.value,
        })
    if user.host_bio or user.host_phone:
        data['hostProfile'] = {'bio': user.host_bio, 'phone': user.host_phone}
    return data


def post_to_dict(post):
    return {
        'id': post.id,
        'title': post.title,
        'slug': post.slug,
        'description': post.description,
        '_status': post.status,
        'baseRate': post.base_rate,
        'author': post.author_id,
        'packageSettings': [
            {'package': s.package_ref, 'customName': s.custom_name, 'enabled': s.enabled}
            for s in post.package_settings
        ],
    }


def package_to_dict(package):
    return {
        'id': package.id,
        'post': package.post_id,
        'name': package.name,
        'description': package.description,
        'multiplier': package.multiplier,
        'category': package.category,
        'minNights': package.min_nights,
        'maxNights': package.max_nights,
        'entitlementRequired': package.entitlement_required,
        'revenueCatId': package.revenuecat_id,
        'baseRate': package.base_rate,
        'isEnabled': package.is_enabled,
        'features': list(package.features or []),
    }


def booking_to_dict(booking, principal=None):
    data = {
        'id': booking.id,
        'title': booking.title,
        'post': booking.post_id,
        'fromDate': _iso(booking.from_date),
        'toDate': _iso(booking.to_date),
        'guests': [g.id for g in booking.guests],
        'paymentStatus': booking.payment_status,
        'estimate': booking.estimate_id,
    }
    if principal is not None and admin_or_self_field('customer_id')(principal, booking):
        data['customer'] = booking.customer_id
        data['token'] = booking.token
    return data


def estimate_to_dict(estimate, principal=None):
    data = {
        'id': estimate.id,
        'title': estimate.title,
        'post': estimate.post_id,
        'fromDate': _iso(estimate.from_date),
        'toDate': _iso(estimate.to_date),
        'nights': nights_between(estimate.from_date, estimate.to_date),
        'guests': [g.id for g in estimate.guests],
        'total': estimate.total,
        'packageType': estimate.package_type,
        'selectedPackage': estimate.selected_package_id,
        'paymentStatus': estimate.payment_status,
        'confirmedAt': _iso(estimate.confirmed_at),
        'createdAt': _iso(estimate.created_at),
    }
    if principal is not None and admin_or_self_field('customer_id')(principal, estimate):
        data['customer'] = estimate.customer_id
    if principal is not None and is_admin_field(principal):
        data['checkoutId'] = estimate.checkout_id
    return data
