# Plantillas base de paquetes. El id de RevenueCat es la clave estable que
# comparten la base de datos, RevenueCat y las sugerencias.

CATEGORY_LABELS = {
    'standard': 'Standard',
    'hosted': 'Hosted',
    'addon': 'Add-on',
    'special': 'Special',
}

DURATION_LABELS = {
    'single': 'Per Night',
    'short': '3-Night Package',
    'weekly': 'Weekly Package',
    'extended': 'Extended Stay',
    'monthly': 'Monthly Package',
}

ADDON_TITLES = {
    'wine_addon': 'Wine Experience',
    'cleaning_addon': 'Cleaning Service',
    'hike_addon': 'Guided Hiking',
}


def _template(id, category, duration_tier, min_nights, max_nights, multiplier,
              revenuecat_id, tier, features):
    return {
        'id': id,
        'category': category,
        'durationTier': duration_tier,
        'minNights': min_nights,
        'maxNights': max_nights,
        'baseMultiplier': multiplier,
        'revenueCatId': revenuecat_id,
        'customerTierRequired': tier,
        'features': features,
    }


STANDARD_STAY = ['Standard Accommodation', 'Basic Amenities', 'Self-Service']
HOSTED_STAY = ['Premium Accommodation', 'Enhanced Amenities', 'Hosted Experience']

BASE_PACKAGE_TEMPLATES = [
    _template('per_night_standard', 'standard', 'single', 1, 1, 1.0, 'per_night', 'standard',
              STANDARD_STAY),
    _template('three_nights_standard', 'standard', 'short', 2, 3, 0.9, '3nights', 'standard',
              STANDARD_STAY + ['10% Member Discount']),
    _template('weekly_standard', 'standard', 'weekly', 4, 7, 0.8, 'Weekly', 'standard',
              STANDARD_STAY + ['20% Member Discount']),
    _template('extended_standard', 'standard', 'extended', 8, 28, 0.7, '2Xweekly', 'standard',
              STANDARD_STAY + ['30% Member Discount']),
    _template('monthly_standard', 'standard', 'monthly', 29, 365, 0.7, 'monthly', 'standard',
              STANDARD_STAY + ['30% Member Discount']),
    _template('per_night_hosted', 'hosted', 'single', 1, 1, 1.5, 'per_night_luxury', 'pro',
              HOSTED_STAY),
    _template('three_nights_hosted', 'hosted', 'short', 2, 3, 1.4, 'hosted3nights', 'pro',
              HOSTED_STAY + ['Welcome Package']),
    _template('weekly_hosted', 'hosted', 'weekly', 4, 7, 1.3, 'hosted7nights', 'pro',
              HOSTED_STAY + ['Regular Host Check-ins']),
    _template('week_x2_hosted', 'hosted', 'extended', 7, 14, 1.2, 'week_x2_customer', 'pro',
              HOSTED_STAY + ['Regular Host Check-ins']),
    _template('wine_addon', 'addon', 'single', 1, 365, 1.5, 'Bottle_wine', 'none',
              ['Wine Tasting Experience', 'Sommelier Consultation']),
    _template('cleaning_addon', 'addon', 'single', 1, 365, 1.0, 'cleaning', 'none',
              ['Professional Cleaning']),
    _template('hike_addon', 'addon', 'single', 1, 365, 1.0, 'Hike', 'none',
              ['Guided Hike']),
    _template('bathbomb_addon', 'addon', 'single', 1, 365, 1.0, 'bathBomb', 'none',
              ['Luxury Bath Amenities']),
    _template('per_hour_standard', 'standard', 'single', 1, 1, 0.1, 'per_hour', 'standard',
              STANDARD_STAY),
    _template('per_hour_luxury', 'hosted', 'single', 1, 1, 0.15, 'per_hour_luxury', 'pro',
              HOSTED_STAY),
    _template('week_x3_standard', 'standard', 'extended', 21, 21, 0.6, 'week_x3_customer', 'standard',
              STANDARD_STAY + ['30% Member Discount']),
    _template('gathering_special', 'special', 'single', 1, 7, 1.2, 'gathering', 'pro',
              ['Team Building', 'Catering Support', 'Entertainment Setup']),
    _template('gathering_monthly_special', 'special', 'monthly', 1, 30, 1.0, 'gathering_monthly', 'pro',
              ['Team Building', 'Quad Bike Tour', 'Catering Support', 'Entertainment Setup']),
]

KNOWN_REVENUECAT_IDS = frozenset(t['revenueCatId'] for t in BASE_PACKAGE_TEMPLATES)


def by_revenuecat_id(revenuecat_id):
    for template in BASE_PACKAGE_TEMPLATES:
        if template['revenueCatId'] == revenuecat_id:
            return template
    return None


def by_category(category):
    return [t for t in BASE_PACKAGE_TEMPLATES if t['category'] == category]


def default_title(template):
    if template['category'] == 'addon':
        return ADDON_TITLES.get(template['id'], 'Add-on Service')
    return '%s %s' % (CATEGORY_LABELS[template['category']], DURATION_LABELS[template['durationTier']])


# Tabla de sugerencias por duración y nivel de suscripción
SUGGESTED_PACKAGES = [
    {'id': 'per_night_customer', 'title': 'Per Night', 'minNights': 1, 'maxNights': 1,
     'multiplier': 1.0, 'revenueCatId': 'per_night', 'entitlementRequired': 'standard', 'isPrimary': True},
    {'id': 'three_nights_customer', 'title': '3 Night Package', 'minNights': 2, 'maxNights': 3,
     'multiplier': 0.9, 'revenueCatId': '3nights', 'entitlementRequired': 'standard', 'isPrimary': True},
    {'id': 'weekly_customer', 'title': 'Weekly Package', 'minNights': 4, 'maxNights': 7,
     'multiplier': 0.8, 'revenueCatId': 'Weekly', 'entitlementRequired': 'standard', 'isPrimary': True},
    {'id': 'extended_customer', 'title': 'Extended Stay Package', 'minNights': 8, 'maxNights': 28,
     'multiplier': 0.7, 'revenueCatId': '2Xweekly', 'entitlementRequired': 'standard', 'isPrimary': True},
    {'id': 'monthly_customer', 'title': 'Monthly Package', 'minNights': 29, 'maxNights': 365,
     'multiplier': 0.7, 'revenueCatId': 'monthly', 'entitlementRequired': 'standard', 'isPrimary': True},
    {'id': 'per_night_hosted', 'title': 'Hosted Night Experience', 'minNights': 1, 'maxNights': 1,
     'multiplier': 1.5, 'revenueCatId': 'per_night_luxury', 'entitlementRequired': 'pro', 'isPrimary': True},
    {'id': 'hosted3nights', 'title': 'Hosted 3-Night Experience', 'minNights': 2, 'maxNights': 3,
     'multiplier': 1.4, 'revenueCatId': 'hosted3nights', 'entitlementRequired': 'pro', 'isPrimary': True},
    {'id': 'hosted7nights', 'title': 'Hosted Weekly Experience', 'minNights': 4, 'maxNights': 7,
     'multiplier': 1.3, 'revenueCatId': 'hosted7nights', 'entitlementRequired': 'pro', 'isPrimary': True},
    {'id': 'hosted_extended', 'title': 'Hosted Extended Stay', 'minNights': 8, 'maxNights': 365,
     'multiplier': 1.2, 'revenueCatId': 'hosted_extended', 'entitlementRequired': 'pro', 'isPrimary': True},
    {'id': 'gathering_monthly', 'title': 'Annual agreement', 'minNights': 1, 'maxNights': 30,
     'multiplier': 1.0, 'revenueCatId': 'gathering_monthly', 'entitlementRequired': 'pro', 'isPrimary': True},
    {'id': 'wine', 'title': 'Wine Experience Add-on', 'minNights': 1, 'maxNights': 365,
     'multiplier': 1.5, 'revenueCatId': 'Bottle_wine', 'entitlementRequired': 'none', 'isPrimary': False},
]
