import json
import logging

import google.generativeai as genai

from plek.catalog import BASE_PACKAGE_TEMPLATES, KNOWN_REVENUECAT_IDS, by_revenuecat_id, default_title
from plek.pricing import effective_base_rate

log = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 4


class GeminiSuggester:

    def __init__(self, api_key=None, model='gemini-1.5-flash'):
        self.api_key = api_key
        self.model_name = model
        if api_key:
            genai.configure(api_key=api_key)

    @classmethod
    def from_config(cls, config):
        return cls(api_key=config.get('GEMINI_API_KEY'), model=config.get('GEMINI_MODEL', 'gemini-1.5-flash'))

    def generate(self, prompt):
        if not self.api_key:
            raise RuntimeError('Gemini API key not configured')
        model = genai.GenerativeModel(self.model_name)
        return model.generate_content(prompt).text


def catalog_lines():
    lines = []
    for t in BASE_PACKAGE_TEMPLATES:
        lines.append('- %s: %s [%s, %s, %s-%s nights, requires %s, multiplier: %s, features: %s]' % (
            t['revenueCatId'], default_title(t), t['category'], t['durationTier'],
            t['minNights'], t['maxNights'], t['customerTierRequired'], t['baseMultiplier'],
            ', '.join(t['features'])))
    return '\n'.join(lines)


def build_prompt(text, title='', description='', base_rate=None, host_context=False):
    parts = ['You are helping a host choose booking packages from a fixed catalog.']
    if host_context:
        parts.append('The requester is a host or admin.')
    if title or description or base_rate:
        parts.append('\nPROPERTY CONTEXT:\n- Title: %s\n- Description: %s\n- Base rate: %s\n' % (
            title or 'N/A', description or 'N/A', 'R%s/night' % base_rate if base_rate else 'Unknown'))
    parts.append('Here is the catalog of packages (id = revenueCatId):\n' + catalog_lines())
    parts.append('\nUser description: "%s"\n' % text)
    parts.append(
        'Return ONLY a compact JSON object with the shape:\n'
        '{"recommendations": [{"revenueCatId": "string", "suggestedName": "string", '
        '"description": "string", "features": ["string"], "baseRate": number, '
        '"details": {"minNights": number, "maxNights": number, "multiplier": number, '
        '"category": "string", "customerTierRequired": "string"}}]}\n\n'
        'Rules:\n'
        '- Choose 1-4 packages that best match the description and duration hints.\n'
        '- For suggestedName, create a contextual name based on the property and description.\n'
        '- For features, provide 3-5 key features.\n'
        '- For addon packages suggest reasonable one-time fees; for stays start from the base rate.\n'
        "- Prefer 'pro' tier items only if the description implies hosted/concierge/luxury/experiences.\n"
        '- If unclear, include a safe default like per-night standard and weekly standard.\n'
        '- Do not include text outside JSON.'
    )
    return '\n'.join(parts)


def parse_recommendations(raw):
    start = raw.find('{')
    end = raw.rfind('}')
    json_str = raw[start:end + 1] if start >= 0 else '{}'
    parsed = json.loads(json_str)
    items = parsed.get('recommendations') if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        return []

    recommendations = []
    for item in items:
        if not isinstance(item, dict):
            continue
        base_rate = item.get('baseRate')
        recommendations.append({
            'revenueCatId': str(item.get('revenueCatId') or ''),
            'suggestedName': str(item.get('suggestedName') or ''),
            'description': str(item.get('description') or ''),
            'features': item.get('features') if isinstance(item.get('features'), list) else [],
            'baseRate': base_rate if isinstance(base_rate, (int, float)) and not isinstance(base_rate, bool) else None,
            'details': item.get('details') if isinstance(item.get('details'), dict) else {},
        })
    return recommendations


def allowed(recommendations):
    """Solo ids del catálogo, sin repetir, como mucho cuatro."""
    seen = set()
    result = []
    for rec in recommendations:
        rec_id = rec.get('revenueCatId')
        if rec_id not in KNOWN_REVENUECAT_IDS or rec_id in seen:
            continue
        seen.add(rec_id)
        result.append(rec)
    return result[:MAX_RECOMMENDATIONS]


def fallback_recommendations(base_rate=None):
    rate = effective_base_rate(base_rate)
    defaults = [
        {
            'revenueCatId': 'per_night',
            'suggestedName': 'Standard Per Night',
            'description': 'Basic overnight accommodation with essential amenities',
            'features': ['Standard accommodation', 'Basic amenities', 'Self-service'],
            'baseRate': rate,
            'details': by_revenuecat_id('per_night') or {},
        },
        {
            'revenueCatId': 'Weekly',
            'suggestedName': 'Weekly Stay',
            'description': 'Extended weekly accommodation with enhanced comfort',
            'features': ['Weekly accommodation', 'Enhanced amenities', 'Flexible check-in'],
            'baseRate': rate * 7,
            'details': by_revenuecat_id('Weekly') or {},
        },
    ]
    return [rec for rec in defaults if rec['revenueCatId'] in KNOWN_REVENUECAT_IDS]


def suggest_packages(suggester, text, post=None, base_rate=None, host_context=False):
    text = (text or '').strip()
    if not text:
        return []

    title = post.title if post is not None else ''
    description = post.description if post is not None else ''
    if base_rate is None and post is not None:
        base_rate = post.base_rate

    prompt = build_prompt(text, title, description, base_rate, host_context)
    try:
        raw = suggester.generate(prompt)
    except Exception:
        # la sugerencia es opcional: nunca rompe la petición
        log.exception('Package suggestion model call failed')
        return []

    try:
        recommendations = allowed(parse_recommendations(raw or ''))
    except (ValueError, TypeError, AttributeError):
        log.warning('Could not parse package suggestions, using defaults')
        recommendations = []

    return recommendations or fallback_recommendations(base_rate)
