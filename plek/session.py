from datetime import timedelta

from flask import current_app, jsonify
from flask_jwt_extended import (create_access_token, get_jwt_identity, set_access_cookies,
                                unset_jwt_cookies, verify_jwt_in_request)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from plek import db
from plek.errors import Forbidden, Unauthorized
from plek.models import User


def register_jwt_callbacks(jwt):

    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        return db.session.get(User, int(jwt_data['sub']))

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({'error': 'Authentication required'}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({'error': 'Invalid session'}), 401

    @jwt.expired_token_loader
    def expired_token(_jwt_header, _jwt_data):
        return jsonify({'error': 'Session expired'}), 401

    @jwt.user_lookup_error_loader
    def unknown_user(_jwt_header, _jwt_data):
        return jsonify({'error': 'User not found'}), 401


def issue_session_token(user):
    return create_access_token(
        identity=str(user.id),
        additional_claims={'roles': list(user.roles or [])},
    )


def set_session_cookie(response, token):
    max_age = int(timedelta(days=current_app.config['SESSION_DAYS']).total_seconds())
    set_access_cookies(response, token, max_age=max_age)
    return response


def clear_session_cookie(response):
    unset_jwt_cookies(response)
    return response


def current_principal():
    """Usuario de la sesión, o None si la petición es anónima."""
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError):
        # token inválido o caducado: se trata como anónimo
        return None
    identity = get_jwt_identity()
    if identity is None:
        return None
    return db.session.get(User, int(identity))


def require_principal():
    user = current_principal()
    if user is None:
        raise Unauthorized('Unauthorized')
    return user


def require(predicate, message='Insufficient permissions'):
    user = require_principal()
    if not predicate(user):
        raise Forbidden(message)
    return user
