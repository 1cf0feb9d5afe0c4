import re
import hmac
import hashlib
import uuid
import logging
import secrets
import datetime
from urllib.parse import quote

import bcrypt
import jwt
from flask import current_app
from flask_mail import Message

from plek import db, mail
from plek.errors import Conflict, NotFound, Unauthorized, UpstreamError, ValidationError
from plek.models import Role, User
from plek.session import issue_session_token

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 8


def is_valid_email(email):
    return bool(email) and bool(EMAIL_RE.match(email))


def hash_password(password):
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=8)).decode('utf-8')


def check_password(password, hashed):
    return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))


def random_password():
    return str(uuid.uuid4())


def six_digit_code():
    return str(100000 + secrets.randbelow(900000))


def find_user(email):
    return User.query.filter_by(email=email).first()


def register_user(name, email, password):
    if not is_valid_email(email):
        raise ValidationError('A valid email is required')
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError('Password must be at least %d characters' % MIN_PASSWORD_LENGTH)
    if find_user(email):
        raise Conflict('Email already registered')

    user = User(name=name or email.split('@')[0], email=email, password=hash_password(password))
    user.set_roles([Role.CUSTOMER])
    db.session.add(user)
    db.session.commit()
    return user


def login(email, password):
    """Login con contraseña. Devuelve (usuario, token de sesión)."""
    if not email or not password:
        raise ValidationError('Email and password are required')

    user = find_user(email)
    if not user or not check_password(password, user.password):
        raise Unauthorized('Invalid email or password')
    return user, issue_session_token(user)


### MAGIC LINK / OTP ###

# Dos credenciales distintas: el enlace solo viaja por correo y el requestId
# que recibe el cliente solo guarda un HMAC del código.
LINK_AUDIENCE = 'plek:magic-link'
CODE_AUDIENCE = 'plek:magic-code'
INVALID_REQUEST = 'Invalid or expired request'


def _secret():
    return current_app.config['JWT_SECRET_KEY']


def code_digest(email, code):
    message = '%s:%s' % (email.strip().lower(), str(code).strip())
    return hmac.new(_secret().encode('utf-8'), message.encode('utf-8'), hashlib.sha256).hexdigest()


def _sign(audience, **claims):
    minutes = current_app.config['MAGIC_LINK_MINUTES']
    now = datetime.datetime.now(datetime.timezone.utc)
    claims.update({
        'type': 'magic',
        'purpose': 'login',
        'aud': audience,
        'jti': secrets.token_hex(8),
        'iat': now,
        'exp': now + datetime.timedelta(minutes=minutes),
    })
    return jwt.encode(claims, _secret(), algorithm='HS256')


def sign_link_token(email):
    return _sign(LINK_AUDIENCE, email=email)


def sign_code_request(email, code):
    return _sign(CODE_AUDIENCE, email=email, codeHash=code_digest(email, code))


def _read(token, audience):
    """Verifica firma, audiencia y caducidad. Cualquier fallo da el mismo error genérico."""
    try:
        claims = jwt.decode(token, _secret(), algorithms=['HS256'], audience=audience)
    except jwt.PyJWTError:
        raise ValidationError(INVALID_REQUEST)
    if claims.get('type') != 'magic' or not claims.get('email'):
        raise ValidationError(INVALID_REQUEST)
    return claims


def read_link_token(token):
    return _read(token, LINK_AUDIENCE)


def read_code_request(request_id):
    return _read(request_id, CODE_AUDIENCE)


def ensure_user(email):
    user = find_user(email)
    if user:
        return user
    user = User(name=email.split('@')[0], email=email, password=hash_password(random_password()))
    user.set_roles([Role.GUEST])
    db.session.add(user)
    db.session.commit()
    log.info('Created guest user for magic link request (user %s)', user.id)
    return user


def send_magic_email(email, link, code, minutes):
    msg = Message(
        subject='Your login link and code',
        recipients=[email],
        body='Sign in: %s\nOr use code: %s\nThis link and code expire in %d minutes.' % (link, code, minutes),
        html=(
            '<h2>Sign in to Simple Plek</h2>'
            '<p>Click the magic link below to sign in:</p>'
            '<p><a href="%s">Sign in</a></p><hr />'
            '<p>Or enter this 6-digit code: <strong style="font-family:monospace;">%s</strong></p>'
            '<p>This link and code expire in %d minutes.</p>' % (link, code, minutes)
        ),
    )
    try:
        mail.send(msg)
    except Exception:
        # el login no debe fallar por el correo
        log.warning('Magic email send failed (continuing)', exc_info=True)


def request_magic_link(email, base_url):
    email = (email or '').strip()
    if not is_valid_email(email):
        raise ValidationError('A valid email is required')

    ensure_user(email)

    code = six_digit_code()
    minutes = current_app.config['MAGIC_LINK_MINUTES']
    link_token = sign_link_token(email)
    link = '%s/api/authRequests/verify-link?token=%s' % (base_url.rstrip('/'), quote(link_token, safe=''))

    send_magic_email(email, link, code, minutes)

    # el enlace y el código solo van en el correo
    return {
        'authRequestId': sign_code_request(email, code),
        'email': email,
        'expiresInMinutes': minutes,
    }


def _session_for(email):
    user = find_user(email)
    if not user:
        raise NotFound('User not found')

    # Sin login sin contraseña: se rota la contraseña y se hace un login normal
    temp_password = random_password()
    user.password = hash_password(temp_password)
    db.session.commit()

    user, token = login(email, temp_password)
    if not token:
        raise UpstreamError('Failed to generate session')
    return user, token


def verify_code(email, code, request_id):
    if not email or not code or not request_id:
        raise ValidationError('Missing email, otp, or requestId')

    claims = read_code_request(request_id)
    email_ok = hmac.compare_digest(str(claims['email']).lower(), str(email).strip().lower())
    code_ok = hmac.compare_digest(str(claims.get('codeHash', '')), code_digest(claims['email'], code))
    if not (email_ok and code_ok):
        raise ValidationError(INVALID_REQUEST)

    return _session_for(claims['email'])


def verify_link(token):
    if not token:
        raise ValidationError('Missing token')
    claims = read_link_token(token)
    return _session_for(claims['email'])
