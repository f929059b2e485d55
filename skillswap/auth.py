import logging
from collections import namedtuple
from datetime import timedelta
from functools import wraps

from flask import current_app, g, jsonify, request

from skillswap import db
from skillswap import ledger
from skillswap.models import Session, User, utcnow
from skillswap.utils import (
    INVALID_SESSION,
    bearer_token,
    check_password,
    fail,
    generate_session_token,
    hash_password,
    ok,
)

logger = logging.getLogger(__name__)

SessionInfo = namedtuple('SessionInfo', ['user_id', 'role'])


def create_session(user):
    """Create a session row with a fixed absolute expiry."""
    ttl = timedelta(days=current_app.config['SESSION_TTL_DAYS'])
    session = Session(
        user_id=user.id,
        token=generate_session_token(),
        expires_at=utcnow() + ttl,
    )
    db.session.add(session)
    return session.token


def validate_session(token):
    """
    Resolve a session token to (user_id, role).
    Returns None for unknown or expired sessions and for inactive or suspended users.
    """
    if not token:
        return None

    session = Session.query.filter_by(token=token).first()
    if session is None or session.expires_at < utcnow():
        return None

    user = db.session.get(User, session.user_id)
    if user is None or not user.is_active or user.is_suspended():
        return None

    return SessionInfo(user.id, user.role)


def current_user(token):
    """The active user behind a session token, or None."""
    info = validate_session(token)
    if info is None:
        return None
    return db.session.get(User, info.user_id)


def register(email, password, name):
    email = (email or '').strip().lower()
    name = (name or '').strip()
    if not email or not password or not name:
        return fail("Email, password and name are required")

    if User.query.filter_by(email=email).first():
        return fail("Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
        credits=0,
        role='user',
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()

    ledger.credit(user, current_app.config['STARTING_CREDITS'], 'initial', "Welcome bonus credits")
    token = create_session(user)
    db.session.commit()

    logger.info("Registered user %s", user.id)
    return ok(token=token, user_id=user.id)


def login(email, password):
    email = (email or '').strip().lower()
    user = User.query.filter_by(email=email).first()

    if user is None:
        return fail("Invalid email or password")

    if not user.is_active:
        return fail("Account is deactivated")

    if not check_password(user.password_hash, password or ''):
        return fail("Invalid email or password")

    if user.is_suspended():
        return fail("Account is suspended")

    token = create_session(user)
    db.session.commit()
    logger.debug("User %s logged in", user.id)
    return ok(token=token, user_id=user.id, role=user.role)


def logout(token):
    session = Session.query.filter_by(token=token).first() if token else None
    if session is not None:
        db.session.delete(session)
        db.session.commit()
    return True


def change_password(token, current_password, new_password):
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if not check_password(user.password_hash, current_password or ''):
        return fail("Current password is incorrect")

    if not new_password:
        return fail("New password is required")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    return ok()


def promote_to_admin(email):
    """Bootstrap the first administrator. Refused once any admin exists."""
    if User.query.filter_by(role='admin').first():
        return fail("Admin already exists")

    user = User.query.filter_by(email=(email or '').strip().lower()).first()
    if user is None:
        return fail("User not found")

    user.role = 'admin'
    db.session.commit()
    logger.info("Promoted user %s to admin", user.id)
    return ok()


def create_admin(email, password, name):
    """Create a fresh administrator account with the admin credit grant."""
    email = (email or '').strip().lower()
    if not email or not password or not name:
        return fail("Email, password and name are required")

    if User.query.filter_by(email=email).first():
        return fail("Email already registered")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name.strip(),
        credits=0,
        role='admin',
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()

    ledger.credit(user, current_app.config['ADMIN_STARTING_CREDITS'], 'initial', "Initial admin credits")
    db.session.commit()
    logger.info("Created admin %s", user.id)
    return ok(user_id=user.id)


def login_required(f):
    """
    Decorator to protect endpoints with session authentication.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token(request)
        if not token:
            return jsonify({'message': 'Token is missing!'}), 401

        info = validate_session(token)
        if info is None:
            return jsonify({'message': 'Invalid or expired token!'}), 401

        # Attach the session to the request context for downstream use
        g.session_token = token
        g.user_id = info.user_id
        g.role = info.role
        return f(*args, **kwargs)
    return decorated_function
