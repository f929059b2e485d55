import secrets
import string

from flask import jsonify

from skillswap import bcrypt

TOKEN_ALPHABET = string.ascii_letters + string.digits
TOKEN_LENGTH = 64

INVALID_SESSION = "Invalid session"
UNAUTHORIZED = "Unauthorized"


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def check_password(password_hash, password):
    return bcrypt.check_password_hash(password_hash, password)


def generate_session_token():
    """Opaque 64 character session token."""
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def is_credit_amount(value):
    """Whole, positive number of credits. JSON booleans and fractions are rejected."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def ok(**data):
    return {'success': True, **data}


def fail(error):
    return {'success': False, 'error': error}


def status_for(result, created=False):
    """Map an operation result onto an HTTP status code."""
    if result.get('success'):
        return 201 if created else 200
    error = result.get('error', '')
    if error == INVALID_SESSION:
        return 401
    if error == UNAUTHORIZED or error.startswith('Only ') or error.startswith('Administrators '):
        return 403
    if error.endswith('not found'):
        return 404
    return 400


def respond(result, created=False):
    return jsonify(result), status_for(result, created=created)


def bearer_token(request):
    header = request.headers.get('Authorization', '')
    if not header:
        return None
    return header.split("Bearer ")[-1].strip() or None
