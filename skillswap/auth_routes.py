from flask import Blueprint, g, jsonify, request

from skillswap import auth
from skillswap.auth import login_required
from skillswap.utils import bearer_token, respond

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    result = auth.register(data.get('email'), data.get('password'), data.get('name'))
    return respond(result, created=True)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    result = auth.login(data.get('email'), data.get('password'))
    if not result['success']:
        return jsonify(result), 401
    return jsonify(result), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    auth.logout(bearer_token(request))
    return jsonify({'message': 'Logged out'}), 200


@auth_bp.route('/session', methods=['GET'])
def validate():
    info = auth.validate_session(bearer_token(request))
    if info is None:
        return jsonify({'valid': False}), 401
    return jsonify({'valid': True, 'user_id': info.user_id, 'role': info.role}), 200


@auth_bp.route('/change_password', methods=['POST'])
@login_required
def change_password():
    data = request.get_json(silent=True) or {}
    result = auth.change_password(g.session_token, data.get('current_password'), data.get('new_password'))
    return respond(result)
