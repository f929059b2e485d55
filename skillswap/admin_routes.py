from functools import wraps

from flask import Blueprint, g, jsonify, request

from skillswap import admin
from skillswap.auth import login_required
from skillswap.utils import respond

admin_bp = Blueprint('admin', __name__)


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if g.role != 'admin':
            return jsonify({'message': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated


@admin_bp.route('/overview', methods=['GET'])
@admin_required
def overview():
    return jsonify(admin.get_system_overview(g.session_token)), 200


@admin_bp.route('/disputes', methods=['GET'])
@admin_required
def pending_disputes():
    return jsonify(admin.get_pending_disputes(g.session_token)), 200


@admin_bp.route('/disputes/<int:dispute_id>/resolve', methods=['POST'])
@admin_required
def resolve_dispute(dispute_id):
    data = request.get_json(silent=True) or {}
    result = admin.resolve_dispute(g.session_token, dispute_id, data.get('action'), data.get('resolution'))
    return respond(result)


@admin_bp.route('/reports', methods=['GET'])
@admin_required
def pending_reports():
    return jsonify(admin.get_pending_reports(g.session_token)), 200


@admin_bp.route('/reports/<int:report_id>/resolve', methods=['POST'])
@admin_required
def resolve_report(report_id):
    data = request.get_json(silent=True) or {}
    if not admin.resolve_report(g.session_token, report_id, data.get('action'), data.get('admin_notes')):
        return jsonify({'message': 'Report could not be resolved'}), 400
    return jsonify({'message': 'Report updated'}), 200


@admin_bp.route('/users', methods=['GET'])
@admin_required
def all_users():
    return jsonify(admin.get_all_users(g.session_token)), 200


@admin_bp.route('/users/<int:user_id>/status', methods=['POST'])
@admin_required
def set_user_status(user_id):
    data = request.get_json(silent=True) or {}
    if not admin.set_user_status(g.session_token, user_id, data.get('is_active', True)):
        return jsonify({'message': 'User status could not be changed'}), 400
    return jsonify({'message': 'User status updated'}), 200


@admin_bp.route('/users/<int:user_id>/suspend', methods=['POST'])
@admin_required
def suspend_user(user_id):
    data = request.get_json(silent=True) or {}
    return respond(admin.suspend_user(g.session_token, user_id, data.get('days'), data.get('reason')))


@admin_bp.route('/users/<int:user_id>/suspend', methods=['DELETE'])
@admin_required
def lift_suspension(user_id):
    if not admin.lift_suspension(g.session_token, user_id):
        return jsonify({'message': 'User is not suspended'}), 400
    return jsonify({'message': 'Suspension lifted'}), 200


@admin_bp.route('/reconcile', methods=['POST'])
@admin_required
def reconcile_balances():
    return respond(admin.reconcile_balances(g.session_token))
