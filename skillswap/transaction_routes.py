from flask import Blueprint, g, jsonify, request

from skillswap import analytics, ledger, storage, transactions
from skillswap.auth import login_required
from skillswap.utils import respond

transaction_bp = Blueprint('transactions', __name__)


@transaction_bp.route('', methods=['GET'])
@login_required
def my_transactions():
    return jsonify(transactions.get_my_transactions(g.session_token)), 200


@transaction_bp.route('/<int:transaction_id>', methods=['GET'])
@login_required
def get_transaction(transaction_id):
    data = transactions.get_transaction(g.session_token, transaction_id)
    if data is None:
        return jsonify({'message': 'Transaction not found'}), 404
    return jsonify(data), 200


@transaction_bp.route('/<int:transaction_id>/start', methods=['POST'])
@login_required
def start_transaction(transaction_id):
    return respond(transactions.start_transaction(g.session_token, transaction_id))


@transaction_bp.route('/<int:transaction_id>/confirm', methods=['POST'])
@login_required
def confirm_completion(transaction_id):
    return respond(transactions.confirm_completion(g.session_token, transaction_id))


@transaction_bp.route('/<int:transaction_id>/cancel', methods=['POST'])
@login_required
def cancel_transaction(transaction_id):
    return respond(transactions.cancel_transaction(g.session_token, transaction_id))


@transaction_bp.route('/<int:transaction_id>/dispute', methods=['POST'])
@login_required
def open_dispute(transaction_id):
    # Evidence arrives either as an uploaded file or as plain text in JSON
    file = request.files.get('evidence')
    if file:
        if not storage.allowed_file(file.filename):
            return jsonify({'success': False, 'error': 'Unsupported evidence file'}), 400
        description = request.form.get('description')
        evidence = storage.save_file(file, f"disputes/{transaction_id}")
    else:
        data = request.get_json(silent=True) or {}
        description = data.get('description')
        evidence = data.get('evidence')

    result = transactions.open_dispute(g.session_token, transaction_id, description, evidence=evidence)
    return respond(result, created=True)


@transaction_bp.route('/credits', methods=['GET'])
@login_required
def credit_info():
    return jsonify(ledger.get_credit_info(g.session_token)), 200


# Personal analytics

@transaction_bp.route('/analytics', methods=['GET'])
@login_required
def my_analytics():
    data = analytics.get_my_analytics(g.session_token)
    if data is None:
        return jsonify({'message': 'User not found'}), 404
    return jsonify(data), 200


@transaction_bp.route('/insights', methods=['GET'])
@login_required
def request_insights():
    data = analytics.get_request_insights(g.session_token)
    if data is None:
        return jsonify({'message': 'User not found'}), 404
    return jsonify(data), 200


@transaction_bp.route('/history', methods=['GET'])
@login_required
def service_history():
    return jsonify(analytics.get_service_history(g.session_token)), 200


@transaction_bp.route('/community', methods=['GET'])
@login_required
def community_comparison():
    time_range = request.args.get('range', 'all')
    if time_range not in analytics.TIME_RANGES:
        return jsonify({'message': f"Unknown time range: {time_range}"}), 400
    data = analytics.get_community_comparison(g.session_token, time_range, request.args.get('skill'))
    return jsonify(data), 200
