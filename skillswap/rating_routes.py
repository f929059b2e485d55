from flask import Blueprint, g, jsonify, request

from skillswap import ratings
from skillswap.auth import login_required
from skillswap.utils import respond

rating_bp = Blueprint('ratings', __name__)


@rating_bp.route('/transactions/<int:transaction_id>', methods=['POST'])
@login_required
def submit_rating(transaction_id):
    data = request.get_json(silent=True) or {}
    result = ratings.submit_rating(g.session_token, transaction_id, data.get('rating'), data.get('comment'))
    created = result['success'] and not result.get('updated')
    return respond(result, created=created)


@rating_bp.route('/transactions/<int:transaction_id>/can_rate', methods=['GET'])
@login_required
def can_rate(transaction_id):
    return jsonify(ratings.can_rate(g.session_token, transaction_id)), 200


@rating_bp.route('/<int:rating_id>/respond', methods=['POST'])
@login_required
def respond_to_rating(rating_id):
    data = request.get_json(silent=True) or {}
    return respond(ratings.respond_to_rating(g.session_token, rating_id, data.get('response')))


@rating_bp.route('/<int:rating_id>/report', methods=['POST'])
@login_required
def report_rating(rating_id):
    data = request.get_json(silent=True) or {}
    return respond(ratings.report_rating(g.session_token, rating_id, data.get('reason')))


@rating_bp.route('/users/<int:user_id>', methods=['GET'])
def user_ratings(user_id):
    return jsonify(ratings.get_user_ratings(user_id)), 200


@rating_bp.route('/users/<int:user_id>/reputation', methods=['GET'])
def reputation(user_id):
    return jsonify(ratings.get_reputation(user_id)), 200


@rating_bp.route('/received', methods=['GET'])
@login_required
def received_ratings():
    return jsonify(ratings.get_my_received_ratings(g.session_token)), 200
