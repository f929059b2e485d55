from flask import Blueprint, g, jsonify, request

from skillswap import matching
from skillswap.auth import login_required
from skillswap.utils import respond

request_bp = Blueprint('requests', __name__)


REQUEST_FIELDS = ('title', 'description', 'skill_needed', 'exchange_mode', 'credit_amount', 'skill_offered')


@request_bp.route('', methods=['POST'])
@login_required
def create_request():
    data = request.get_json(silent=True) or {}
    result = matching.create_request(
        g.session_token,
        data.get('title'),
        data.get('description'),
        data.get('skill_needed'),
        data.get('exchange_mode'),
        credit_amount=data.get('credit_amount'),
        skill_offered=data.get('skill_offered'),
    )
    return respond(result, created=True)


@request_bp.route('', methods=['GET'])
def open_requests():
    return jsonify(matching.get_open_requests(request.args.get('limit', type=int))), 200


@request_bp.route('/search', methods=['GET'])
def search_requests():
    return jsonify(matching.search_requests(request.args.get('q', ''))), 200


@request_bp.route('/mine', methods=['GET'])
@login_required
def my_requests():
    return jsonify(matching.get_my_requests(g.session_token)), 200


@request_bp.route('/<int:request_id>', methods=['GET'])
def get_request(request_id):
    data = matching.get_request(request_id)
    if data is None:
        return jsonify({'message': 'Request not found'}), 404
    return jsonify(data), 200


@request_bp.route('/<int:request_id>', methods=['PUT'])
@login_required
def update_request(request_id):
    data = request.get_json(silent=True) or {}
    changes = {field: data.get(field) for field in REQUEST_FIELDS}
    return respond(matching.update_request(g.session_token, request_id, **changes))


@request_bp.route('/<int:request_id>', methods=['DELETE'])
@login_required
def cancel_request(request_id):
    if not matching.cancel_request(g.session_token, request_id):
        return jsonify({'message': 'Request could not be cancelled'}), 400
    return jsonify({'message': 'Request cancelled'}), 200


@request_bp.route('/<int:request_id>/report', methods=['POST'])
@login_required
def report_request(request_id):
    data = request.get_json(silent=True) or {}
    return respond(matching.report_request(g.session_token, request_id, data.get('reason')), created=True)


# Suggested matches

@request_bp.route('/<int:request_id>/matches', methods=['GET'])
@login_required
def suggested_matches(request_id):
    return jsonify(matching.get_suggested_matches(g.session_token, request_id)), 200


@request_bp.route('/<int:request_id>/matches/refresh', methods=['POST'])
@login_required
def refresh_matches(request_id):
    result = matching.refresh_matches(g.session_token, request_id)
    status = 200 if result['success'] else 400
    return jsonify(result), status


@request_bp.route('/matches/<int:match_id>/accept', methods=['POST'])
@login_required
def accept_match(match_id):
    return respond(matching.accept_match(g.session_token, match_id), created=True)


@request_bp.route('/matches/<int:match_id>/reject', methods=['POST'])
@login_required
def reject_match(match_id):
    if not matching.reject_match(g.session_token, match_id):
        return jsonify({'message': 'Match could not be rejected'}), 400
    return jsonify({'message': 'Match rejected'}), 200


# Negotiations

@request_bp.route('/<int:request_id>/negotiations', methods=['GET'])
@login_required
def negotiations(request_id):
    return jsonify(matching.get_negotiations(g.session_token, request_id)), 200


@request_bp.route('/matches/<int:match_id>/negotiate', methods=['POST'])
@login_required
def send_negotiation(match_id):
    data = request.get_json(silent=True) or {}
    result = matching.send_negotiation(
        g.session_token,
        match_id,
        data.get('proposed_exchange_mode'),
        proposed_credits=data.get('proposed_credits'),
        proposed_skill_offered=data.get('proposed_skill_offered'),
        message=data.get('message'),
    )
    return respond(result, created=True)


@request_bp.route('/negotiations/<int:negotiation_id>/counter', methods=['POST'])
@login_required
def counter_offer(negotiation_id):
    data = request.get_json(silent=True) or {}
    result = matching.counter_offer(
        g.session_token,
        negotiation_id,
        data.get('proposed_exchange_mode'),
        proposed_credits=data.get('proposed_credits'),
        proposed_skill_offered=data.get('proposed_skill_offered'),
        message=data.get('message'),
    )
    return respond(result, created=True)


@request_bp.route('/negotiations/<int:negotiation_id>/respond', methods=['POST'])
@login_required
def respond_to_negotiation(negotiation_id):
    data = request.get_json(silent=True) or {}
    result = matching.respond_to_negotiation(g.session_token, negotiation_id, bool(data.get('accept')))
    return respond(result)
