import logging

from flask import Blueprint, g, jsonify, request

from skillswap import ledger, links, listings, profiles, skills, storage
from skillswap.auth import login_required
from skillswap.utils import respond

logger = logging.getLogger(__name__)

profile_bp = Blueprint('profile', __name__)


@profile_bp.route('/view', methods=['GET'])
@login_required
def view_profile():
    user_data = profiles.get_current_user(g.session_token)
    if user_data is None:
        return jsonify({'message': 'User not found'}), 404
    user_data['skills'] = skills.get_user_skills(g.user_id)
    return jsonify(user_data), 200


@profile_bp.route('/update', methods=['PUT'])
@login_required
def update_profile():
    logger.debug("Received request to update profile for user_id: %s", g.user_id)

    file = request.files.get('profile_picture')
    profile_picture = None
    if file:
        if not storage.allowed_file(file.filename) or storage.file_kind(file.filename) != 'image':
            return jsonify({'message': 'Profile picture must be an image'}), 400
        profile_picture = storage.save_file(file, f"users/{g.user_id}")

    profiles.update_profile(
        g.session_token,
        name=request.form.get('name'),
        bio=request.form.get('bio'),
        profile_picture=profile_picture,
    )
    return jsonify({
        'message': 'Profile updated successfully',
        'profile_picture_url': storage.get_url(profile_picture),
    }), 200


@profile_bp.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    user_data = profiles.get_user_profile(user_id)
    if user_data is None:
        return jsonify({'message': 'User not found'}), 404
    user_data['skills'] = skills.get_user_skills(user_id)
    user_data['listings'] = listings.get_user_listings(user_id)
    user_data['links'] = links.get_user_links(user_id)
    return jsonify(user_data), 200


@profile_bp.route('/<int:user_id>/report', methods=['POST'])
@login_required
def report_user(user_id):
    data = request.get_json(silent=True) or {}
    return respond(profiles.report_user(g.session_token, user_id, data.get('reason')), created=True)


@profile_bp.route('/credits', methods=['GET'])
@login_required
def get_credits():
    return jsonify(ledger.get_credit_info(g.session_token)), 200


# Skills

@profile_bp.route('/skills', methods=['POST'])
@login_required
def add_skill():
    data = request.get_json(silent=True) or {}
    return respond(skills.add_skill(g.session_token, data.get('name'), data.get('level')), created=True)


@profile_bp.route('/skills/<int:skill_id>', methods=['PUT'])
@login_required
def update_skill(skill_id):
    data = request.get_json(silent=True) or {}
    if not skills.update_skill(g.session_token, skill_id, data.get('level')):
        return jsonify({'message': 'Failed to update skill'}), 400
    return jsonify({'message': 'Skill updated'}), 200


@profile_bp.route('/skills/<int:skill_id>', methods=['DELETE'])
@login_required
def delete_skill(skill_id):
    if not skills.delete_skill(g.session_token, skill_id):
        return jsonify({'message': 'Skill not found'}), 404
    return jsonify({'message': 'Skill deleted'}), 200


@profile_bp.route('/skills/<int:skill_id>/endorse', methods=['POST'])
@login_required
def endorse_skill(skill_id):
    data = request.get_json(silent=True) or {}
    return respond(skills.endorse_skill(g.session_token, skill_id, data.get('transaction_id')))


@profile_bp.route('/<int:user_id>/skills', methods=['GET'])
def get_user_skills(user_id):
    return jsonify(skills.get_user_skills(user_id)), 200


@profile_bp.route('/skills/search', methods=['GET'])
def search_skills():
    return jsonify(skills.search_skills(request.args.get('q', ''))), 200


@profile_bp.route('/skills/all', methods=['GET'])
def all_skills():
    return jsonify(skills.get_all_unique_skills()), 200


@profile_bp.route('/search', methods=['GET'])
def search_users():
    return jsonify(skills.search_users_by_skill(request.args.get('skill', ''))), 200


# Service listings

@profile_bp.route('/listings', methods=['POST'])
@login_required
def create_listing():
    data = request.get_json(silent=True) or {}
    result = listings.create_listing(
        g.session_token,
        data.get('title'),
        data.get('description'),
        data.get('skill_required'),
        data.get('exchange_mode'),
        data.get('credit_amount'),
    )
    return respond(result, created=True)


@profile_bp.route('/listings/<int:listing_id>', methods=['PUT'])
@login_required
def update_listing(listing_id):
    data = request.get_json(silent=True) or {}
    fields = ('title', 'description', 'skill_required', 'exchange_mode', 'credit_amount', 'is_active')
    return respond(listings.update_listing(g.session_token, listing_id, **{f: data.get(f) for f in fields}))


@profile_bp.route('/listings/<int:listing_id>', methods=['DELETE'])
@login_required
def delete_listing(listing_id):
    if not listings.delete_listing(g.session_token, listing_id):
        return jsonify({'message': 'Listing not found'}), 404
    return jsonify({'message': 'Listing deleted'}), 200


@profile_bp.route('/listings', methods=['GET'])
def active_listings():
    return jsonify(listings.get_active_listings(request.args.get('limit', type=int))), 200


@profile_bp.route('/listings/search', methods=['GET'])
def search_listings():
    return jsonify(listings.search_listings(request.args.get('q', ''))), 200


# Portfolio

@profile_bp.route('/portfolio', methods=['POST'])
@login_required
def add_portfolio_item():
    file = request.files.get('file')
    if not file or not storage.allowed_file(file.filename):
        return jsonify({'success': False, 'error': 'A supported file is required'}), 400

    file_id = storage.save_file(file, f"portfolio/{g.user_id}")
    result = profiles.add_portfolio_item(
        g.session_token,
        request.form.get('title'),
        file_id,
        storage.file_kind(file.filename),
        description=request.form.get('description'),
    )
    return respond(result, created=True)


@profile_bp.route('/portfolio/<int:item_id>', methods=['PUT'])
@login_required
def update_portfolio_item(item_id):
    data = request.get_json(silent=True) or {}
    if not profiles.update_portfolio_item(g.session_token, item_id, data.get('title'), data.get('description')):
        return jsonify({'message': 'Portfolio item not found'}), 404
    return jsonify({'message': 'Portfolio item updated'}), 200


@profile_bp.route('/portfolio/<int:item_id>', methods=['DELETE'])
@login_required
def delete_portfolio_item(item_id):
    if not profiles.delete_portfolio_item(g.session_token, item_id):
        return jsonify({'message': 'Portfolio item not found'}), 404
    return jsonify({'message': 'Portfolio item deleted'}), 200


@profile_bp.route('/<int:user_id>/portfolio', methods=['GET'])
def get_portfolio(user_id):
    return jsonify(profiles.get_user_portfolio(user_id)), 200


# External links

@profile_bp.route('/<int:user_id>/links', methods=['GET'])
def get_links(user_id):
    return jsonify(links.get_user_links(user_id)), 200


@profile_bp.route('/links', methods=['POST'])
@login_required
def add_link():
    data = request.get_json(silent=True) or {}
    return respond(links.add_link(g.session_token, data.get('platform'), data.get('url')), created=True)


@profile_bp.route('/links/<int:link_id>', methods=['PUT'])
@login_required
def update_link(link_id):
    data = request.get_json(silent=True) or {}
    return respond(links.update_link(g.session_token, link_id, data.get('url')))


@profile_bp.route('/links/<int:link_id>', methods=['DELETE'])
@login_required
def delete_link(link_id):
    return respond(links.delete_link(g.session_token, link_id))
