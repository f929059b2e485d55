"""Service requests, suggested matches and negotiations.

Request lifecycle: open -> matched -> in_progress -> completed | cancelled.
Accepting a suggested match (or a negotiated offer on it) moves the request
to matched and creates its transaction; rejecting a match leaves the request
open for the other candidates.
"""
import logging

from sqlalchemy import or_

from skillswap import db
from skillswap.auth import current_user, validate_session
from skillswap.models import (
    Negotiation,
    Rating,
    Report,
    ServiceRequest,
    Skill,
    SuggestedMatch,
    User,
)
from skillswap.notifications import notify
from skillswap.ratings import average
from skillswap.skills import normalize_skill
from skillswap.transactions import create_transaction
from skillswap.utils import INVALID_SESSION, UNAUTHORIZED, fail, is_credit_amount, ok

logger = logging.getLogger(__name__)

EXCHANGE_MODES = ('credit', 'skill_swap')
LEVEL_SCORES = {'beginner': 50, 'intermediate': 70, 'expert': 90}
ENDORSEMENT_POINTS = 2
MAX_ENDORSEMENT_BONUS = 10
DEFAULT_LIMIT = 50


def match_score(level, endorsements):
    """Base score for the skill level plus a capped endorsement bonus."""
    base = LEVEL_SCORES.get(level, LEVEL_SCORES['beginner'])
    return base + min(endorsements * ENDORSEMENT_POINTS, MAX_ENDORSEMENT_BONUS)


def validate_terms(exchange_mode, credit_amount, skill_offered):
    """Return an error message for incomplete exchange terms, or None."""
    if exchange_mode not in EXCHANGE_MODES:
        return "Invalid exchange mode"
    if exchange_mode == 'credit':
        if credit_amount in (None, 0):
            return "Credit amount is required"
        if not is_credit_amount(credit_amount):
            return "Credit amount must be a positive whole number"
    if exchange_mode == 'skill_swap' and not skill_offered:
        return "Skill to offer is required for skill swap"
    return None


def request_to_dict(request, requester_name=None):
    return {
        'id': request.id,
        'requester_id': request.requester_id,
        'requester_name': requester_name or (request.requester.name if request.requester else "Unknown User"),
        'title': request.title,
        'description': request.description,
        'skill_needed': request.skill_needed,
        'exchange_mode': request.exchange_mode,
        'credit_amount': request.credit_amount,
        'skill_offered': request.skill_offered,
        'status': request.status,
        'matched_provider_id': request.matched_provider_id,
        'created_at': request.created_at.isoformat(),
    }


def negotiation_to_dict(negotiation):
    sender = db.session.get(User, negotiation.initiator_id)
    return {
        'id': negotiation.id,
        'request_id': negotiation.request_id,
        'match_id': negotiation.match_id,
        'sender_id': negotiation.initiator_id,
        'sender_name': sender.name if sender else "Unknown",
        'initiator_role': negotiation.initiator_role,
        'proposed_exchange_mode': negotiation.proposed_exchange_mode,
        'proposed_credits': negotiation.proposed_credits,
        'proposed_skill_offered': negotiation.proposed_skill_offered,
        'message': negotiation.message,
        'status': negotiation.status,
        'created_at': negotiation.created_at.isoformat(),
    }


# Match generation

def generate_matches(request):
    """
    Suggest every active provider with the needed skill who is not already
    suggested for this request. Returns the number of new suggestions.
    """
    existing = {m.provider_id for m in SuggestedMatch.query.filter_by(request_id=request.id).all()}

    candidates = (
        db.session.query(Skill)
        .join(User, User.id == Skill.user_id)
        .filter(
            Skill.name == request.skill_needed,
            User.is_active.is_(True),
            User.role != 'admin',
            User.id != request.requester_id,
        )
        .all()
    )

    created = 0
    for skill in candidates:
        if skill.user_id in existing:
            continue
        db.session.add(SuggestedMatch(
            request_id=request.id,
            provider_id=skill.user_id,
            match_score=match_score(skill.level, skill.endorsements),
            status='pending',
        ))
        existing.add(skill.user_id)
        created += 1

    if created:
        plural = "s" if created > 1 else ""
        notify(
            request.requester_id,
            'match_found',
            "Matches Found!",
            f"We found {created} new potential provider{plural} for \"{request.title}\".",
            related_id=request.id,
        )
        logger.debug("Suggested %d providers for request %s", created, request.id)

    return created


def find_new_matches_for_open_requests():
    """Background pass over every open request."""
    total = 0
    for request in ServiceRequest.query.filter_by(status='open').all():
        total += generate_matches(request)
    db.session.commit()
    logger.info("Background matching created %d suggestions", total)
    return total


def refresh_matches(token, request_id):
    info = validate_session(token)
    if info is None:
        return {'success': False, 'new_matches_count': 0}

    request = db.session.get(ServiceRequest, request_id)
    if request is None or request.requester_id != info.user_id:
        return {'success': False, 'new_matches_count': 0}

    if request.status != 'open':
        return {'success': True, 'new_matches_count': 0}

    created = generate_matches(request)
    db.session.commit()
    return {'success': True, 'new_matches_count': created}


# Requests

def create_request(token, title, description, skill_needed, exchange_mode, credit_amount=None, skill_offered=None):
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    # Admins cannot use platform features
    if user.is_admin:
        return fail("Administrators cannot create service requests")

    if not title or not description or not normalize_skill(skill_needed):
        return fail("Title, description and skill needed are required")

    error = validate_terms(exchange_mode, credit_amount, skill_offered)
    if error:
        return fail(error)

    if exchange_mode == 'credit' and user.credits < credit_amount:
        return fail("Insufficient credits")

    request = ServiceRequest(
        requester_id=user.id,
        title=title,
        description=description,
        skill_needed=normalize_skill(skill_needed),
        exchange_mode=exchange_mode,
        credit_amount=credit_amount if exchange_mode == 'credit' else None,
        skill_offered=normalize_skill(skill_offered) if exchange_mode == 'skill_swap' else None,
        status='open',
        is_reported=False,
    )
    db.session.add(request)
    db.session.flush()

    matches_found = generate_matches(request)
    db.session.commit()

    logger.info("Request %s created by user %s", request.id, user.id)
    return ok(request_id=request.id, matches_found=matches_found)


def update_request(token, request_id, **changes):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    request = db.session.get(ServiceRequest, request_id)
    if request is None:
        return fail("Request not found")

    if request.requester_id != info.user_id:
        return fail("Only the requester can edit this request")

    if request.status != 'open':
        return fail("Can only edit open requests")

    updates = {k: v for k, v in changes.items() if v is not None}
    if not updates:
        return fail("No changes to update")

    mode = updates.get('exchange_mode', request.exchange_mode)
    credits = updates.get('credit_amount', request.credit_amount)
    skill_offered = updates.get('skill_offered', request.skill_offered)
    error = validate_terms(mode, credits, skill_offered)
    if error:
        return fail(error)

    for field in ('title', 'description'):
        if field in updates:
            setattr(request, field, updates[field])
    if 'skill_needed' in updates:
        request.skill_needed = normalize_skill(updates['skill_needed'])
    request.exchange_mode = mode
    request.credit_amount = credits if mode == 'credit' else None
    request.skill_offered = normalize_skill(skill_offered) if mode == 'skill_swap' else None

    db.session.commit()
    return ok()


def _expire_pending_negotiations(request_id, keep_id=None):
    query = Negotiation.query.filter_by(request_id=request_id, status='pending')
    for negotiation in query.all():
        if negotiation.id != keep_id:
            negotiation.status = 'expired'


def cancel_request(token, request_id):
    info = validate_session(token)
    if info is None:
        return False

    request = db.session.get(ServiceRequest, request_id)
    if request is None or request.requester_id != info.user_id:
        return False
    if request.status != 'open':
        return False

    SuggestedMatch.query.filter_by(request_id=request.id, status='pending').update(
        {'status': 'rejected'}, synchronize_session=False
    )
    _expire_pending_negotiations(request.id)
    request.status = 'cancelled'
    db.session.commit()
    return True


def get_open_requests(limit=None):
    requests = (
        ServiceRequest.query.filter_by(status='open', is_reported=False)
        .order_by(ServiceRequest.id.desc())
        .limit(limit or DEFAULT_LIMIT)
        .all()
    )
    return [request_to_dict(r) for r in requests]


def get_request(request_id):
    request = db.session.get(ServiceRequest, request_id)
    if request is None:
        return None
    return request_to_dict(request)


def get_my_requests(token):
    info = validate_session(token)
    if info is None:
        return []

    requests = ServiceRequest.query.filter_by(requester_id=info.user_id).order_by(ServiceRequest.id.desc()).all()
    results = []
    for request in requests:
        data = request_to_dict(request)
        data['pending_matches'] = SuggestedMatch.query.filter_by(request_id=request.id, status='pending').count()
        results.append(data)
    return results


def search_requests(query):
    term = (query or '').strip()
    requests = (
        ServiceRequest.query.filter(
            ServiceRequest.status == 'open',
            ServiceRequest.is_reported.is_(False),
            or_(
                ServiceRequest.title.ilike(f"%{term}%"),
                ServiceRequest.description.ilike(f"%{term}%"),
                ServiceRequest.skill_needed.ilike(f"%{term}%"),
            ),
        )
        .order_by(ServiceRequest.id.desc())
        .all()
    )
    return [request_to_dict(r) for r in requests]


def report_request(token, request_id, reason):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    request = db.session.get(ServiceRequest, request_id)
    if request is None:
        return fail("Request not found")

    if not reason:
        return fail("A reason is required")

    db.session.add(Report(reporter_id=info.user_id, report_type='request', target_id=request.id, reason=reason))
    request.is_reported = True
    db.session.commit()
    return ok()


# Suggested matches

def get_suggested_matches(token, request_id):
    info = validate_session(token)
    if info is None:
        return []

    request = db.session.get(ServiceRequest, request_id)
    if request is None or request.requester_id != info.user_id:
        return []

    matches = SuggestedMatch.query.filter_by(request_id=request.id, status='pending').all()

    results = []
    for match in matches:
        skill = Skill.query.filter_by(user_id=match.provider_id, name=request.skill_needed).first()
        provider_ratings = [
            r.rating for r in Rating.query.filter_by(ratee_id=match.provider_id, rater_role='requester').all()
        ]
        results.append({
            'id': match.id,
            'provider_id': match.provider_id,
            'provider_name': match.provider.name if match.provider else "Unknown",
            'match_score': match.match_score,
            'skill_level': skill.level if skill else 'beginner',
            'endorsements': skill.endorsements if skill else 0,
            'provider_rating': average(provider_ratings),
        })

    return sorted(results, key=lambda m: m['match_score'], reverse=True)


def _close_matching(request, match, keep_negotiation_id=None):
    """Accept one match and settle every competing suggestion and offer."""
    match.status = 'accepted'
    SuggestedMatch.query.filter(
        SuggestedMatch.request_id == request.id,
        SuggestedMatch.id != match.id,
        SuggestedMatch.status == 'pending',
    ).update({'status': 'rejected'}, synchronize_session=False)
    _expire_pending_negotiations(request.id, keep_id=keep_negotiation_id)

    request.status = 'matched'
    request.matched_provider_id = match.provider_id


def accept_match(token, match_id):
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if user.is_admin:
        return fail("Administrators cannot participate in exchanges")

    match = db.session.get(SuggestedMatch, match_id)
    if match is None or match.status != 'pending':
        return fail("Match not found or already processed")

    request = db.session.get(ServiceRequest, match.request_id)
    if request is None or request.requester_id != user.id:
        return fail(UNAUTHORIZED)

    if request.status != 'open':
        return fail("Request is no longer open")

    if request.exchange_mode == 'credit' and user.credits < (request.credit_amount or 0):
        return fail("Insufficient credits")

    _close_matching(request, match)
    transaction = create_transaction(
        request,
        provider_id=match.provider_id,
        match_id=match.id,
        exchange_mode=request.exchange_mode,
        credit_amount=request.credit_amount,
        skill_offered=request.skill_offered,
    )

    notify(
        match.provider_id,
        'match_accepted',
        "You've been matched!",
        f"Your skills have been matched to a request: {request.title}",
        related_id=transaction.id,
    )
    db.session.commit()

    logger.info("Match %s accepted for request %s", match.id, request.id)
    return ok(transaction_id=transaction.id)


def reject_match(token, match_id):
    info = validate_session(token)
    if info is None:
        return False

    match = db.session.get(SuggestedMatch, match_id)
    if match is None or match.status != 'pending':
        return False

    request = db.session.get(ServiceRequest, match.request_id)
    if request is None or request.requester_id != info.user_id:
        return False

    match.status = 'rejected'
    Negotiation.query.filter_by(match_id=match.id, status='pending').update(
        {'status': 'expired'}, synchronize_session=False
    )
    notify(
        match.provider_id,
        'match_rejected',
        "Match Declined",
        f"The requester chose another provider for: {request.title}",
        related_id=request.id,
    )
    db.session.commit()
    return True


# Negotiations

def _proposal(proposed_exchange_mode, proposed_credits, proposed_skill_offered):
    return {
        'proposed_exchange_mode': proposed_exchange_mode,
        'proposed_credits': proposed_credits if proposed_exchange_mode == 'credit' else None,
        'proposed_skill_offered': (
            normalize_skill(proposed_skill_offered) if proposed_exchange_mode == 'skill_swap' else None
        ),
    }


def send_negotiation(token, match_id, proposed_exchange_mode, proposed_credits=None,
                     proposed_skill_offered=None, message=None):
    """The requester proposes different terms on a pending match."""
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if user.is_admin:
        return fail("Administrators cannot participate in exchanges")

    match = db.session.get(SuggestedMatch, match_id)
    if match is None or match.status != 'pending':
        return fail("Match not found or already processed")

    request = db.session.get(ServiceRequest, match.request_id)
    if request is None:
        return fail("Request not found")

    if request.requester_id != user.id:
        return fail("Only the requester can send counter-offers")

    if request.status != 'open':
        return fail("Request is no longer open")

    error = validate_terms(proposed_exchange_mode, proposed_credits, proposed_skill_offered)
    if error:
        return fail(error)

    if Negotiation.query.filter_by(match_id=match.id, status='pending').first():
        return fail("A pending negotiation already exists for this match")

    negotiation = Negotiation(
        request_id=request.id,
        match_id=match.id,
        requester_id=user.id,
        provider_id=match.provider_id,
        initiator_role='requester',
        message=message,
        status='pending',
        **_proposal(proposed_exchange_mode, proposed_credits, proposed_skill_offered),
    )
    db.session.add(negotiation)
    db.session.flush()

    notify(
        match.provider_id,
        'negotiation_received',
        "Counter-Offer Received",
        f"You received a counter-offer for: {request.title}",
        related_id=request.id,
    )
    db.session.commit()
    return ok(negotiation_id=negotiation.id)


def counter_offer(token, negotiation_id, proposed_exchange_mode, proposed_credits=None,
                  proposed_skill_offered=None, message=None):
    """
    The recipient of a pending offer answers with new terms. The answered
    offer is marked rejected and the new one becomes the pending offer.
    """
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    original = db.session.get(Negotiation, negotiation_id)
    if original is None or original.status != 'pending':
        return fail("Negotiation not found or already processed")

    if original.recipient_id != info.user_id:
        return fail("Only the recipient can send a counter-offer")

    request = db.session.get(ServiceRequest, original.request_id)
    if request is None:
        return fail("Request not found")

    if request.status != 'open':
        original.status = 'expired'
        db.session.commit()
        return fail("Request is no longer open")

    error = validate_terms(proposed_exchange_mode, proposed_credits, proposed_skill_offered)
    if error:
        return fail(error)

    original.status = 'rejected'
    initiator_role = 'provider' if original.initiator_role == 'requester' else 'requester'
    negotiation = Negotiation(
        request_id=original.request_id,
        match_id=original.match_id,
        requester_id=original.requester_id,
        provider_id=original.provider_id,
        initiator_role=initiator_role,
        message=message,
        status='pending',
        **_proposal(proposed_exchange_mode, proposed_credits, proposed_skill_offered),
    )
    db.session.add(negotiation)
    db.session.flush()

    sender = "Provider" if initiator_role == 'provider' else "Requester"
    notify(
        original.initiator_id,
        'negotiation_received',
        "Counter-Offer Received",
        f"{sender} sent a counter-offer for: {request.title}",
        related_id=request.id,
    )
    db.session.commit()
    return ok(negotiation_id=negotiation.id)


def respond_to_negotiation(token, negotiation_id, accept):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    negotiation = db.session.get(Negotiation, negotiation_id)
    if negotiation is None or negotiation.status != 'pending':
        return fail("Negotiation not found or already processed")

    request = db.session.get(ServiceRequest, negotiation.request_id)
    if request is None:
        return fail("Request not found")

    if negotiation.recipient_id != info.user_id:
        return fail("Only the recipient can respond to this negotiation")

    if not accept:
        negotiation.status = 'rejected'
        notify(
            negotiation.initiator_id,
            'system',
            "Counter-Offer Declined",
            f"Your counter-offer for \"{request.title}\" was declined.",
            related_id=request.id,
        )
        db.session.commit()
        return ok(transaction_id=None)

    match = db.session.get(SuggestedMatch, negotiation.match_id)
    if request.status != 'open' or match is None or match.status != 'pending':
        negotiation.status = 'expired'
        db.session.commit()
        return fail("Request is no longer open")

    requester = db.session.get(User, negotiation.requester_id)
    if negotiation.proposed_exchange_mode == 'credit' and requester.credits < negotiation.proposed_credits:
        return fail("Requester has insufficient credits")

    negotiation.status = 'accepted'
    _close_matching(request, match, keep_negotiation_id=negotiation.id)
    transaction = create_transaction(
        request,
        provider_id=negotiation.provider_id,
        match_id=match.id,
        exchange_mode=negotiation.proposed_exchange_mode,
        credit_amount=negotiation.proposed_credits,
        skill_offered=negotiation.proposed_skill_offered,
    )

    notify(
        negotiation.initiator_id,
        'match_accepted',
        "Counter-Offer Accepted!",
        f"Your counter-offer for \"{request.title}\" was accepted!",
        related_id=transaction.id,
    )
    db.session.commit()

    logger.info("Negotiation %s accepted, transaction %s created", negotiation.id, transaction.id)
    return ok(transaction_id=transaction.id)


def get_negotiations(token, request_id):
    """Offers on a request that are addressed to the caller."""
    info = validate_session(token)
    if info is None:
        return []

    negotiations = (
        Negotiation.query.filter_by(request_id=request_id)
        .order_by(Negotiation.id.desc())
        .all()
    )
    return [negotiation_to_dict(n) for n in negotiations if n.recipient_id == info.user_id]
