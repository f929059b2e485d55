"""Post-transaction feedback and reputation.

A party may rate a transaction once it is completed; submitting again
updates the earlier rating instead of adding another. Reputation per role is
the mean of the ratings received in that role, rounded half-up to one decimal.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from skillswap import db
from skillswap.auth import validate_session
from skillswap.models import Rating, Report, Transaction
from skillswap.notifications import notify
from skillswap.utils import INVALID_SESSION, UNAUTHORIZED, fail, ok

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def average(values):
    if not values:
        return 0.0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def rating_to_dict(rating):
    return {
        'id': rating.id,
        'transaction_id': rating.transaction_id,
        'rater_id': rating.rater_id,
        'rater_name': rating.rater.name if rating.rater else "Unknown User",
        'rater_role': rating.rater_role,
        'rating': rating.rating,
        'comment': rating.comment,
        'response': rating.response,
        'created_at': rating.created_at.isoformat(),
    }


def _coerce_score(value):
    """Whole-star score in range, or None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if MIN_RATING <= value <= MAX_RATING:
        return value
    return None


def can_rate(token, transaction_id):
    info = validate_session(token)
    if info is None:
        return {'can_rate': False, 'reason': INVALID_SESSION}

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        return {'can_rate': False, 'reason': "Transaction not found"}

    if not transaction.is_party(info.user_id):
        return {'can_rate': False, 'reason': "Not part of this transaction"}

    if transaction.status != 'completed':
        return {'can_rate': False, 'reason': "Transaction not completed"}

    if Rating.query.filter_by(transaction_id=transaction.id, rater_id=info.user_id).first():
        return {'can_rate': False, 'reason': "Already rated"}

    return {'can_rate': True}


def submit_rating(token, transaction_id, rating, comment=None):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        return fail("Transaction not found")

    rater_role = transaction.role_of(info.user_id)
    if rater_role is None:
        return fail(UNAUTHORIZED)

    if transaction.status != 'completed':
        return fail("Transaction not completed")

    rating = _coerce_score(rating)
    if rating is None:
        return fail("Rating must be between 1 and 5")

    existing = Rating.query.filter_by(transaction_id=transaction.id, rater_id=info.user_id).first()
    if existing is not None:
        existing.rating = rating
        existing.comment = comment
        db.session.commit()
        logger.debug("User %s updated rating %s", info.user_id, existing.id)
        return ok(rating_id=existing.id, updated=True)

    ratee_id = transaction.other_party(info.user_id)
    new_rating = Rating(
        transaction_id=transaction.id,
        rater_id=info.user_id,
        ratee_id=ratee_id,
        rater_role=rater_role,
        rating=rating,
        comment=comment,
    )
    db.session.add(new_rating)
    db.session.flush()

    notify(
        ratee_id,
        'rating_received',
        "New Rating Received",
        f"You received a {rating}-star rating!",
        related_id=new_rating.id,
    )
    db.session.commit()
    return ok(rating_id=new_rating.id, updated=False)


def respond_to_rating(token, rating_id, response):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    rating = db.session.get(Rating, rating_id)
    if rating is None:
        return fail("Rating not found")

    if rating.ratee_id != info.user_id:
        return fail(UNAUTHORIZED)

    if rating.response:
        return fail("Already responded")

    if not response:
        return fail("Response is required")

    rating.response = response
    db.session.commit()
    return ok()


def report_rating(token, rating_id, reason):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    rating = db.session.get(Rating, rating_id)
    if rating is None:
        return fail("Rating not found")

    if rating.ratee_id != info.user_id:
        return fail("Can only report ratings about yourself")

    db.session.add(Report(reporter_id=info.user_id, report_type='feedback', target_id=rating.id, reason=reason))
    rating.is_reported = True
    db.session.commit()
    return ok()


def get_user_ratings(user_id):
    ratings = (
        Rating.query.filter_by(ratee_id=user_id, is_reported=False)
        .order_by(Rating.id.desc())
        .all()
    )
    return [rating_to_dict(r) for r in ratings]


def get_my_received_ratings(token):
    info = validate_session(token)
    if info is None:
        return []

    ratings = Rating.query.filter_by(ratee_id=info.user_id).order_by(Rating.id.desc()).all()
    results = []
    for rating in ratings:
        data = rating_to_dict(rating)
        data['can_respond'] = not rating.response and rating.comment is not None
        results.append(data)
    return results


def get_reputation(user_id):
    ratings = Rating.query.filter_by(ratee_id=user_id).all()

    # Ratings given by requesters score the user as a provider and vice versa
    as_provider = [r.rating for r in ratings if r.rater_role == 'requester']
    as_requester = [r.rating for r in ratings if r.rater_role == 'provider']

    completed_as_provider = Transaction.query.filter_by(provider_id=user_id, status='completed').count()
    completed_as_requester = Transaction.query.filter_by(requester_id=user_id, status='completed').count()

    return {
        'provider_rating': average(as_provider),
        'requester_rating': average(as_requester),
        'total_provider_ratings': len(as_provider),
        'total_requester_ratings': len(as_requester),
        'completed_as_provider': completed_as_provider,
        'completed_as_requester': completed_as_requester,
    }
