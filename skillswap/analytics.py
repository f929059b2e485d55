"""Personal activity analytics: contribution totals, request insights,
service history and a comparison against the community average."""
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, or_

from skillswap import db
from skillswap.auth import current_user, validate_session
from skillswap.models import CreditHistory, Rating, ServiceRequest, Skill, Transaction, User, utcnow
from skillswap.ratings import average
from skillswap.skills import normalize_skill

TIME_RANGES = {'7days': 7, '30days': 30, '90days': 90, 'all': None}


def _one_decimal(total, count):
    if not count:
        return 0.0
    return float((Decimal(total) / Decimal(count)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def _percent(part, whole):
    if not whole:
        return 0
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _sum_history(user_id, types, since=None):
    query = db.session.query(func.coalesce(func.sum(CreditHistory.amount), 0)).filter(
        CreditHistory.type.in_(types)
    )
    if user_id is not None:
        query = query.filter(CreditHistory.user_id == user_id)
    if since is not None:
        query = query.filter(CreditHistory.created_at >= since)
    return int(query.scalar())


def _credits_spent(user_id):
    """Credits paid on completed credit exchanges. Released reservations never count."""
    total = db.session.query(func.coalesce(func.sum(Transaction.credit_amount), 0)).filter(
        Transaction.requester_id == user_id,
        Transaction.status == 'completed',
        Transaction.transaction_type == 'credit',
    ).scalar()
    return int(total)


def _completed_for(user_id):
    return Transaction.query.filter(
        Transaction.status == 'completed',
        or_(Transaction.requester_id == user_id, Transaction.provider_id == user_id),
    )


def get_my_analytics(token):
    user = current_user(token)
    if user is None:
        return None

    ratings = Rating.query.filter_by(ratee_id=user.id).all()
    skills = Skill.query.filter_by(user_id=user.id).all()

    return {
        'completed_exchanges': _completed_for(user.id).count(),
        'credits_earned': _sum_history(user.id, ('earned', 'initial')),
        'credits_spent': _credits_spent(user.id),
        'current_balance': user.credits,
        'provider_rating': average([r.rating for r in ratings if r.rater_role == 'requester']),
        'requester_rating': average([r.rating for r in ratings if r.rater_role == 'provider']),
        'total_ratings_received': len(ratings),
        'skills_count': len(skills),
        'endorsements_received': sum(s.endorsements for s in skills),
    }


def get_request_insights(token):
    info = validate_session(token)
    if info is None:
        return None

    statuses = [r.status for r in ServiceRequest.query.filter_by(requester_id=info.user_id).all()]
    completed = statuses.count('completed')
    cancelled = statuses.count('cancelled')

    return {
        'total_requests': len(statuses),
        'completed_requests': completed,
        'open_requests': statuses.count('open'),
        'cancelled_requests': cancelled,
        # Cancelled requests never had a chance to complete
        'completion_rate': _percent(completed, len(statuses) - cancelled),
        'total_credits_spent': _credits_spent(info.user_id),
    }


def get_service_history(token):
    """Completed exchanges, newest first, with the rating the user received for each."""
    info = validate_session(token)
    if info is None:
        return []

    entries = []
    for transaction in _completed_for(info.user_id).all():
        role = transaction.role_of(info.user_id)
        received = Rating.query.filter_by(transaction_id=transaction.id, ratee_id=info.user_id).first()
        entries.append((transaction.completed_at or transaction.created_at, {
            'transaction_id': transaction.id,
            'request_title': transaction.request.title if transaction.request else "Unknown Request",
            'skill_used': transaction.skill_received if role == 'provider' else transaction.skill_offered,
            'role': role,
            'rating': received.rating if received else None,
            'feedback': received.comment if received else None,
            'completed_at': transaction.completed_at.isoformat() if transaction.completed_at else None,
            'created_at': transaction.created_at.isoformat(),
        }))

    entries.sort(key=lambda entry: entry[0], reverse=True)
    return [item for _, item in entries]


def _skill_filter(skill):
    return or_(Transaction.skill_received == skill, Transaction.skill_offered == skill)


def get_community_comparison(token, time_range='all', skill_category=None):
    """
    Compare the user's exchanges, rating, skills and earnings in a time
    window against the per-active-user community average.

    ``time_range`` is one of TIME_RANGES; ``skill_category`` narrows
    exchanges and skills to a single skill name. Returns None for an
    invalid session or an unknown time range.
    """
    info = validate_session(token)
    if info is None or time_range not in TIME_RANGES:
        return None

    days = TIME_RANGES[time_range]
    since = utcnow() - timedelta(days=days) if days else None
    skill = normalize_skill(skill_category) or None

    transactions = Transaction.query.filter(Transaction.status == 'completed')
    ratings = Rating.query
    skills = Skill.query
    if since is not None:
        transactions = transactions.filter(Transaction.created_at >= since)
        ratings = ratings.filter(Rating.created_at >= since)
    if skill:
        transactions = transactions.filter(_skill_filter(skill))
        skills = skills.filter(Skill.name == skill)

    mine = transactions.filter(
        or_(Transaction.requester_id == info.user_id, Transaction.provider_id == info.user_id)
    ).count()
    my_ratings = [r.rating for r in ratings.filter(Rating.ratee_id == info.user_id).all()]

    active_users = User.query.filter(User.is_active.is_(True), User.role != 'admin').count()
    all_ratings = [r.rating for r in ratings.all()]

    return {
        'user': {
            'completed_exchanges': mine,
            'avg_rating': average(my_ratings),
            'skills_count': skills.filter(Skill.user_id == info.user_id).count(),
            'credits_earned': _sum_history(info.user_id, ('earned',), since),
        },
        'community': {
            'avg_completed_exchanges': _one_decimal(transactions.count(), active_users),
            'avg_rating': average(all_ratings),
            'avg_skills_count': _one_decimal(skills.count(), active_users),
            'avg_credits_earned': _one_decimal(_sum_history(None, ('earned',), since), active_users),
        },
        'time_range': time_range,
        'skill_category': skill,
    }
