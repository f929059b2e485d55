"""Credit ledger.

Every balance change appends an immutable CreditHistory row whose
balance_after is the previous cached balance plus the signed amount, and the
cached ``User.credits`` is set to that value in the same unit of work.
"""
import logging

from sqlalchemy import func

from skillswap import db
from skillswap.models import CreditHistory, User

logger = logging.getLogger(__name__)

CREDIT_TYPES = {'earned', 'initial', 'released', 'adjustment'}
DEBIT_TYPES = {'spent', 'reserved'}

HISTORY_LIMIT = 50


def _post(user, amount, entry_type, description, transaction_id=None):
    balance_after = user.credits + amount
    entry = CreditHistory(
        user_id=user.id,
        transaction_id=transaction_id,
        amount=amount,
        type=entry_type,
        description=description,
        balance_after=balance_after,
    )
    user.credits = balance_after
    db.session.add(entry)
    logger.debug("Ledger %s %+d for user %s -> %d", entry_type, amount, user.id, balance_after)
    return entry


def credit(user, amount, entry_type, description, transaction_id=None):
    if entry_type not in CREDIT_TYPES:
        raise ValueError(f"{entry_type!r} is not a credit entry type")
    if amount <= 0:
        raise ValueError("credit amount must be positive")
    return _post(user, amount, entry_type, description, transaction_id)


def debit(user, amount, entry_type, description, transaction_id=None):
    if entry_type not in DEBIT_TYPES:
        raise ValueError(f"{entry_type!r} is not a debit entry type")
    if amount <= 0:
        raise ValueError("debit amount must be positive")
    return _post(user, -amount, entry_type, description, transaction_id)


def adjust(user, amount, description, transaction_id=None):
    """Signed administrative correction."""
    if amount == 0:
        raise ValueError("adjustment amount must be non-zero")
    return _post(user, amount, 'adjustment', description, transaction_id)


def balance_from_history(user_id):
    total = db.session.query(func.coalesce(func.sum(CreditHistory.amount), 0)).filter(
        CreditHistory.user_id == user_id
    ).scalar()
    return int(total)


def last_balance(user_id):
    entry = (
        CreditHistory.query.filter_by(user_id=user_id)
        .order_by(CreditHistory.id.desc())
        .first()
    )
    return entry.balance_after if entry else 0


def reconcile(user):
    """Repair the cached balance from the history sum. Returns True if it drifted."""
    derived = balance_from_history(user.id)
    if user.credits == derived:
        return False
    logger.warning("Balance drift for user %s: cached %d, history %d", user.id, user.credits, derived)
    user.credits = derived
    return True


def get_history(user_id, limit=HISTORY_LIMIT):
    return (
        CreditHistory.query.filter_by(user_id=user_id)
        .order_by(CreditHistory.id.desc())
        .limit(limit)
        .all()
    )


def get_credit_info(token):
    from skillswap.auth import current_user

    user = current_user(token)
    if user is None:
        return {'balance': 0, 'history': []}

    history = [
        {
            'id': entry.id,
            'amount': entry.amount,
            'type': entry.type,
            'description': entry.description,
            'balance_after': entry.balance_after,
            'transaction_id': entry.transaction_id,
            'created_at': entry.created_at.isoformat(),
        }
        for entry in get_history(user.id)
    ]
    return {'balance': user.credits, 'history': history}


def total_in_circulation():
    return int(db.session.query(func.coalesce(func.sum(User.credits), 0)).scalar())
