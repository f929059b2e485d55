"""Transaction lifecycle and settlement.

pending -> in_progress -> completed | disputed | cancelled | reversed

Credit-mode exchanges reserve the requester's credits when the transaction is
created; completion pays the provider, cancellation releases the reservation.
A disputed transaction accepts no further party actions until an
administrator resolves it.
"""
import logging

from skillswap import db
from skillswap import ledger
from skillswap.auth import current_user, validate_session
from skillswap.models import Dispute, ServiceRequest, Transaction, User, utcnow
from skillswap.notifications import notify
from skillswap.utils import INVALID_SESSION, UNAUTHORIZED, fail, ok

logger = logging.getLogger(__name__)

DISPUTABLE_STATUSES = ('pending', 'in_progress')


def create_transaction(request, provider_id, match_id, exchange_mode, credit_amount, skill_offered):
    """Instantiate the binding agreement and reserve the requester's credits."""
    transaction = Transaction(
        request_id=request.id,
        match_id=match_id,
        requester_id=request.requester_id,
        provider_id=provider_id,
        transaction_type=exchange_mode,
        credit_amount=credit_amount if exchange_mode == 'credit' else None,
        skill_offered=skill_offered if exchange_mode == 'skill_swap' else None,
        skill_received=request.skill_needed,
        status='pending',
        requester_confirmed=False,
        provider_confirmed=False,
    )
    db.session.add(transaction)
    db.session.flush()

    if transaction.is_credit_exchange:
        requester = db.session.get(User, request.requester_id)
        ledger.debit(
            requester,
            transaction.credit_amount,
            'reserved',
            f"Reserved for: {request.title}",
            transaction_id=transaction.id,
        )

    logger.info("Transaction %s created for request %s", transaction.id, request.id)
    return transaction


def settle(transaction, description="Earned from completed service"):
    """Mark completed and pay the provider for credit-mode exchanges."""
    transaction.status = 'completed'
    transaction.completed_at = utcnow()

    request = db.session.get(ServiceRequest, transaction.request_id)
    if request is not None:
        request.status = 'completed'

    if transaction.is_credit_exchange:
        provider = db.session.get(User, transaction.provider_id)
        ledger.credit(provider, transaction.credit_amount, 'earned', description, transaction_id=transaction.id)

    logger.info("Transaction %s completed", transaction.id)


def release_reservation(transaction, entry_type, description):
    """Return reserved credits to the requester."""
    if not transaction.is_credit_exchange:
        return
    requester = db.session.get(User, transaction.requester_id)
    ledger.credit(requester, transaction.credit_amount, entry_type, description, transaction_id=transaction.id)


def transaction_to_dict(transaction, viewer_id):
    request = transaction.request
    requester = db.session.get(User, transaction.requester_id)
    provider = db.session.get(User, transaction.provider_id)
    other = provider if viewer_id == transaction.requester_id else requester
    return {
        'id': transaction.id,
        'request_id': transaction.request_id,
        'request_title': request.title if request else "Unknown Request",
        'request_description': request.description if request else "",
        'requester_id': transaction.requester_id,
        'requester_name': requester.name if requester else "Unknown User",
        'provider_id': transaction.provider_id,
        'provider_name': provider.name if provider else "Unknown User",
        'other_party_id': transaction.other_party(viewer_id),
        'other_party_name': other.name if other else "Unknown User",
        'my_role': transaction.role_of(viewer_id),
        'transaction_type': transaction.transaction_type,
        'credit_amount': transaction.credit_amount,
        'skill_offered': transaction.skill_offered,
        'skill_received': transaction.skill_received,
        'status': transaction.status,
        'requester_confirmed': transaction.requester_confirmed,
        'provider_confirmed': transaction.provider_confirmed,
        'completed_at': transaction.completed_at.isoformat() if transaction.completed_at else None,
        'created_at': transaction.created_at.isoformat(),
    }


def get_my_transactions(token):
    info = validate_session(token)
    if info is None:
        return []

    transactions = (
        Transaction.query.filter(
            (Transaction.requester_id == info.user_id) | (Transaction.provider_id == info.user_id)
        )
        .order_by(Transaction.id.desc())
        .all()
    )
    return [transaction_to_dict(t, info.user_id) for t in transactions]


def get_transaction(token, transaction_id):
    info = validate_session(token)
    if info is None:
        return None

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None or not transaction.is_party(info.user_id):
        return None

    return transaction_to_dict(transaction, info.user_id)


def start_transaction(token, transaction_id):
    """The provider accepts the work."""
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if user.is_admin:
        return fail("Administrators cannot participate in transactions")

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None or transaction.provider_id != user.id:
        return fail(UNAUTHORIZED)

    if transaction.status != 'pending':
        return fail("Transaction already started")

    transaction.status = 'in_progress'
    request = db.session.get(ServiceRequest, transaction.request_id)
    if request is not None:
        request.status = 'in_progress'

    notify(
        transaction.requester_id,
        'transaction_started',
        "Transaction Started",
        "The service provider has started working on your request.",
        related_id=transaction.id,
    )
    db.session.commit()
    logger.info("Transaction %s started", transaction.id)
    return ok()


def confirm_completion(token, transaction_id):
    """
    Record one party's confirmation. The transaction completes only once both
    parties have confirmed; partial confirmation leaves the status unchanged.
    """
    user = current_user(token)
    if user is None:
        return fail(INVALID_SESSION)

    if user.is_admin:
        return fail("Administrators cannot participate in transactions")

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        return fail("Transaction not found")

    role = transaction.role_of(user.id)
    if role is None:
        return fail(UNAUTHORIZED)

    if transaction.status != 'in_progress':
        return fail("Transaction not in progress")

    if role == 'requester':
        transaction.requester_confirmed = True
    else:
        transaction.provider_confirmed = True

    if not (transaction.requester_confirmed and transaction.provider_confirmed):
        db.session.commit()
        return ok(completed=False)

    settle(transaction)

    notify(
        transaction.requester_id,
        'transaction_completed',
        "Transaction Completed",
        "Your transaction has been completed! Don't forget to leave a rating.",
        related_id=transaction.id,
    )
    notify(
        transaction.provider_id,
        'transaction_completed',
        "Transaction Completed",
        "The transaction has been completed! Don't forget to leave a rating.",
        related_id=transaction.id,
    )
    if transaction.is_credit_exchange:
        notify(
            transaction.provider_id,
            'credit_received',
            "Credits Received",
            f"You earned {transaction.credit_amount} credits.",
            related_id=transaction.id,
        )

    db.session.commit()
    return ok(completed=True)


def cancel_transaction(token, transaction_id):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        return fail("Transaction not found")

    if transaction.requester_id != info.user_id:
        return fail("Only requester can cancel")

    if transaction.status != 'pending':
        return fail("Can only cancel pending transactions")

    transaction.status = 'cancelled'
    request = db.session.get(ServiceRequest, transaction.request_id)
    if request is not None:
        request.status = 'cancelled'

    release_reservation(transaction, 'released', "Refund for cancelled transaction")

    notify(
        transaction.provider_id,
        'system',
        "Transaction Cancelled",
        "A transaction you were part of has been cancelled.",
        related_id=transaction.id,
    )
    db.session.commit()
    logger.info("Transaction %s cancelled", transaction.id)
    return ok()


def open_dispute(token, transaction_id, description, evidence=None):
    info = validate_session(token)
    if info is None:
        return fail(INVALID_SESSION)

    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        return fail("Transaction not found")

    if not transaction.is_party(info.user_id):
        return fail(UNAUTHORIZED)

    if transaction.status not in DISPUTABLE_STATUSES:
        return fail("Cannot dispute this transaction")

    if Dispute.query.filter_by(transaction_id=transaction.id).first():
        return fail("A dispute has already been opened for this transaction")

    if not description:
        return fail("A description is required")

    dispute = Dispute(
        transaction_id=transaction.id,
        reporter_id=info.user_id,
        description=description,
        evidence=evidence,
        status='open',
        previous_status=transaction.status,
    )
    db.session.add(dispute)
    transaction.status = 'disputed'
    db.session.flush()

    notify(
        transaction.other_party(info.user_id),
        'dispute_opened',
        "Dispute Opened",
        "A dispute has been opened for a transaction you're involved in.",
        related_id=dispute.id,
    )
    db.session.commit()
    logger.info("Dispute %s opened on transaction %s", dispute.id, transaction.id)
    return ok(dispute_id=dispute.id)
