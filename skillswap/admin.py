import logging
from datetime import timedelta

from skillswap import db
from skillswap import ledger
from skillswap.auth import current_user
from skillswap.models import (
    Dispute,
    Report,
    ServiceRequest,
    Session,
    Transaction,
    User,
    utcnow,
)
from skillswap.notifications import notify
from skillswap.transactions import release_reservation, settle
from skillswap.utils import INVALID_SESSION, UNAUTHORIZED, fail, ok

logger = logging.getLogger(__name__)

DISPUTE_ACTIONS = ('reverse', 'complete', 'dismiss')
REPORT_ACTIONS = ('resolve', 'dismiss')


def verify_admin(token):
    """The admin behind a session token, or None."""
    user = current_user(token)
    if user is None or not user.is_admin:
        return None
    return user


def _admin_or_error(token):
    user = current_user(token)
    if user is None:
        return None, fail(INVALID_SESSION)
    if not user.is_admin:
        return None, fail(UNAUTHORIZED)
    return user, None


def get_system_overview(token):
    if verify_admin(token) is None:
        return None

    return {
        'total_users': User.query.count(),
        'active_users': User.query.filter_by(is_active=True).count(),
        'total_requests': ServiceRequest.query.count(),
        'open_requests': ServiceRequest.query.filter_by(status='open').count(),
        'completed_exchanges': Transaction.query.filter_by(status='completed').count(),
        'total_credits_in_circulation': ledger.total_in_circulation(),
        'pending_reports': Report.query.filter_by(status='pending').count(),
        'pending_disputes': Dispute.query.filter_by(status='open').count(),
    }


def get_pending_disputes(token):
    if verify_admin(token) is None:
        return []

    disputes = Dispute.query.filter_by(status='open').order_by(Dispute.id.desc()).all()
    return [
        {
            'id': d.id,
            'transaction_id': d.transaction_id,
            'reporter_id': d.reporter_id,
            'reporter_name': d.reporter.name if d.reporter else "Unknown",
            'description': d.description,
            'evidence': d.evidence,
            'status': d.status,
            'created_at': d.created_at.isoformat(),
        }
        for d in disputes
    ]


def resolve_dispute(token, dispute_id, action, resolution):
    """
    Settle a disputed transaction.

    reverse:  refund the requester's reserved credits, transaction reversed
    complete: pay the provider, transaction completed
    dismiss:  transaction returns to the status it had before the dispute
    """
    admin, error = _admin_or_error(token)
    if error:
        return error

    if action not in DISPUTE_ACTIONS:
        return fail("Invalid action")

    dispute = db.session.get(Dispute, dispute_id)
    if dispute is None:
        return fail("Dispute not found")

    if dispute.status != 'open':
        return fail("Dispute already resolved")

    transaction = db.session.get(Transaction, dispute.transaction_id)
    if transaction is None:
        return fail("Transaction not found")

    dispute.status = 'dismissed' if action == 'dismiss' else 'resolved'
    dispute.resolution = resolution
    dispute.resolved_by = admin.id
    dispute.resolved_at = utcnow()

    if action == 'reverse':
        transaction.status = 'reversed'
        request = db.session.get(ServiceRequest, transaction.request_id)
        if request is not None:
            request.status = 'cancelled'
        release_reservation(transaction, 'adjustment', "Refund from dispute resolution")
    elif action == 'complete':
        settle(transaction, description="Earned from dispute resolution")
    else:
        transaction.status = dispute.previous_status

    outcome = 'dismissed' if action == 'dismiss' else 'resolved'
    notify(
        transaction.requester_id,
        'dispute_resolved',
        "Dispute Resolved",
        f"The dispute on your transaction has been {outcome}.",
        related_id=dispute.id,
    )
    notify(
        transaction.provider_id,
        'dispute_resolved',
        "Dispute Resolved",
        f"The dispute on your transaction has been {outcome}.",
        related_id=dispute.id,
    )
    db.session.commit()

    logger.info("Admin %s resolved dispute %s with action %s", admin.id, dispute.id, action)
    return ok()


def get_pending_reports(token):
    if verify_admin(token) is None:
        return []

    reports = Report.query.filter_by(status='pending').order_by(Report.id.desc()).all()
    return [
        {
            'id': r.id,
            'reporter_id': r.reporter_id,
            'reporter_name': r.reporter.name if r.reporter else "Unknown",
            'report_type': r.report_type,
            'target_id': r.target_id,
            'reason': r.reason,
            'status': r.status,
            'created_at': r.created_at.isoformat(),
        }
        for r in reports
    ]


def resolve_report(token, report_id, action, admin_notes=None):
    admin = verify_admin(token)
    if admin is None or action not in REPORT_ACTIONS:
        return False

    report = db.session.get(Report, report_id)
    if report is None or report.status != 'pending':
        return False

    report.status = 'resolved' if action == 'resolve' else 'dismissed'
    report.admin_notes = admin_notes
    report.resolved_by = admin.id
    report.resolved_at = utcnow()

    # A dismissed request report puts the request back into discovery
    if action == 'dismiss' and report.report_type == 'request':
        request = db.session.get(ServiceRequest, report.target_id)
        if request is not None:
            request.is_reported = False

    if action == 'resolve':
        notify(
            report.reporter_id,
            'report_resolved',
            "Report Resolved",
            "Thank you, the content you reported has been reviewed.",
            related_id=report.id,
        )

    db.session.commit()
    return True


def get_all_users(token):
    if verify_admin(token) is None:
        return []

    users = User.query.order_by(User.id.desc()).all()
    return [
        {
            'id': u.id,
            'name': u.name,
            'email': u.email,
            'role': u.role,
            'credits': u.credits,
            'is_active': u.is_active,
            'suspended_until': u.suspended_until.isoformat() if u.suspended_until else None,
        }
        for u in users
    ]


def set_user_status(token, user_id, is_active):
    """Activate or deactivate a non-admin account. Deactivation ends its sessions."""
    admin = verify_admin(token)
    if admin is None:
        return False

    user = db.session.get(User, user_id)
    if user is None or user.is_admin:
        return False

    user.is_active = bool(is_active)
    if not user.is_active:
        Session.query.filter_by(user_id=user.id).delete(synchronize_session=False)

    db.session.commit()
    logger.info("Admin %s set user %s active=%s", admin.id, user.id, user.is_active)
    return True


def suspend_user(token, user_id, days, reason):
    admin, error = _admin_or_error(token)
    if error:
        return error

    user = db.session.get(User, user_id)
    if user is None:
        return fail("User not found")

    if user.is_admin:
        return fail("Cannot suspend administrators")

    if not isinstance(days, int) or days <= 0:
        return fail("Suspension length must be a positive number of days")

    user.suspended_until = utcnow() + timedelta(days=days)
    user.suspension_reason = reason
    Session.query.filter_by(user_id=user.id).delete(synchronize_session=False)

    notify(
        user.id,
        'suspension',
        "Account Suspended",
        f"Your account has been suspended for {days} day{'s' if days > 1 else ''}: {reason}",
    )
    db.session.commit()
    logger.info("Admin %s suspended user %s for %d days", admin.id, user.id, days)
    return ok(suspended_until=user.suspended_until.isoformat())


def lift_suspension(token, user_id):
    admin = verify_admin(token)
    if admin is None:
        return False

    user = db.session.get(User, user_id)
    if user is None or user.suspended_until is None:
        return False

    user.suspended_until = None
    user.suspension_reason = None
    db.session.commit()
    return True


def reconcile_balances(token):
    """Rebuild every cached balance from its credit history."""
    admin, error = _admin_or_error(token)
    if error:
        return error

    repaired = [user.id for user in User.query.all() if ledger.reconcile(user)]
    db.session.commit()

    if repaired:
        logger.warning("Admin %s repaired balances for users %s", admin.id, repaired)
    return ok(repaired=repaired)
