from conftest import accepted_transaction, completed_transaction, user_for
from skillswap import db, transactions
from skillswap.models import Dispute, ServiceRequest, Transaction


class TestLifecycle:
    def test_only_provider_starts(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        assert transactions.start_transaction(requester, transaction_id)['error'] == "Unauthorized"
        assert transactions.start_transaction(provider, transaction_id)['success']

        transaction = db.session.get(Transaction, transaction_id)
        assert transaction.status == 'in_progress'
        assert db.session.get(ServiceRequest, transaction.request_id).status == 'in_progress'
        assert transactions.start_transaction(provider, transaction_id)['error'] == "Transaction already started"

    def test_confirm_requires_in_progress(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        result = transactions.confirm_completion(requester, transaction_id)
        assert result == {'success': False, 'error': "Transaction not in progress"}

    def test_single_confirmation_does_not_complete(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider, credits=30)
        transactions.start_transaction(provider, transaction_id)

        result = transactions.confirm_completion(provider, transaction_id)
        assert result == {'success': True, 'completed': False}

        transaction = db.session.get(Transaction, transaction_id)
        assert transaction.status == 'in_progress'
        assert transaction.provider_confirmed
        assert not transaction.requester_confirmed
        assert user_for(provider).credits == 100

    def test_double_confirmation_settles(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider, credits=30)
        transaction = db.session.get(Transaction, transaction_id)
        assert transaction.status == 'completed'
        assert transaction.completed_at is not None
        assert db.session.get(ServiceRequest, transaction.request_id).status == 'completed'
        assert user_for(provider).credits == 130

    def test_outsider_cannot_confirm(self, app, requester, provider, register):
        transaction_id = accepted_transaction(requester, provider)
        transactions.start_transaction(provider, transaction_id)
        outsider = register("zed@example.com")
        assert transactions.confirm_completion(outsider, transaction_id)['error'] == "Unauthorized"


class TestCancel:
    def test_only_requester_cancels(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        assert transactions.cancel_transaction(provider, transaction_id)['error'] == "Only requester can cancel"

    def test_cannot_cancel_started(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        transactions.start_transaction(provider, transaction_id)
        result = transactions.cancel_transaction(requester, transaction_id)
        assert result['error'] == "Can only cancel pending transactions"


class TestDisputes:
    def test_dispute_freezes_transaction(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        transactions.start_transaction(provider, transaction_id)

        result = transactions.open_dispute(requester, transaction_id, "Never showed up")
        assert result['success']

        dispute = db.session.get(Dispute, result['dispute_id'])
        assert dispute.previous_status == 'in_progress'
        assert db.session.get(Transaction, transaction_id).status == 'disputed'

        assert transactions.confirm_completion(provider, transaction_id)['error'] == "Transaction not in progress"
        assert transactions.cancel_transaction(requester, transaction_id)['error'] == (
            "Can only cancel pending transactions"
        )

    def test_one_dispute_per_transaction(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        assert transactions.open_dispute(provider, transaction_id, "Changed terms")['success']
        second = transactions.open_dispute(requester, transaction_id, "Me too")
        assert not second['success']

    def test_completed_transaction_not_disputable(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        result = transactions.open_dispute(requester, transaction_id, "Too late")
        assert result['error'] == "Cannot dispute this transaction"


class TestViews:
    def test_listing_shows_role(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        mine = transactions.get_my_transactions(provider)
        assert [t['id'] for t in mine] == [transaction_id]
        assert mine[0]['my_role'] == 'provider'
        assert mine[0]['other_party_name'] == "Alice"

    def test_outsider_cannot_view(self, app, requester, provider, register):
        transaction_id = accepted_transaction(requester, provider)
        assert transactions.get_transaction(register("yan@example.com"), transaction_id) is None
        assert transactions.get_transaction(requester, transaction_id)['status'] == 'pending'
