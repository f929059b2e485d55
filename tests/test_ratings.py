import pytest

from conftest import accepted_transaction, completed_transaction, user_for
from skillswap import ratings
from skillswap.models import Rating


@pytest.mark.parametrize('values, expected', [
    ([], 0.0),
    ([5], 5.0),
    ([4, 5], 4.5),
    ([4, 4, 5], 4.3),
    ([1, 2, 2, 2, 2, 2, 2, 2], 1.9),
    ([2, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3, 3], 3.0),
])
def test_average_rounds_to_one_decimal(values, expected):
    assert ratings.average(values) == expected


def test_average_rounds_half_up():
    # 4.25 would round to 4.2 under banker's rounding
    assert ratings.average([4, 4, 4, 5]) == 4.3


class TestSubmit:
    def test_requires_completion(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        result = ratings.submit_rating(requester, transaction_id, 5)
        assert result == {'success': False, 'error': "Transaction not completed"}

    @pytest.mark.parametrize('score', [0, 6, 4.5, "5", True])
    def test_out_of_range_rejected(self, app, requester, provider, score):
        transaction_id = completed_transaction(requester, provider)
        result = ratings.submit_rating(requester, transaction_id, score)
        assert result == {'success': False, 'error': "Rating must be between 1 and 5"}

    def test_whole_number_float_accepted(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        assert ratings.submit_rating(requester, transaction_id, 4.0)['success']

    def test_resubmission_updates(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        first = ratings.submit_rating(requester, transaction_id, 3, "ok")
        second = ratings.submit_rating(requester, transaction_id, 5, "great after all")
        assert first['updated'] is False
        assert second == {'success': True, 'rating_id': first['rating_id'], 'updated': True}
        assert Rating.query.filter_by(transaction_id=transaction_id).count() == 1

    def test_outsider_cannot_rate(self, app, requester, provider, register):
        transaction_id = completed_transaction(requester, provider)
        assert ratings.submit_rating(register("xi@example.com"), transaction_id, 5)['error'] == "Unauthorized"

    def test_can_rate(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        assert ratings.can_rate(requester, transaction_id) == {'can_rate': True}
        ratings.submit_rating(requester, transaction_id, 4)
        assert ratings.can_rate(requester, transaction_id) == {'can_rate': False, 'reason': "Already rated"}


class TestReputation:
    def test_roles_are_scored_separately(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        ratings.submit_rating(requester, transaction_id, 4)
        ratings.submit_rating(provider, transaction_id, 2)

        bob = ratings.get_reputation(user_for(provider).id)
        assert bob['provider_rating'] == 4.0
        assert bob['total_provider_ratings'] == 1
        assert bob['requester_rating'] == 0.0
        assert bob['completed_as_provider'] == 1

        alice = ratings.get_reputation(user_for(requester).id)
        assert alice['requester_rating'] == 2.0
        assert alice['completed_as_requester'] == 1

    def test_response_and_report(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        rating_id = ratings.submit_rating(requester, transaction_id, 1, "Late")['rating_id']

        assert ratings.respond_to_rating(requester, rating_id, "Not mine")['error'] == "Unauthorized"
        assert ratings.respond_to_rating(provider, rating_id, "Sorry, traffic")['success']
        assert ratings.respond_to_rating(provider, rating_id, "Again")['error'] == "Already responded"

        assert ratings.report_rating(provider, rating_id, "Unfair")['success']
        assert ratings.get_user_ratings(user_for(provider).id) == []
