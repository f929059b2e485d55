from datetime import timedelta

from conftest import accepted_transaction, completed_transaction, open_credit_request, user_for
from skillswap import analytics, db, matching, ratings, skills, transactions
from skillswap.models import Transaction


def rated_exchange(requester, provider):
    transaction_id = completed_transaction(requester, provider)
    assert ratings.submit_rating(requester, transaction_id, 5, "Great lesson")['success']
    assert ratings.submit_rating(provider, transaction_id, 4)['success']
    return transaction_id


class TestMyAnalytics:
    def test_provider_totals(self, app, requester, provider):
        rated_exchange(requester, provider)

        assert analytics.get_my_analytics(provider) == {
            'completed_exchanges': 1,
            'credits_earned': 130,
            'credits_spent': 0,
            'current_balance': 130,
            'provider_rating': 5.0,
            'requester_rating': 0.0,
            'total_ratings_received': 1,
            'skills_count': 1,
            'endorsements_received': 0,
        }

    def test_requester_spending(self, app, requester, provider):
        rated_exchange(requester, provider)
        data = analytics.get_my_analytics(requester)
        assert data['credits_spent'] == 30
        assert data['current_balance'] == 70
        assert data['requester_rating'] == 4.0

    def test_released_reservation_is_not_spending(self, app, requester, provider):
        transaction_id = accepted_transaction(requester, provider)
        assert transactions.cancel_transaction(requester, transaction_id)['success']

        data = analytics.get_my_analytics(requester)
        assert data['credits_spent'] == 0
        assert data['current_balance'] == 100

    def test_invalid_session(self, app):
        assert analytics.get_my_analytics("bogus") is None
        assert analytics.get_request_insights("bogus") is None
        assert analytics.get_service_history("bogus") == []


class TestRequestInsights:
    def test_cancelled_requests_leave_the_completion_rate(self, app, requester, provider):
        completed_transaction(requester, provider)
        open_credit_request(requester, credits=10, title="Scales")
        cancelled = open_credit_request(requester, credits=10, title="Theory")
        assert matching.cancel_request(requester, cancelled) is True

        assert analytics.get_request_insights(requester) == {
            'total_requests': 3,
            'completed_requests': 1,
            'open_requests': 1,
            'cancelled_requests': 1,
            'completion_rate': 50,
            'total_credits_spent': 30,
        }

    def test_no_requests(self, app, requester):
        insights = analytics.get_request_insights(requester)
        assert insights['total_requests'] == 0
        assert insights['completion_rate'] == 0


class TestServiceHistory:
    def test_entries_carry_role_and_received_rating(self, app, requester, provider):
        transaction_id = rated_exchange(requester, provider)

        [entry] = analytics.get_service_history(provider)
        assert entry['transaction_id'] == transaction_id
        assert entry['role'] == 'provider'
        assert entry['request_title'] == "Guitar lessons"
        assert entry['skill_used'] == 'guitar'
        assert (entry['rating'], entry['feedback']) == (5, "Great lesson")

        [entry] = analytics.get_service_history(requester)
        assert entry['role'] == 'requester'
        assert entry['rating'] == 4

    def test_newest_first_and_completed_only(self, app, requester, provider):
        first = completed_transaction(requester, provider, credits=10)
        second = completed_transaction(requester, provider, credits=10)
        accepted_transaction(requester, provider, credits=10)

        history = analytics.get_service_history(provider)
        assert [entry['transaction_id'] for entry in history] == [second, first]
        assert all(entry['rating'] is None for entry in history)


class TestCommunityComparison:
    def test_user_against_average(self, app, requester, provider):
        rated_exchange(requester, provider)

        comparison = analytics.get_community_comparison(requester, '30days')
        assert comparison['user'] == {
            'completed_exchanges': 1,
            'avg_rating': 4.0,
            'skills_count': 0,
            'credits_earned': 0,
        }
        assert comparison['community'] == {
            'avg_completed_exchanges': 0.5,
            'avg_rating': 4.5,
            'avg_skills_count': 0.5,
            'avg_credits_earned': 15.0,
        }
        assert comparison['time_range'] == '30days'
        assert comparison['skill_category'] is None

    def test_skill_category_narrows_exchanges(self, app, requester, provider):
        completed_transaction(requester, provider)
        skills.add_skill(requester, "piano", "beginner")

        comparison = analytics.get_community_comparison(provider, 'all', skill_category=" Piano ")
        assert comparison['skill_category'] == 'piano'
        assert comparison['user']['completed_exchanges'] == 0
        assert comparison['user']['skills_count'] == 0
        assert comparison['community']['avg_skills_count'] == 0.5

    def test_old_exchanges_fall_out_of_window(self, app, requester, provider):
        transaction_id = completed_transaction(requester, provider)
        transaction = db.session.get(Transaction, transaction_id)
        transaction.created_at = transaction.created_at - timedelta(days=10)
        db.session.commit()

        assert analytics.get_community_comparison(provider, '7days')['user']['completed_exchanges'] == 0
        assert analytics.get_community_comparison(provider, '30days')['user']['completed_exchanges'] == 1

    def test_unknown_range(self, app, requester):
        assert analytics.get_community_comparison(requester, 'forever') is None

    def test_admins_are_not_community_members(self, app, requester, provider, admin_token):
        completed_transaction(requester, provider)
        comparison = analytics.get_community_comparison(requester)
        assert comparison['community']['avg_completed_exchanges'] == 0.5
        assert user_for(admin_token).is_admin
