import pytest

from conftest import open_credit_request, user_for
from skillswap import auth, db, matching, skills
from skillswap.models import Negotiation, ServiceRequest, SuggestedMatch, Transaction


class TestScoring:
    def test_level_scores(self):
        assert matching.match_score('beginner', 0) == 50
        assert matching.match_score('intermediate', 0) == 70
        assert matching.match_score('expert', 0) == 90

    def test_endorsement_bonus_is_capped(self):
        assert matching.match_score('intermediate', 3) == 76
        assert matching.match_score('expert', 12) == 100

    def test_validate_terms(self):
        assert matching.validate_terms('credit', 10, None) is None
        assert matching.validate_terms('skill_swap', None, 'piano') is None
        assert matching.validate_terms('credit', 0, None) == "Credit amount is required"
        assert matching.validate_terms('skill_swap', None, '') == "Skill to offer is required for skill swap"
        assert matching.validate_terms('barter', None, None) == "Invalid exchange mode"

    @pytest.mark.parametrize('amount', ["10", 10.5, True, -5])
    def test_credit_amount_must_be_whole_and_positive(self, amount):
        assert matching.validate_terms('credit', amount, None) == "Credit amount must be a positive whole number"


class TestRequests:
    def test_create_suggests_skilled_providers(self, app, requester, provider, register):
        other = register("cara@example.com")
        skills.add_skill(other, "guitar", "beginner")
        request_id = open_credit_request(requester)

        matches = matching.get_suggested_matches(requester, request_id)
        assert [m['match_score'] for m in matches] == [90, 50]
        assert matches[0]['provider_id'] == user_for(provider).id

    def test_requester_is_never_suggested(self, app, requester, provider):
        skills.add_skill(requester, "guitar", "expert")
        request_id = open_credit_request(requester)
        provider_ids = {m['provider_id'] for m in matching.get_suggested_matches(requester, request_id)}
        assert user_for(requester).id not in provider_ids

    def test_insufficient_credits(self, app, requester):
        result = matching.create_request(requester, "Big job", "Lots", "guitar", 'credit', credit_amount=500)
        assert result == {'success': False, 'error': "Insufficient credits"}

    @pytest.mark.parametrize('amount', ["10", 10.5, True, -5])
    def test_malformed_credit_amount_is_rejected(self, app, requester, amount):
        result = matching.create_request(requester, "Lessons", "Chords", "guitar", 'credit', credit_amount=amount)
        assert result == {'success': False, 'error': "Credit amount must be a positive whole number"}
        assert ServiceRequest.query.count() == 0
        assert user_for(requester).credits == 100

    def test_update_rejects_fractional_credits(self, app, requester):
        request_id = open_credit_request(requester, credits=30)
        result = matching.update_request(requester, request_id, credit_amount=10.5)
        assert result['error'] == "Credit amount must be a positive whole number"
        assert matching.get_request(request_id)['credit_amount'] == 30

    def test_admin_cannot_create_request(self, app, admin_token):
        result = matching.create_request(admin_token, "t", "d", "guitar", 'credit', credit_amount=5)
        assert not result['success']

    def test_refresh_finds_new_providers(self, app, requester, register):
        request_id = open_credit_request(requester)
        assert matching.get_suggested_matches(requester, request_id) == []

        late = register("dan@example.com")
        skills.add_skill(late, "guitar", "intermediate")
        assert matching.refresh_matches(requester, request_id) == {'success': True, 'new_matches_count': 1}
        assert matching.refresh_matches(requester, request_id)['new_matches_count'] == 0

    def test_background_pass(self, app, requester, register):
        open_credit_request(requester)
        late = register("eve@example.com")
        skills.add_skill(late, "guitar", "beginner")
        assert matching.find_new_matches_for_open_requests() == 1

    def test_cancel_request(self, app, requester, provider):
        request_id = open_credit_request(requester)
        assert matching.cancel_request(requester, request_id) is True
        assert db.session.get(ServiceRequest, request_id).status == 'cancelled'
        assert SuggestedMatch.query.filter_by(request_id=request_id, status='pending').count() == 0
        assert matching.cancel_request(requester, request_id) is False

    def test_update_request_terms(self, app, requester):
        request_id = open_credit_request(requester)
        result = matching.update_request(requester, request_id, exchange_mode='skill_swap', skill_offered='Piano')
        assert result['success']
        request = matching.get_request(request_id)
        assert request['exchange_mode'] == 'skill_swap'
        assert request['skill_offered'] == 'piano'
        assert request['credit_amount'] is None

    def test_reported_request_hidden(self, app, requester, register):
        request_id = open_credit_request(requester)
        reporter = register("fay@example.com")
        assert matching.report_request(reporter, request_id, "Spam")['success']
        assert matching.get_open_requests() == []
        assert matching.search_requests("guitar") == []


class TestAcceptAndReject:
    def test_accept_creates_transaction(self, app, requester, provider, register):
        other = register("gus@example.com")
        skills.add_skill(other, "guitar", "beginner")
        request_id = open_credit_request(requester, credits=30)
        best, runner_up = matching.get_suggested_matches(requester, request_id)

        result = matching.accept_match(requester, best['id'])
        assert result['success']

        transaction = db.session.get(Transaction, result['transaction_id'])
        assert transaction.status == 'pending'
        assert transaction.credit_amount == 30
        assert transaction.provider_id == user_for(provider).id

        request = db.session.get(ServiceRequest, request_id)
        assert request.status == 'matched'
        assert request.matched_provider_id == user_for(provider).id
        assert db.session.get(SuggestedMatch, runner_up['id']).status == 'rejected'

    def test_accept_twice_fails(self, app, requester, provider):
        request_id = open_credit_request(requester)
        match_id = matching.get_suggested_matches(requester, request_id)[0]['id']
        assert matching.accept_match(requester, match_id)['success']
        assert not matching.accept_match(requester, match_id)['success']

    def test_only_requester_accepts(self, app, requester, provider):
        request_id = open_credit_request(requester)
        match_id = matching.get_suggested_matches(requester, request_id)[0]['id']
        assert matching.accept_match(provider, match_id) == {'success': False, 'error': "Unauthorized"}

    def test_accept_checks_balance(self, app, requester, provider):
        request_id = open_credit_request(requester, credits=90)
        match_id = matching.get_suggested_matches(requester, request_id)[0]['id']
        user_for(requester).credits = 10
        db.session.commit()
        assert matching.accept_match(requester, match_id)['error'] == "Insufficient credits"
        assert db.session.get(SuggestedMatch, match_id).status == 'pending'

    def test_reject_keeps_request_open(self, app, requester, provider):
        request_id = open_credit_request(requester)
        match_id = matching.get_suggested_matches(requester, request_id)[0]['id']
        assert matching.reject_match(requester, match_id) is True
        assert db.session.get(ServiceRequest, request_id).status == 'open'
        assert matching.get_suggested_matches(requester, request_id) == []


class TestNegotiation:
    def _match_id(self, requester, provider):
        request_id = open_credit_request(requester, credits=30)
        return request_id, matching.get_suggested_matches(requester, request_id)[0]['id']

    def test_counter_offer_round_trip(self, app, requester, provider):
        request_id, match_id = self._match_id(requester, provider)
        sent = matching.send_negotiation(requester, match_id, 'credit', proposed_credits=20, message="Lower?")
        assert sent['success']

        offers = matching.get_negotiations(provider, request_id)
        assert [o['proposed_credits'] for o in offers] == [20]
        assert matching.get_negotiations(requester, request_id) == []

        countered = matching.counter_offer(provider, sent['negotiation_id'], 'credit', proposed_credits=25)
        assert countered['success']
        assert db.session.get(Negotiation, sent['negotiation_id']).status == 'rejected'

        accepted = matching.respond_to_negotiation(requester, countered['negotiation_id'], True)
        assert accepted['success']
        transaction = db.session.get(Transaction, accepted['transaction_id'])
        assert transaction.credit_amount == 25
        assert user_for(requester).credits == 75

    def test_decline(self, app, requester, provider):
        request_id, match_id = self._match_id(requester, provider)
        sent = matching.send_negotiation(requester, match_id, 'skill_swap', proposed_skill_offered="Baking")
        result = matching.respond_to_negotiation(provider, sent['negotiation_id'], False)
        assert result == {'success': True, 'transaction_id': None}
        assert db.session.get(ServiceRequest, request_id).status == 'open'

    def test_only_one_pending_offer_per_match(self, app, requester, provider):
        _, match_id = self._match_id(requester, provider)
        assert matching.send_negotiation(requester, match_id, 'credit', proposed_credits=20)['success']
        second = matching.send_negotiation(requester, match_id, 'credit', proposed_credits=15)
        assert second['error'] == "A pending negotiation already exists for this match"

    def test_offer_with_string_credits_is_rejected(self, app, requester, provider):
        _, match_id = self._match_id(requester, provider)
        result = matching.send_negotiation(requester, match_id, 'credit', proposed_credits="20")
        assert result['error'] == "Credit amount must be a positive whole number"
        assert Negotiation.query.count() == 0

    def test_sender_cannot_answer_own_offer(self, app, requester, provider):
        _, match_id = self._match_id(requester, provider)
        sent = matching.send_negotiation(requester, match_id, 'credit', proposed_credits=20)
        result = matching.respond_to_negotiation(requester, sent['negotiation_id'], True)
        assert result['error'] == "Only the recipient can respond to this negotiation"

    def test_skill_swap_negotiation_moves_no_credits(self, app, requester, provider):
        _, match_id = self._match_id(requester, provider)
        sent = matching.send_negotiation(requester, match_id, 'skill_swap', proposed_skill_offered="Baking")
        accepted = matching.respond_to_negotiation(provider, sent['negotiation_id'], True)
        transaction = db.session.get(Transaction, accepted['transaction_id'])
        assert transaction.transaction_type == 'skill_swap'
        assert transaction.skill_offered == 'baking'
        assert user_for(requester).credits == 100


def test_inactive_provider_not_suggested(app, requester, provider):
    user_for(provider).is_active = False
    db.session.commit()
    request_id = open_credit_request(requester)
    assert matching.get_suggested_matches(requester, request_id) == []
    assert auth.validate_session(provider) is None
