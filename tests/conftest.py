import pytest

from skillswap import auth, create_app, db, matching, skills
from skillswap.models import User

PASSWORD = "correct horse battery"


@pytest.fixture
def app():
    app = create_app('skillswap.config.TestConfig')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(app):
    """Register a user and return its session token."""
    def _register(email, name=None, password=PASSWORD):
        result = auth.register(email, password, name or email.split('@')[0].title())
        assert result['success'], result
        return result['token']
    return _register


@pytest.fixture
def requester(register):
    return register("alice@example.com", "Alice")


@pytest.fixture
def provider(register):
    token = register("bob@example.com", "Bob")
    assert skills.add_skill(token, "Guitar", "expert")['success']
    return token


@pytest.fixture
def admin_token(app):
    assert auth.create_admin("admin@example.com", PASSWORD, "Admin")['success']
    return auth.login("admin@example.com", PASSWORD)['token']


def user_for(token):
    return db.session.get(User, auth.validate_session(token).user_id)


def open_credit_request(token, credits=30, skill="guitar", title="Guitar lessons"):
    result = matching.create_request(token, title, "Teach me some chords", skill, 'credit', credit_amount=credits)
    assert result['success'], result
    return result['request_id']


def accepted_transaction(requester_token, provider_token, credits=30):
    """Create a credit request, accept the provider's match and return the transaction id."""
    request_id = open_credit_request(requester_token, credits=credits)
    match = matching.get_suggested_matches(requester_token, request_id)[0]
    assert match['provider_id'] == user_for(provider_token).id
    result = matching.accept_match(requester_token, match['id'])
    assert result['success'], result
    return result['transaction_id']


def completed_transaction(requester_token, provider_token, credits=30):
    from skillswap import transactions

    transaction_id = accepted_transaction(requester_token, provider_token, credits=credits)
    assert transactions.start_transaction(provider_token, transaction_id)['success']
    assert transactions.confirm_completion(requester_token, transaction_id)['success']
    assert transactions.confirm_completion(provider_token, transaction_id)['completed']
    return transaction_id
