from datetime import timedelta

from conftest import PASSWORD, user_for
from skillswap import auth, db
from skillswap.models import CreditHistory, Session, utcnow
from skillswap.utils import TOKEN_ALPHABET, TOKEN_LENGTH


class TestRegistration:
    def test_register_grants_starting_credits(self, app):
        result = auth.register("Carol@Example.com", PASSWORD, "Carol")
        assert result['success']
        user = user_for(result['token'])
        assert user.email == "carol@example.com"
        assert user.credits == 100
        history = CreditHistory.query.filter_by(user_id=user.id).all()
        assert [(h.type, h.amount, h.balance_after) for h in history] == [('initial', 100, 100)]

    def test_duplicate_email_rejected(self, app, register):
        register("dave@example.com")
        result = auth.register("DAVE@example.com", PASSWORD, "Dave again")
        assert result == {'success': False, 'error': "Email already registered"}

    def test_missing_fields_rejected(self, app):
        assert not auth.register("", PASSWORD, "Nobody")['success']
        assert not auth.register("x@example.com", "", "Nobody")['success']

    def test_token_shape(self, app, register):
        token = register("erin@example.com")
        assert len(token) == TOKEN_LENGTH
        assert set(token) <= set(TOKEN_ALPHABET)

    def test_password_is_hashed(self, app, register):
        token = register("frank@example.com")
        assert user_for(token).password_hash != PASSWORD


class TestLogin:
    def test_login_returns_role(self, app, register):
        register("gina@example.com")
        result = auth.login("gina@example.com", PASSWORD)
        assert result['success']
        assert result['role'] == 'user'
        assert auth.validate_session(result['token']) is not None

    def test_wrong_password(self, app, register):
        register("hank@example.com")
        assert auth.login("hank@example.com", "nope") == {
            'success': False, 'error': "Invalid email or password",
        }

    def test_unknown_email(self, app):
        assert auth.login("ghost@example.com", PASSWORD)['error'] == "Invalid email or password"

    def test_deactivated_account(self, app, register):
        token = register("ivy@example.com")
        user_for(token).is_active = False
        db.session.commit()
        assert auth.login("ivy@example.com", PASSWORD)['error'] == "Account is deactivated"

    def test_suspended_account(self, app, register):
        token = register("jack@example.com")
        user_for(token).suspended_until = utcnow() + timedelta(days=2)
        db.session.commit()
        assert auth.login("jack@example.com", PASSWORD)['error'] == "Account is suspended"
        assert auth.validate_session(token) is None


class TestSessions:
    def test_expired_session_is_invalid(self, app, register):
        token = register("kim@example.com")
        session = Session.query.filter_by(token=token).first()
        session.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()
        assert auth.validate_session(token) is None

    def test_session_lasts_seven_days(self, app, register):
        token = register("lee@example.com")
        session = Session.query.filter_by(token=token).first()
        remaining = session.expires_at - utcnow()
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

    def test_unknown_and_empty_tokens(self, app):
        assert auth.validate_session("x" * 64) is None
        assert auth.validate_session(None) is None
        assert auth.current_user("") is None

    def test_logout_invalidates(self, app, register):
        token = register("mo@example.com")
        assert auth.logout(token) is True
        assert auth.validate_session(token) is None
        assert auth.logout(token) is True

    def test_change_password(self, app, register):
        token = register("ned@example.com")
        assert auth.change_password(token, "wrong", "new-secret")['error'] == "Current password is incorrect"
        assert auth.change_password(token, PASSWORD, "new-secret")['success']
        assert auth.login("ned@example.com", "new-secret")['success']


class TestAdminBootstrap:
    def test_create_admin_gets_admin_credits(self, app):
        result = auth.create_admin("root@example.com", PASSWORD, "Root")
        assert result['success']
        login = auth.login("root@example.com", PASSWORD)
        assert login['role'] == 'admin'
        assert user_for(login['token']).credits == 1000

    def test_promote_only_once(self, app, register):
        register("olga@example.com")
        register("pete@example.com")
        assert auth.promote_to_admin("olga@example.com")['success']
        assert auth.promote_to_admin("pete@example.com") == {'success': False, 'error': "Admin already exists"}
