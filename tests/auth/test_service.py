"""Tests for AuthService flows over the in-memory store and frozen clock."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from api.base import ErrorCodes
from auth.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from auth.reset_token import digest_reset_token
from auth.service import (
    FORGOT_PASSWORD_MESSAGE,
    INVALID_RESET_TOKEN_MESSAGE,
    AuthService,
)
from auth.types import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    Role,
    RoleChangeRequest,
)
from clients.document_store import DocumentStoreError

EMAIL = "a@x.com"
PASSWORD = "Str0ng!Pass"
NEW_PASSWORD = "N3w!Passw0rd"


def actions(store):
    return [doc["action"] for doc in store.find("activity_logs", {}, sort="created_at")]


def login(service, context, email=EMAIL, password=PASSWORD):
    return service.login(LoginRequest(email=email, password=password), context)


@pytest.fixture
def actor(registered, sessions):
    """Verified claims for the registered user."""
    return sessions.verify(registered.token)


@pytest.fixture
def admin(users, sessions, hasher):
    record = users.create_user(
        email="admin@x.com", password_hash=hasher.hash(PASSWORD), name="Root", role=Role.ADMIN
    )
    return sessions.verify(sessions.issue(record.id, record.email, Role.ADMIN))


class TestRegister:
    """Account creation."""

    def test_returns_token_and_profile(self, registered, sessions):
        assert registered.user.email == EMAIL
        assert registered.user.name == "Alice"
        assert registered.user.role == Role.USER
        assert sessions.verify(registered.token).user_id == registered.user.id

    def test_password_hashed(self, registered, users, hasher):
        record = users.get_by_email(EMAIL)

        assert record.password_hash != PASSWORD
        assert hasher.verify(PASSWORD, record.password_hash)

    def test_profile_has_no_hash(self, registered):
        assert "password_hash" not in registered.user.model_dump()

    def test_duplicate_email(self, auth_service, registered, context):
        with pytest.raises(ValidationError, match="Email already exists") as exc_info:
            auth_service.register(
                RegisterRequest(email="A@X.com", password=PASSWORD), context
            )
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == ErrorCodes.ALREADY_EXISTS

    def test_weak_password_surfaces_hints(self, auth_service, context, users):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.register(RegisterRequest(email=EMAIL, password="lowercaseonly"), context)

        assert exc_info.value.code == ErrorCodes.WEAK_PASSWORD
        assert "Include a number" in exc_info.value.hints
        assert users.get_by_email(EMAIL) is None

    def test_concurrent_duplicate_rejected(self, auth_service, context, users, store):
        """Two registrations that both pass the lookup: the second is refused."""
        with patch.object(users, "get_by_email", return_value=None):
            auth_service.register(RegisterRequest(email="dup@x.com", password=PASSWORD), context)
            with pytest.raises(ValidationError, match="Email already exists") as exc_info:
                auth_service.register(
                    RegisterRequest(email="dup@x.com", password=PASSWORD), context
                )

        assert exc_info.value.code == ErrorCodes.ALREADY_EXISTS
        assert store.count("users", {"email": "dup@x.com"}) == 1
        assert actions(store) == ["REGISTER"]

    @pytest.mark.parametrize("role", [1, ["admin"], {"role": "admin"}, ""])
    def test_non_string_role_ignored(self, auth_service, context, role):
        session = auth_service.register(
            RegisterRequest(email=EMAIL, password=PASSWORD, role=role), context
        )
        assert session.user.role == Role.USER

    def test_requested_admin_role_ignored(self, auth_service, context, users, sessions):
        session = auth_service.register(
            RegisterRequest(email=EMAIL, password=PASSWORD, role="admin"), context
        )

        assert session.user.role == Role.USER
        assert users.get_by_email(EMAIL).role == Role.USER
        assert sessions.verify(session.token).role == Role.USER

    def test_audited(self, registered, store):
        assert actions(store) == ["REGISTER"]

    def test_failure_not_audited(self, auth_service, context, store):
        with pytest.raises(ValidationError):
            auth_service.register(RegisterRequest(email=EMAIL, password="weak"), context)
        assert actions(store) == []


class TestLogin:
    """Credential verification and lockout."""

    def test_success(self, auth_service, registered, context, sessions):
        session = login(auth_service, context)

        assert session.user.id == registered.user.id
        assert sessions.verify(session.token).email == EMAIL

    def test_email_case_insensitive(self, auth_service, registered, context):
        assert login(auth_service, context, email="A@X.COM").user.email == EMAIL

    def test_audited(self, auth_service, registered, context, store):
        login(auth_service, context)
        assert actions(store) == ["REGISTER", "LOGIN"]

    def test_wrong_password(self, auth_service, registered, context, store):
        with pytest.raises(AuthenticationError) as exc_info:
            login(auth_service, context, password="Wr0ng!Pass")

        assert exc_info.value.message == "Invalid credentials"
        assert exc_info.value.remaining_attempts == 4
        assert actions(store) == ["REGISTER"]

    def test_unknown_email_indistinguishable(self, auth_service, registered, context):
        with pytest.raises(AuthenticationError) as unknown:
            login(auth_service, context, email="nobody@x.com")
        with pytest.raises(AuthenticationError) as wrong:
            login(auth_service, context, password="Wr0ng!Pass")

        assert unknown.value.message == wrong.value.message
        assert unknown.value.code == wrong.value.code
        assert unknown.value.remaining_attempts == wrong.value.remaining_attempts

    def test_unknown_email_spends_bcrypt(self, auth_service, hasher, context):
        with patch.object(hasher, "dummy_verify") as dummy:
            with pytest.raises(AuthenticationError):
                login(auth_service, context, email="nobody@x.com")
        dummy.assert_called_once_with(PASSWORD)

    def test_success_clears_attempts(self, auth_service, registered, context, store):
        for _ in range(3):
            with pytest.raises(AuthenticationError):
                login(auth_service, context, password="Wr0ng!Pass")

        login(auth_service, context)

        assert store.count("login_attempts") == 0

    def test_lockout_then_recovery(self, auth_service, registered, context, clock):
        for _ in range(5):
            with pytest.raises(AuthenticationError):
                login(auth_service, context, password="Wr0ng!Pass")

        with pytest.raises(RateLimitedError) as exc_info:
            login(auth_service, context)
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after_seconds == 15 * 60
        assert "15 minutes" in exc_info.value.message

        clock.advance(minutes=15)
        assert login(auth_service, context).user.email == EMAIL

    def test_locked_login_skips_hasher(self, auth_service, registered, context, hasher):
        for _ in range(5):
            with pytest.raises(AuthenticationError):
                login(auth_service, context, password="Wr0ng!Pass")

        with patch.object(hasher, "verify") as verify, patch.object(hasher, "dummy_verify") as dummy:
            with pytest.raises(RateLimitedError):
                login(auth_service, context)

        verify.assert_not_called()
        dummy.assert_not_called()

    def test_lockout_scoped_to_origin(self, auth_service, registered, context):
        for _ in range(5):
            with pytest.raises(AuthenticationError):
                login(auth_service, context, password="Wr0ng!Pass")

        other = context.model_copy(update={"ip_address": "9.9.9.9"})
        assert login(auth_service, other).user.email == EMAIL

    def test_last_failure_has_no_remaining(self, auth_service, registered, context):
        for _ in range(4):
            with pytest.raises(AuthenticationError):
                login(auth_service, context, password="Wr0ng!Pass")

        with pytest.raises(AuthenticationError) as exc_info:
            login(auth_service, context, password="Wr0ng!Pass")
        assert exc_info.value.remaining_attempts is None

    def test_audit_failure_does_not_fail_login(self, auth_service, registered, context, store):
        with patch.object(store, "insert_one", side_effect=RuntimeError("down")):
            session = login(auth_service, context)
        assert session.token


class TestForgotPassword:
    """Anti-enumeration reset request."""

    def test_same_message_for_unknown_and_known(self, auth_service, registered, context):
        unknown = auth_service.forgot_password(
            ForgotPasswordRequest(email="nobody@x.com"), context
        )
        known = auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)

        assert unknown == known == FORGOT_PASSWORD_MESSAGE

    def test_token_delivered_not_returned(self, auth_service, registered, context, notifier, users):
        message = auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)
        token = notifier.last_token_for(EMAIL)

        assert token is not None
        assert token not in message
        assert users.get_by_email(EMAIL).reset_token_digest != token

    def test_unknown_email_sends_nothing(self, auth_service, context, notifier, store):
        auth_service.forgot_password(ForgotPasswordRequest(email="nobody@x.com"), context)

        assert notifier.sent == {}
        assert actions(store) == []

    def test_notifier_failure_hidden(self, auth_service, registered, context, notifier):
        with patch.object(notifier, "send", side_effect=RuntimeError("smtp down")):
            message = auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)
        assert message == FORGOT_PASSWORD_MESSAGE

    def test_store_failure_hidden(self, auth_service, registered, context, store, notifier):
        """A users-collection outage must not reveal that the account exists."""
        with patch.object(store, "update_one", side_effect=DocumentStoreError("down")):
            known = auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)
        unknown = auth_service.forgot_password(ForgotPasswordRequest(email="nobody@x.com"), context)

        assert known == unknown == FORGOT_PASSWORD_MESSAGE
        assert notifier.sent == {}
        assert actions(store) == ["REGISTER"]

    def test_audited(self, auth_service, registered, context, store):
        auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)
        assert actions(store) == ["REGISTER", "PASSWORD_RESET_REQUEST"]


class TestResetPassword:
    """Token-based password reset."""

    @pytest.fixture
    def reset_token(self, auth_service, registered, context, notifier):
        auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)
        return notifier.last_token_for(EMAIL)

    def test_reset_then_login(self, auth_service, reset_token, context):
        auth_service.reset_password(
            ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD), context
        )

        assert login(auth_service, context, password=NEW_PASSWORD).user.email == EMAIL
        with pytest.raises(AuthenticationError):
            login(auth_service, context)

    def test_token_single_use(self, auth_service, reset_token, context):
        request = ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD)
        auth_service.reset_password(request, context)

        with pytest.raises(ValidationError, match=INVALID_RESET_TOKEN_MESSAGE):
            auth_service.reset_password(request, context)

    def test_expired_same_as_unknown(self, auth_service, reset_token, context, clock):
        with pytest.raises(ValidationError) as unknown:
            auth_service.reset_password(
                ResetPasswordRequest(token="not-a-real-token", password=NEW_PASSWORD), context
            )

        clock.advance(minutes=60)
        with pytest.raises(ValidationError) as expired:
            auth_service.reset_password(
                ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD), context
            )

        assert unknown.value.message == expired.value.message == INVALID_RESET_TOKEN_MESSAGE
        assert unknown.value.code == expired.value.code == ErrorCodes.INVALID_TOKEN

    def test_valid_just_before_expiry(self, auth_service, reset_token, context, clock):
        clock.advance(minutes=59)
        auth_service.reset_password(
            ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD), context
        )

    def test_weak_password_keeps_token(self, auth_service, reset_token, context, users):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.reset_password(
                ResetPasswordRequest(token=reset_token, password="lowercaseonly"), context
            )

        assert exc_info.value.code == ErrorCodes.WEAK_PASSWORD
        assert users.get_by_email(EMAIL).reset_token_digest is not None

    def test_digest_cleared(self, auth_service, reset_token, context, users):
        auth_service.reset_password(
            ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD), context
        )
        record = users.get_by_email(EMAIL)

        assert record.reset_token_digest is None
        assert record.reset_token_expires_at is None

    def test_newer_token_supersedes(self, auth_service, reset_token, context, notifier):
        auth_service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)

        with pytest.raises(ValidationError):
            auth_service.reset_password(
                ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD), context
            )
        auth_service.reset_password(
            ResetPasswordRequest(token=notifier.last_token_for(EMAIL), password=NEW_PASSWORD),
            context,
        )

    def test_audited(self, auth_service, reset_token, context, store):
        auth_service.reset_password(
            ResetPasswordRequest(token=reset_token, password=NEW_PASSWORD), context
        )
        assert actions(store)[-1] == "PASSWORD_RESET"


class TestChangePassword:
    """Authenticated password change."""

    def test_success(self, auth_service, actor, context, store):
        auth_service.change_password(
            actor,
            ChangePasswordRequest(current_password=PASSWORD, new_password=NEW_PASSWORD),
            context,
        )

        assert login(auth_service, context, password=NEW_PASSWORD).user.email == EMAIL
        assert "PASSWORD_CHANGE" in actions(store)

    def test_wrong_current_password(self, auth_service, actor, context, store):
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            auth_service.change_password(
                actor,
                ChangePasswordRequest(current_password="Wr0ng!Pass", new_password=NEW_PASSWORD),
                context,
            )
        assert actions(store) == ["REGISTER"]

    def test_weak_new_password(self, auth_service, actor, context):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.change_password(
                actor,
                ChangePasswordRequest(current_password=PASSWORD, new_password="short"),
                context,
            )
        assert exc_info.value.hints

    def test_requires_identity(self, auth_service, context):
        with pytest.raises(AuthenticationError):
            auth_service.change_password(
                None,
                ChangePasswordRequest(current_password=PASSWORD, new_password=NEW_PASSWORD),
                context,
            )


class TestDeleteAccount:
    """Authenticated account deletion."""

    def test_success(self, auth_service, actor, context, users, store):
        auth_service.delete_account(actor, DeleteAccountRequest(password=PASSWORD), context)

        assert users.get_by_email(EMAIL) is None
        assert actions(store)[-1] == "ACCOUNT_DELETE"

    def test_wrong_password(self, auth_service, actor, context, users):
        with pytest.raises(AuthenticationError):
            auth_service.delete_account(actor, DeleteAccountRequest(password="Wr0ng!Pass"), context)
        assert users.get_by_email(EMAIL) is not None

    def test_already_deleted(self, auth_service, actor, context):
        auth_service.delete_account(actor, DeleteAccountRequest(password=PASSWORD), context)

        with pytest.raises(NotFoundError):
            auth_service.delete_account(actor, DeleteAccountRequest(password=PASSWORD), context)

    def test_requires_identity(self, auth_service, context):
        with pytest.raises(AuthenticationError):
            auth_service.delete_account(None, DeleteAccountRequest(password=PASSWORD), context)


class TestChangeRole:
    """Admin-only elevation."""

    def test_admin_promotes_user(self, auth_service, admin, registered, context, users, store):
        profile = auth_service.change_role(
            admin, registered.user.id, RoleChangeRequest(role=Role.ADMIN), context
        )

        assert profile.role == Role.ADMIN
        assert users.get_by_id(registered.user.id).role == Role.ADMIN

        entry = store.find_one("activity_logs", {"action": "ROLE_CHANGE"})
        assert entry["user_email"] == "admin@x.com"
        assert entry["target_user_id"] == registered.user.id
        assert entry["metadata"] == {"new_role": "admin"}

    def test_user_cannot_elevate_self(self, auth_service, actor, registered, context, users):
        with pytest.raises(AuthorizationError):
            auth_service.change_role(
                actor, registered.user.id, RoleChangeRequest(role=Role.ADMIN), context
            )
        assert users.get_by_id(registered.user.id).role == Role.USER

    def test_unknown_target(self, auth_service, admin, context):
        with pytest.raises(NotFoundError):
            auth_service.change_role(admin, "nope", RoleChangeRequest(role=Role.ADMIN), context)

    def test_old_token_keeps_old_role(self, auth_service, admin, registered, context, sessions):
        auth_service.change_role(
            admin, registered.user.id, RoleChangeRequest(role=Role.ADMIN), context
        )
        assert sessions.verify(registered.token).role == Role.USER


class TestGetProfile:
    """Current user lookup."""

    def test_profile(self, auth_service, actor):
        assert auth_service.get_profile(actor).email == EMAIL

    def test_deleted_user(self, auth_service, actor, users):
        users.delete_user(actor.user_id)

        with pytest.raises(NotFoundError):
            auth_service.get_profile(actor)


class TestNotifierWiring:
    """Production-style notifier receives the raw token."""

    def test_custom_notifier(self, config, users, hasher, sessions, attempts, activity, clock, context):
        notifier = MagicMock()
        service = AuthService(config, users, hasher, sessions, attempts, activity, notifier, clock)
        users.create_user(email=EMAIL, password_hash=hasher.hash(PASSWORD))

        service.forgot_password(ForgotPasswordRequest(email=EMAIL), context)

        email, token = notifier.send.call_args.args
        assert email == EMAIL
        assert users.find_by_reset_digest(
            digest_reset_token(token),
            clock.now() + timedelta(minutes=1),
        ) is not None
