"""Authentication service - orchestrates the account and password flows."""

import logging

from api.base import ErrorCodes
from auth.activity_log import ActivityLogger
from auth.config import AuthConfig
from auth.database import UserDatabase
from auth.exceptions import (
    AuthenticationError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from auth.guards import require_admin, require_authenticated
from auth.login_attempts import LoginAttemptTracker
from auth.notifier import ResetNotifier
from auth.password_strength import evaluate_password
from auth.passwords import PasswordHasher
from auth.reset_token import digest_reset_token, generate_reset_token, reset_token_expiry
from auth.session import SessionManager
from auth.types import (
    ActivityAction,
    ActivityLogEntry,
    AuthSession,
    ChangePasswordRequest,
    DeleteAccountRequest,
    ForgotPasswordRequest,
    LoginRequest,
    PublicProfile,
    RegisterRequest,
    RequestContext,
    ResetPasswordRequest,
    Role,
    RoleChangeRequest,
    SessionClaims,
    UserRecord,
)
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired token"
WEAK_PASSWORD_MESSAGE = "Password does not meet security requirements"


class AuthService:
    """Orchestrates authentication flows.

    Handles:
    - Registration (always as a plain user)
    - Login (lockout check, enumeration-safe failures)
    - Forgot/reset password (enumeration-safe, single-use tokens)
    - Change password and delete account (re-verify current password)
    - Admin-only role changes

    Every flow raises an AuthError subclass on failure. Successful state
    changes append exactly one activity log entry; failures are never audited.
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserDatabase,
        hasher: PasswordHasher,
        sessions: SessionManager,
        attempts: LoginAttemptTracker,
        activity: ActivityLogger,
        notifier: ResetNotifier,
        clock: Clock | None = None,
    ):
        self._config = config
        self._users = users
        self._hasher = hasher
        self._sessions = sessions
        self._attempts = attempts
        self._activity = activity
        self._notifier = notifier
        self._clock = clock or SystemClock()

    def _require_strong(self, password: str) -> None:
        """Raises ValidationError (with hints) if password fails the gate."""
        strength = evaluate_password(password)
        if not strength.acceptable:
            raise ValidationError(
                WEAK_PASSWORD_MESSAGE, hints=strength.hints, code=ErrorCodes.WEAK_PASSWORD
            )

    def _issue_session(self, user: UserRecord) -> AuthSession:
        token = self._sessions.issue(user.id, user.email, user.role)
        return AuthSession(token=token, user=user.to_profile())

    def _log_activity(
        self,
        user: UserRecord,
        action: ActivityAction,
        description: str,
        context: RequestContext,
        target: UserRecord | None = None,
        metadata: dict | None = None,
    ) -> None:
        self._activity.append(
            ActivityLogEntry(
                user_id=user.id,
                user_name=user.name,
                user_email=user.email,
                action=action,
                description=description,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                target_user_id=target.id if target else None,
                target_user_name=target.name if target else None,
                metadata=metadata,
            )
        )

    def _load_actor(self, actor: SessionClaims | None) -> UserRecord:
        actor = require_authenticated(actor)
        user = self._users.get_by_id(actor.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def register(self, request: RegisterRequest, context: RequestContext) -> AuthSession:
        """Create an account and sign the new user in.

        Raises:
            ValidationError: If the email is taken or the password is weak.
        """
        email = request.email

        if request.role is not None and request.role != Role.USER.value:
            # Elevation only happens through change_role by an admin
            logger.warning(f"Ignoring requested role {request.role!r} on registration for {email}")

        if self._users.get_by_email(email) is not None:
            raise ValidationError("Email already exists", code=ErrorCodes.ALREADY_EXISTS)

        self._require_strong(request.password)

        user = self._users.create_user(
            email=email,
            password_hash=self._hasher.hash(request.password),
            name=request.name,
            country=request.country,
            role=Role.USER,
        )
        logger.info(f"User registered: {user.email}")

        session = self._issue_session(user)
        self._log_activity(user, ActivityAction.REGISTER, "Registered an account", context)
        return session

    def login(self, request: LoginRequest, context: RequestContext) -> AuthSession:
        """Verify credentials and issue a session token.

        Flow:
        1. Consult the attempt tracker; locked keys are rejected before any
           credential comparison
        2. Unknown email and wrong password fail identically
        3. Success clears the attempt record

        Raises:
            RateLimitedError: If (email, IP) is locked out.
            AuthenticationError: On bad credentials (with remaining attempts).
        """
        email = request.email
        ip_address = context.ip_address

        check = self._attempts.check(email, ip_address)
        if not check.allowed:
            logger.warning(f"Login blocked by lockout for {email} from {ip_address}")
            raise RateLimitedError(
                retry_after_seconds=check.retry_after_seconds or self._config.login_lock_minutes * 60,
                message=check.message,
            )

        user = self._users.get_by_email(email)
        if user is None:
            self._hasher.dummy_verify(request.password)
            raise self._login_failure(email, ip_address)

        if not self._hasher.verify(request.password, user.password_hash):
            raise self._login_failure(email, ip_address)

        self._attempts.clear(email, ip_address)

        session = self._issue_session(user)
        self._log_activity(user, ActivityAction.LOGIN, "Logged in", context)
        return session

    def _login_failure(self, email: str, ip_address: str) -> AuthenticationError:
        remaining = self._attempts.record_failure(email, ip_address)
        logger.warning(f"Failed login for {email} from {ip_address} ({remaining} attempts left)")
        return AuthenticationError(
            "Invalid credentials",
            remaining_attempts=remaining if remaining > 0 else None,
        )

    def forgot_password(self, request: ForgotPasswordRequest, context: RequestContext) -> str:
        """Start a password reset.

        Returns the same message whether or not the account exists. For an
        existing account a fresh token is stored (as a digest) and handed to
        the notifier; it is never returned to the caller.
        """
        user = self._users.get_by_email(request.email)
        if user is None:
            logger.info(f"Password reset requested for unknown email {request.email}")
            return FORGOT_PASSWORD_MESSAGE

        token = generate_reset_token()
        expires_at = reset_token_expiry(self._clock.now(), self._config)

        # Failures below must not make the response differ from the unknown-email case
        try:
            self._users.store_reset_token(user.id, digest_reset_token(token), expires_at)
        except Exception:
            logger.exception(f"Failed to store password reset token for {user.email}")
            return FORGOT_PASSWORD_MESSAGE

        try:
            self._notifier.send(user.email, token)
        except Exception:
            logger.exception(f"Failed to deliver password reset to {user.email}")

        self._log_activity(
            user, ActivityAction.PASSWORD_RESET_REQUEST, "Requested a password reset", context
        )
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, request: ResetPasswordRequest, context: RequestContext) -> str:
        """Set a new password using a reset token.

        Unknown and expired tokens fail with the same error.

        Raises:
            ValidationError: Invalid/expired token or weak password.
        """
        digest = digest_reset_token(request.token)
        user = self._users.find_by_reset_digest(digest, self._clock.now())
        if user is None:
            raise ValidationError(INVALID_RESET_TOKEN_MESSAGE, code=ErrorCodes.INVALID_TOKEN)

        self._require_strong(request.password)

        consumed = self._users.update_password(
            user.id,
            self._hasher.hash(request.password),
            consume_reset_digest=digest,
        )
        if not consumed:
            # Token used by a concurrent reset
            raise ValidationError(INVALID_RESET_TOKEN_MESSAGE, code=ErrorCodes.INVALID_TOKEN)

        logger.info(f"Password reset completed for {user.email}")
        self._log_activity(user, ActivityAction.PASSWORD_RESET, "Reset password", context)
        return "Password has been reset successfully."

    def change_password(
        self,
        actor: SessionClaims | None,
        request: ChangePasswordRequest,
        context: RequestContext,
    ) -> str:
        """Change the authenticated user's password.

        Raises:
            AuthenticationError: Not authenticated or current password wrong.
            ValidationError: New password is weak.
            NotFoundError: Account no longer exists.
        """
        require_authenticated(actor)
        self._require_strong(request.new_password)

        user = self._load_actor(actor)
        if not self._hasher.verify(request.current_password, user.password_hash):
            raise AuthenticationError(
                "Current password is incorrect", code=ErrorCodes.INVALID_CREDENTIALS
            )

        self._users.update_password(user.id, self._hasher.hash(request.new_password))

        logger.info(f"Password changed for {user.email}")
        self._log_activity(user, ActivityAction.PASSWORD_CHANGE, "Changed password", context)
        return "Password changed successfully."

    def delete_account(
        self,
        actor: SessionClaims | None,
        request: DeleteAccountRequest,
        context: RequestContext,
    ) -> str:
        """Delete the authenticated user's account after re-checking the password.

        Outstanding session tokens stay valid until they expire.
        """
        user = self._load_actor(actor)
        if not self._hasher.verify(request.password, user.password_hash):
            raise AuthenticationError("Password is incorrect", code=ErrorCodes.INVALID_CREDENTIALS)

        if not self._users.delete_user(user.id):
            raise NotFoundError("User not found")

        logger.info(f"Account deleted: {user.email}")
        self._log_activity(user, ActivityAction.ACCOUNT_DELETE, "Deleted account", context)
        return "Account deleted."

    def change_role(
        self,
        actor: SessionClaims | None,
        user_id: str,
        request: RoleChangeRequest,
        context: RequestContext,
    ) -> PublicProfile:
        """Admin-only: set another user's role.

        The target's existing tokens keep their old role until reissued.

        Raises:
            AuthorizationError: Actor is not an admin.
            NotFoundError: Target user does not exist.
        """
        require_admin(actor)
        admin = self._load_actor(actor)

        if not self._users.update_role(user_id, request.role):
            raise NotFoundError("User not found")
        target = self._users.get_by_id(user_id)
        if target is None:
            raise NotFoundError("User not found")

        logger.info(f"Role of {target.email} set to {request.role.value} by {admin.email}")
        self._log_activity(
            admin,
            ActivityAction.ROLE_CHANGE,
            f"Changed role of {target.name or target.email} to {request.role.value}",
            context,
            target=target,
            metadata={"new_role": request.role.value},
        )
        return target.to_profile()

    def get_profile(self, actor: SessionClaims | None) -> PublicProfile:
        """Public profile of the authenticated user."""
        return self._load_actor(actor).to_profile()
