"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    RateLimitedError,
    NotFoundError,
    InternalError,
)
from auth.types import (
    Role,
    StrengthTier,
    PasswordStrength,
    UserRecord,
    PublicProfile,
    SessionClaims,
    AuthSession,
    AttemptCheck,
    ActivityAction,
    ActivityLogEntry,
    RequestContext,
)
from auth.config import AuthConfig
from auth.password_strength import evaluate_password
from auth.passwords import PasswordHasher
from auth.reset_token import generate_reset_token, digest_reset_token
from auth.session import SessionManager
from auth.login_attempts import LoginAttemptTracker
from auth.activity_log import ActivityLogger
from auth.database import UserDatabase
from auth.notifier import ResetNotifier, EmailNotifier, LoggingNotifier
from auth.service import AuthService
from auth.api import AuthHandlers
from auth.factory import create_auth_handlers, create_mongo_store
