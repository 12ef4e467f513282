"""Assembly of the auth components around one document store.

The store handle is created once by the caller and passed in; nothing here
keeps module-level connection state.
"""

import logging

from auth.activity_log import ActivityLogger
from auth.api import AuthHandlers
from auth.config import AuthConfig
from auth.database import UserDatabase
from auth.login_attempts import LoginAttemptTracker
from auth.notifier import EmailNotifier, ResetNotifier
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.session import SessionManager
from clients.document_store import DocumentStore
from clients.email_client import EmailGatewayClient
from clients.mongo_client import MongoDocumentStore
from clients.vault_client import get_email_config, get_mongodb_config, get_signing_key
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def create_mongo_store() -> MongoDocumentStore:
    """Connect to the MongoDB named in Vault."""
    settings = get_mongodb_config()
    return MongoDocumentStore(settings["url"], settings["database"])


def create_email_notifier(config: AuthConfig) -> EmailNotifier:
    """Reset notifier backed by the email gateway credentials in Vault."""
    return EmailNotifier(EmailGatewayClient(**get_email_config()), config)


def create_auth_handlers(
    store: DocumentStore,
    config: AuthConfig | None = None,
    notifier: ResetNotifier | None = None,
    signing_key: str | None = None,
    clock: Clock | None = None,
) -> AuthHandlers:
    """Wire every auth component around store.

    Ensures the store's indexes first; duplicate emails and attempt keys
    are rejected by them.

    Args:
        store: Document store shared by users, attempts, and activity logs
        config: Auth settings (defaults when omitted)
        notifier: Reset token delivery (email gateway from Vault when omitted)
        signing_key: Session signing key (read from Vault when omitted)
        clock: Time source (system clock when omitted)
    """
    store.ensure_indexes()
    config = config or AuthConfig()
    clock = clock or SystemClock()
    sessions = SessionManager(signing_key or get_signing_key(), config, clock)

    service = AuthService(
        config=config,
        users=UserDatabase(store, clock),
        hasher=PasswordHasher(config.bcrypt_rounds),
        sessions=sessions,
        attempts=LoginAttemptTracker(store, config, clock),
        activity=ActivityLogger(store, clock),
        notifier=notifier or create_email_notifier(config),
        clock=clock,
    )
    logger.info("Auth service assembled")
    return AuthHandlers(service, sessions)
