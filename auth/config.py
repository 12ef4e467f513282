"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short durations,
    hours or days for longer ones) to make configuration intuitive.
    Secrets (signing key, database URL) are not configuration; they come
    from Vault via clients.vault_client.
    """

    # Credential hashing
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor (2^rounds iterations, ~100ms at 12)",
        ge=4,
        le=16,
    )

    # Session tokens
    session_expiry_days: int = Field(
        default=7,
        description="Session token lifetime in days",
        ge=1,
        le=90,
    )

    # Password reset
    reset_token_expiry_minutes: int = Field(
        default=60,
        description="How long password reset tokens remain valid",
        ge=5,
        le=1440,
    )

    # Login lockout
    login_max_attempts: int = Field(
        default=5,
        description="Failed logins per (email, IP) before lockout",
        ge=1,
        le=20,
    )
    login_lock_minutes: int = Field(
        default=15,
        description="Lockout duration once the attempt limit is reached",
        ge=1,
        le=1440,
    )
    login_attempt_retention_hours: int = Field(
        default=24,
        description="Unlocked attempt records older than this are purge-eligible",
        ge=1,
        le=720,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for password reset links",
    )
