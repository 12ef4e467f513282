"""
HashiCorp Vault client for auth secrets.

Uses AppRole authentication. Fails fast on missing configuration.
All paths scoped to 'authcore/' prefix - no escape to other secrets.
Holds the session signing key, the MongoDB connection settings, and the
email gateway credentials.
"""

import logging
import os
from typing import Dict

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "authcore"

# Singleton instance and cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


def reset_vault_cache() -> None:
    """Drop the singleton client and cached secrets (picks up new env vars)."""
    global _vault_client_instance
    _vault_client_instance = None
    _secret_cache.clear()


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        """Initialize with environment variables. Fails fast on missing config."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._authenticate_approle()

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _authenticate_approle(self) -> None:
        """Authenticate using AppRole credentials."""
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
            self.client.token = auth_response["auth"]["client_token"]
            logger.info("AppRole authentication successful")
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")

    def get_secret(self, path: str, field: str) -> str:
        """
        Retrieve single field from KV v2 secret.

        Path is automatically scoped to 'authcore/' prefix.
        Caller passes 'jwt', we access 'authcore/jwt'.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
            KeyError: Field not found in secret.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")

        secret_data = response["data"]["data"]
        if field not in secret_data:
            available = list(secret_data.keys())
            raise KeyError(
                f"Field '{field}' not found in secret '{full_path}'. "
                f"Available: {', '.join(available)}"
            )

        return secret_data[field]


def _get_cached_fields(path: str, fields: list[str]) -> Dict[str, str]:
    """Fetch several fields of one secret, serving repeats from the cache."""
    client = None
    result = {}

    for field in fields:
        cache_key = f"{_SECRET_PREFIX}/{path}/{field}"
        if cache_key not in _secret_cache:
            client = client or _ensure_vault_client()
            _secret_cache[cache_key] = client.get_secret(path, field)
        result[field] = _secret_cache[cache_key]

    return result


def get_signing_key() -> str:
    """Get the session token signing key. Rotating it invalidates all sessions."""
    return _get_cached_fields("jwt", ["signing_key"])["signing_key"]


def get_mongodb_config() -> Dict[str, str]:
    """Get MongoDB connection settings.

    Returns:
        Dict with keys: url, database
    """
    return _get_cached_fields("mongodb", ["url", "database"])


def get_email_config() -> Dict[str, str]:
    """Get email gateway configuration.

    Returns:
        Dict with keys: gateway_url, api_key, hmac_secret
    """
    return _get_cached_fields("email", ["gateway_url", "api_key", "hmac_secret"])
