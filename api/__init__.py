"""Response envelope shared by the auth request handlers."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    APIResult,
    success_response,
    error_response,
    ErrorCodes,
)
