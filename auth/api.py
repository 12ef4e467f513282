"""Request handlers for the auth operations.

Framework-agnostic: each handler takes the decoded JSON payload, the raw
Authorization header value where the operation needs an identity, and the
caller's RequestContext. It returns an APIResult carrying the
HTTP-status-equivalent code and the unified response envelope. Nothing
raises out of a handler.
"""

import logging
from typing import Any, Callable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from api.base import APIResult, ErrorCodes, error_response, success_response
from auth.exceptions import (
    AuthenticationError,
    AuthError,
    InternalError,
    RateLimitedError,
    ValidationError,
)
from auth.guards import authenticate_bearer
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    RequestContext,
    ResetPasswordRequest,
    RoleChangeRequest,
)
from clients.document_store import DocumentStoreError

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: PydanticValidationError) -> str:
    """First problem in a pydantic error, phrased for a client."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if first.get("type") == "missing":
        return f"Missing required field: {location}"
    return f"Invalid {location}: {first.get('msg')}" if location else str(first.get("msg"))


def _error_result(exc: AuthError) -> APIResult:
    details: dict[str, Any] = {}
    headers: dict[str, str] = {}

    if isinstance(exc, ValidationError) and exc.hints:
        details["hints"] = exc.hints
    if isinstance(exc, AuthenticationError) and exc.remaining_attempts is not None:
        details["remaining_attempts"] = exc.remaining_attempts
    if isinstance(exc, RateLimitedError):
        details["retry_after_seconds"] = exc.retry_after_seconds
        headers["Retry-After"] = str(exc.retry_after_seconds)

    return APIResult(
        status_code=exc.status_code,
        response=error_response(exc.code, exc.message, details or None),
        headers=headers,
    )


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class AuthHandlers:
    """Maps auth operations onto status-coded results."""

    def __init__(self, service: AuthService, sessions: SessionManager):
        self._service = service
        self._sessions = sessions

    def _run(self, operation: Callable[[], Any], status_code: int = 200) -> APIResult:
        try:
            data = operation()
        except PydanticValidationError as e:
            return APIResult(
                status_code=400,
                response=error_response(ErrorCodes.INVALID_REQUEST, _describe_validation_error(e)),
            )
        except AuthError as e:
            return _error_result(e)
        except DocumentStoreError:
            logger.exception("Document store failure in auth handler")
            return _error_result(InternalError())
        except Exception:
            logger.exception("Unhandled error in auth handler")
            return _error_result(InternalError())

        return APIResult(status_code=status_code, response=success_response(_dump(data)))

    @staticmethod
    def _context(context: RequestContext | None) -> RequestContext:
        return context or RequestContext()

    def register(self, payload: Any, context: RequestContext | None = None) -> APIResult:
        """201 with token and profile on success."""
        def operation():
            session = self._service.register(
                RegisterRequest.model_validate(payload), self._context(context)
            )
            return {"message": "User registered successfully", **session.model_dump(mode="json")}

        return self._run(operation, status_code=201)

    def login(self, payload: Any, context: RequestContext | None = None) -> APIResult:
        def operation():
            session = self._service.login(
                LoginRequest.model_validate(payload), self._context(context)
            )
            return {"message": "Login successful", **session.model_dump(mode="json")}

        return self._run(operation)

    def forgot_password(self, payload: Any, context: RequestContext | None = None) -> APIResult:
        def operation():
            message = self._service.forgot_password(
                ForgotPasswordRequest.model_validate(payload), self._context(context)
            )
            return {"message": message}

        return self._run(operation)

    def reset_password(self, payload: Any, context: RequestContext | None = None) -> APIResult:
        def operation():
            message = self._service.reset_password(
                ResetPasswordRequest.model_validate(payload), self._context(context)
            )
            return {"message": message}

        return self._run(operation)

    def change_password(
        self,
        payload: Any,
        authorization: str | None,
        context: RequestContext | None = None,
    ) -> APIResult:
        def operation():
            actor = authenticate_bearer(authorization, self._sessions)
            message = self._service.change_password(
                actor, ChangePasswordRequest.model_validate(payload), self._context(context)
            )
            return {"message": message}

        return self._run(operation)

    def delete_account(
        self,
        payload: Any,
        authorization: str | None,
        context: RequestContext | None = None,
    ) -> APIResult:
        def operation():
            actor = authenticate_bearer(authorization, self._sessions)
            message = self._service.delete_account(
                actor, DeleteAccountRequest.model_validate(payload), self._context(context)
            )
            return {"message": message}

        return self._run(operation)

    def change_role(
        self,
        user_id: str,
        payload: Any,
        authorization: str | None,
        context: RequestContext | None = None,
    ) -> APIResult:
        """Admin only. 403 for non-admin callers."""
        def operation():
            actor = authenticate_bearer(authorization, self._sessions)
            profile = self._service.change_role(
                actor, user_id, RoleChangeRequest.model_validate(payload), self._context(context)
            )
            return {"message": "Role updated", "user": profile.model_dump(mode="json")}

        return self._run(operation)

    def me(self, authorization: str | None) -> APIResult:
        def operation():
            actor = authenticate_bearer(authorization, self._sessions)
            return {"user": self._service.get_profile(actor).model_dump(mode="json")}

        return self._run(operation)
