"""Error taxonomy shared by the authorization services.

Every error carries a stable ``code`` and a JSON-safe ``extra`` dict so the API
layer can render structured detail without knowing about individual services.
Validation and authorization errors are raised before any mutation.
"""

from typing import Any


class GatehouseError(Exception):
    """Base exception for authorization engine errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "detail": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(GatehouseError):
    """Malformed input."""

    code = "validation_error"
    status_code = 422


class ModuleDisabledError(GatehouseError):
    """Role or module not enabled for the community."""

    code = "module_disabled"
    status_code = 409


class ConflictError(GatehouseError):
    """Existing role/link blocks the mutation, or a concurrent decision won."""

    code = "conflict"
    status_code = 409


class NotFoundError(GatehouseError):
    """Referenced entity absent."""

    code = "not_found"
    status_code = 404


class InvalidStateError(GatehouseError):
    """Transition attempted on a terminal-state request."""

    code = "invalid_state"
    status_code = 409


class AuthorizationError(GatehouseError):
    """Caller's effective level is insufficient."""

    code = "forbidden"
    status_code = 403


class ExternalProvisioningError(GatehouseError):
    """Account provisioning service failed; wraps the underlying reason."""

    code = "provisioning_failed"
    status_code = 502

    def __init__(self, reason: str, retryable: bool = False, **extra: Any):
        super().__init__(
            f"Account provisioning failed: {reason}",
            reason=reason,
            retryable=retryable,
            **extra,
        )
        self.reason = reason
        self.retryable = retryable


class HouseholdStepError(GatehouseError):
    """A step of the household conversion failed; retrying with the same inputs resumes."""

    code = "household_step_failed"
    status_code = 500

    def __init__(self, step: str, record_id: Any, reason: str):
        super().__init__(
            f"Household conversion failed at step '{step}': {reason}",
            step=step,
            record_id=str(record_id) if record_id is not None else None,
            retryable=True,
        )
        self.step = step
        self.record_id = record_id
