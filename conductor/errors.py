"""
Error taxonomy for the trip conductor.

Every failure leaves the session in its last valid state. The HTTP layer and
the notifier use ``code`` and ``describe_error`` to present errors to users.
"""
from typing import Optional


class ConductorError(Exception):
    """Base class for all errors raised by the core."""

    code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "code": self.code, "message": self.message}


class ValidationError(ConductorError):
    """A draft field fails its constraint; blocks wizard advance."""

    code = "invalid_argument"

    def __init__(self, message: str, step: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.step = step
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"step": self.step, "field": self.field})
        return data


class CapabilityError(ConductorError):
    """The entitlement gate denied an action."""

    code = "permission_denied"

    def __init__(self, capability: str, reason: str):
        super().__init__(f"'{capability}' is not available: {reason}")
        self.capability = capability
        self.reason = reason

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"capability": self.capability, "reason": self.reason})
        return data


class IntegrityViolation(ConductorError):
    """A mutation would corrupt the trip plan. Nothing was applied."""

    code = "failed_precondition"

    def __init__(self, problems: list[str]):
        super().__init__("; ".join(problems) or "integrity violation")
        self.problems = list(problems)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["problems"] = self.problems
        return data


class SessionStateError(ConductorError):
    """Operation is not valid in the session's current phase."""

    code = "failed_precondition"


class GenerationError(ConductorError):
    """The generation collaborator failed to produce a plan."""

    code = "generation_failed"


class EditError(ConductorError):
    """The edit collaborator failed to produce a patch."""

    code = "edit_failed"


# User-facing messages keyed by error code / capability reason
ERROR_MESSAGES = {
    "invalid_argument": ("Invalid data", "Some of the details you entered are not valid."),
    "limit_reached": ("Trip limit reached", "The free plan includes one trip. Upgrade to Premium to create more."),
    "premium_only": ("Premium required", "This feature is available to Premium subscribers."),
    "failed_precondition": ("Change not applied", "The operation cannot be performed in the current state."),
    "generation_failed": ("Plan generation failed", "We could not generate your trip. Please try again."),
    "edit_failed": ("Edit failed", "We could not prepare that change. Please try rephrasing."),
    "invalid_response": ("Server error", "The assistant returned an unexpected answer. Please try again."),
    "llm_error": ("Service unavailable", "The assistant is temporarily unavailable. Please try again later."),
    "cancelled": ("Cancelled", "The operation was cancelled."),
}

DEFAULT_ERROR = ("Something went wrong", "Please try again.")


def describe_error(error: BaseException) -> dict:
    """Map an error to a ``{"title", "message"}`` pair for display."""
    if isinstance(error, CapabilityError):
        title, message = ERROR_MESSAGES.get(error.reason, DEFAULT_ERROR)
    elif isinstance(error, ValidationError):
        title = ERROR_MESSAGES["invalid_argument"][0]
        message = error.message
    elif isinstance(error, ConductorError):
        title, message = ERROR_MESSAGES.get(error.code, DEFAULT_ERROR)
    else:
        title, message = DEFAULT_ERROR
    return {"title": title, "message": message}
