"""Business-rule errors.

Each error carries a stable ``code`` so the transport layers can turn it into
a structured reply without inspecting the message text.
"""


class SupportDeskError(Exception):
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SupportDeskError):
    code = "not-found"


class ForbiddenError(SupportDeskError):
    code = "forbidden"


class InvalidStateError(SupportDeskError):
    code = "invalid-state"


class CapacityExceededError(SupportDeskError):
    code = "capacity-exceeded"


class SessionEndedError(SupportDeskError):
    code = "session-ended"


class ValidationError(SupportDeskError):
    code = "validation"


class UpstreamUnavailableError(SupportDeskError):
    code = "upstream-unavailable"


class AuthenticationError(SupportDeskError):
    code = "unauthorized"


class RateLimitedError(SupportDeskError):
    code = "rate-limited"
