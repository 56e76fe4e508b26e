"""
Domain errors for the booking and billing core.

Every error carries a stable ``kind`` (returned to API clients), the HTTP
status it maps to and a reason string that can be shown to the user as-is.
"""


class CourtsideError(Exception):
    """Base class for user-displayable booking/billing failures"""

    kind = "CourtsideError"
    status_code = 400

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.reason}


class InvalidWindow(CourtsideError):
    kind = "InvalidWindow"
    status_code = 422


class SlotUnavailable(CourtsideError):
    kind = "SlotUnavailable"
    status_code = 409


class ResourceInactive(CourtsideError):
    kind = "ResourceInactive"
    status_code = 409


class InvalidAmount(CourtsideError):
    kind = "InvalidAmount"
    status_code = 422


class InvalidResource(CourtsideError):
    kind = "InvalidResource"
    status_code = 422


class NotFound(CourtsideError):
    kind = "NotFound"
    status_code = 404


class AlreadyCancelled(CourtsideError):
    kind = "AlreadyCancelled"
    status_code = 409


class InvalidTransition(CourtsideError):
    kind = "InvalidTransition"
    status_code = 409


class SubscriptionConflict(CourtsideError):
    kind = "SubscriptionConflict"
    status_code = 409


class ClassFull(CourtsideError):
    kind = "ClassFull"
    status_code = 409
