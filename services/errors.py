"""Service-level error taxonomy.

每个错误都带有稳定的 ``kind`` 和对应的 HTTP 状态码，
由 web 层统一转换为 ``{"error": kind, "message": ...}``。
"""


class ServiceError(Exception):
    kind = "InternalError"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class Unauthenticated(ServiceError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class AccountBlocked(ServiceError):
    kind = "AccountBlocked"
    status_code = 403
    default_message = "This account has been blocked"


class Forbidden(ServiceError):
    kind = "Forbidden"
    status_code = 403
    default_message = "You are not allowed to perform this action"


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = 404
    default_message = "Resource not found"


class UserNotFound(NotFound):
    kind = "UserNotFound"
    default_message = "User not found"


class ValidationError(ServiceError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid input"


class InvalidTransition(ServiceError):
    kind = "InvalidTransition"
    status_code = 409
    default_message = "Operation not allowed in the current issue status"


class InvalidOperation(ServiceError):
    kind = "InvalidOperation"
    status_code = 400
    default_message = "Operation not allowed"


class QuotaExceeded(ServiceError):
    kind = "QuotaExceeded"
    status_code = 403
    default_message = "Free plan issue limit reached, upgrade to premium to report more issues"


class PaymentMismatch(ServiceError):
    kind = "PaymentMismatch"
    status_code = 400
    default_message = "Payment does not match the expected purchase"


class PaymentIncomplete(ServiceError):
    kind = "PaymentIncomplete"
    status_code = 402
    default_message = "Payment has not been completed"


class PaymentProviderUnavailable(ServiceError):
    kind = "PaymentProviderUnavailable"
    status_code = 503
    default_message = "Payment provider is unavailable, please retry later"


class InternalError(ServiceError):
    pass
