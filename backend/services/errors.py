"""Domain errors raised by the services and rendered by the app handlers."""


class ServiceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ServiceError, ValueError):
    status_code = 400
    default_message = "Invalid input"


class Unauthenticated(ServiceError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(ServiceError, PermissionError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ServiceError, LookupError):
    status_code = 404
    default_message = "Not found"


class Conflict(ServiceError, ValueError):
    status_code = 409
    default_message = "Conflict"
