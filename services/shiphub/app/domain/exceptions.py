class ShipHubError(Exception):
    """Base for errors that map onto an HTTP status code."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShipHubError):
    status_code = 400


class RequestAlreadyAssignedError(ValidationError):
    def __init__(self, message: str = "This request has already been assigned to a company"):
        super().__init__(message)


class ForbiddenError(ShipHubError):
    status_code = 403


class NotFoundError(ShipHubError):
    status_code = 404


class ConflictError(ShipHubError):
    """The request row changed between read and write (optimistic lock lost)."""
    status_code = 409

    def __init__(self, message: str = "Request was modified concurrently, retry"):
        super().__init__(message)
