class ServiceError(ValueError):
    """Base for errors reported back to the caller. `status` is the HTTP status used by the API."""
    status = 400


class NotFoundError(ServiceError):
    status = 404


class ConflictError(ServiceError):
    """Apartment already occupied, duplicate email, bill number allocation exhausted."""
    status = 409


class InvalidTransitionError(ServiceError):
    status = 409


class InvalidReadingError(ServiceError):
    status = 400


class EmptyCartError(ServiceError):
    status = 400


class UnavailableError(ServiceError):
    status = 400


class AuthenticationError(ServiceError):
    status = 401


class PermissionDeniedError(ServiceError):
    status = 403
