"""
Service error taxonomy.

Services raise these; the API layer maps each one to the HTTP
status code it carries. "Already settled" is deliberately absent:
a repeated settlement is a successful idempotent result.
"""


class ServiceError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code: int = 400


class ValidationError(ServiceError):
    """Malformed or missing input. No state was changed."""

    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class Forbidden(ServiceError):
    """The requester lacks the role or ownership the operation needs."""

    status_code = 403


class Conflict(ServiceError):
    """The operation would violate an invariant."""

    status_code = 409


class DuplicateApplication(Conflict):
    pass


class InvalidState(ServiceError):
    """The target entity is not in a state the operation accepts."""

    status_code = 409


class ExternalGatewayError(ServiceError):
    """
    The payment provider is unreachable or answered unexpectedly.

    Safe to retry: nothing was written when this is raised.
    """

    status_code = 502


class InvalidSignature(ExternalGatewayError):
    """A callback payload failed signature verification."""

    status_code = 400


class PersistenceError(ServiceError):
    """Storage failure. Transient; retry only steps that mutated nothing."""

    status_code = 503
