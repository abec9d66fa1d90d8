"""Error taxonomy shared by the services and mapped to HTTP responses in main."""


class LabLineageError(Exception):
    """Base class for expected, client-facing errors.

    Attributes:
        message: Human-readable description returned to the client.
        status_code: HTTP status used when the error reaches the API layer.
    """

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LabLineageError):
    """Target is absent, soft deleted, or outside the caller's workspace."""

    status_code = 404


class GrantNotFoundError(NotFoundError):
    """No access grant exists for the (user, object type, object id) triple."""


class AlreadyExistsError(LabLineageError):
    """A uniqueness rule would be violated."""

    status_code = 409


class AlreadyGrantedError(AlreadyExistsError):
    """The user already holds a grant on the object."""


class InvalidLineageError(AlreadyExistsError):
    """Supersession would fork a lineage or revisit a record."""


class InvalidDataError(LabLineageError):
    """Malformed or contradictory input."""

    status_code = 400


class InvalidProjectDataError(InvalidDataError):
    """Project input references unusable organizations or updates nothing."""


class PermissionDeniedError(LabLineageError):
    """The object is visible but the caller's capability is insufficient."""

    status_code = 403


class InvalidStateTransitionError(LabLineageError):
    """The requested status change is not allowed from the current status."""

    status_code = 409


class IncompleteBatchError(InvalidStateTransitionError):
    """A batch cannot complete while any of its analyses is unfinished."""


class StaleSupersessionError(LabLineageError):
    """The record to supersede is no longer current; another writer won."""

    status_code = 409


class ResourceExhaustedError(LabLineageError):
    """No database connection became available in time. Safe to retry."""

    status_code = 503
