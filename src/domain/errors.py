"""Domain exception hierarchy."""


class InvalidInputError(ValueError):
    """Malformed coordinates, non-positive seat counts and the like.

    Rejected at intake; never reaches the matcher or the dispatcher.
    """


class InvalidCoordinateError(InvalidInputError):
    """Raised when distance math is asked to work on a non-finite value."""


class InvalidStateTransition(Exception):
    """Raised when a status change violates a lifecycle state machine."""


class StaleRecordError(Exception):
    """A conditional write lost: the record changed since it was read."""


class PersistenceError(Exception):
    """The store was unreachable or rejected a write."""


class NotFoundError(LookupError):
    """No record with the given identifier."""
