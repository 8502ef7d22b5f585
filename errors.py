"""Domain errors raised by the scoring and caller-ID operations."""


class CoreError(Exception):
    """Base exception for scoring / caller-ID operations."""
    pass


class NotFoundError(CoreError):
    """A pool, number, lead score or scoring model does not exist."""
    pass


class ConflictError(CoreError):
    """Duplicate, invalid state transition, or lost concurrent update."""
    pass
