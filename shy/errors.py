from __future__ import annotations


class ShyError(Exception):
    """Base class for every error the history core raises."""


class NotFound(ShyError, LookupError):
    pass


class InvalidRange(ShyError, ValueError):
    pass


class InvalidArgument(ShyError, ValueError):
    pass


class SchemaError(ShyError, RuntimeError):
    """The store could not be opened, created or migrated."""


class StackUnderflow(ShyError, RuntimeError):
    pass


class StoreContention(ShyError, RuntimeError):
    """Another writer held the database lock longer than the busy timeout."""


def is_lock_error(exc: BaseException) -> bool:
    text = str(exc).lower()
    return "database is locked" in text or "database is busy" in text
