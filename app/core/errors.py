"""Errors shared by the store adapters."""


class StoreUnavailableError(Exception):
    """Raised when a backing store call fails.

    The message engine recovers from it with a generic error reply; it is
    never retried.
    """
    pass
