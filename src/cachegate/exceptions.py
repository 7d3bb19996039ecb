"""Exception hierarchy for cachegate.

All exceptions inherit from :class:`CachegateError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cachegate.exit_codes`.
The top-level error handler in :func:`cachegate.app.main` catches
``CachegateError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Inside the caching core the two I/O errors drive the strategy fallbacks:
:class:`FetchError` for the network and :class:`StoreError` for the blob
store.

Subclass hierarchy::

    CachegateError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- LifecycleError      (exit 3)
    +-- StoreError          (exit 5)
    +-- FetchError          (exit 6)
    +-- ConfigError         (exit 1)
"""

from cachegate.exit_codes import (
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_ERROR,
    EXIT_STORE_ERROR,
)


class CachegateError(Exception):
    """Base exception for all cachegate errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cachegate.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CachegateError):
    """Raised for invalid CLI arguments or malformed requests."""

    exit_code = EXIT_INVALID_USAGE


class LifecycleError(CachegateError):
    """Raised when a lifecycle phase is triggered before its predecessor."""

    exit_code = EXIT_LIFECYCLE_ERROR


class StoreError(CachegateError):
    """Raised when the blob store fails (quota exceeded, corruption, closed handle)."""

    exit_code = EXIT_STORE_ERROR


class FetchError(CachegateError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Args:
        message: Human-readable error description.
        url: The URL that could not be fetched.
    """

    exit_code = EXIT_FETCH_ERROR

    def __init__(self, message: str, url: str = "", exit_code: int | None = None):
        super().__init__(message, exit_code)
        self.url = url


class ConfigError(CachegateError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
