"""Exception hierarchy for stowaway.

All exceptions inherit from :class:`StowawayError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`stowaway.exit_codes`.
The top-level error handler in :func:`stowaway.app.main` catches
``StowawayError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Inside the request path nothing here reaches the caller: the fetch strategy
engine converts :class:`NetworkUnavailable` into a synthetic response, and the
sync coordinator logs and drops :class:`SyncFailure`.

Subclass hierarchy::

    StowawayError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- GenerationError     (exit 3)
    +-- SeedFetchError      (exit 4)
    +-- NetworkUnavailable  (exit 6)
    +-- SyncFailure         (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from stowaway.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERATION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SEED_FETCH_FAILURE,
)


class StowawayError(Exception):
    """Base exception for all stowaway errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(StowawayError):
    """Raised for invalid CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class GenerationError(StowawayError):
    """Raised when a cache generation is unknown or cannot be opened."""

    exit_code = EXIT_GENERATION_ERROR


class SeedFetchError(StowawayError):
    """Raised when a seed URL cannot be fetched during generation install.

    The generation being installed is left uninstalled; a partially seeded
    generation is never served.

    Args:
        message: Human-readable error description.
        failed: The seed URLs that could not be retrieved.
    """

    exit_code = EXIT_SEED_FETCH_FAILURE

    def __init__(self, message: str, failed: list[str] | None = None):
        super().__init__(message)
        self.failed = list(failed or [])


class NetworkUnavailable(StowawayError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class SyncFailure(StowawayError):
    """Raised when a background sync attempt fails. Never surfaced to observers.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the failed attempt, if the endpoint answered.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(StowawayError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
