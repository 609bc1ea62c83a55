"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~stowaway.exceptions.StowawayError` subclass.
Shell wrappers can inspect the exit code to learn why ``stowaway install``
refused to activate a generation without parsing stderr.

Example::

    $ stowaway install
    $ echo $?
    4   # EXIT_SEED_FETCH_FAILURE -- a seed URL could not be fetched
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_GENERATION_ERROR = 3
"""A cache generation could not be opened or activated."""

EXIT_SEED_FETCH_FAILURE = 4
"""One or more seed URLs could not be fetched; nothing was installed."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
