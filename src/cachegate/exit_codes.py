"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cachegate.exceptions.CachegateError` subclass.
Shell wrappers can inspect the exit code to tell a network outage apart from
a broken cache directory without parsing stderr.

Example::

    $ cachegate fetch https://api.example.com/status
    $ echo $?
    6   # EXIT_FETCH_ERROR -- network unreachable and nothing cached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_LIFECYCLE_ERROR = 3
"""A lifecycle phase was triggered out of order."""

EXIT_STORE_ERROR = 5
"""The cache store could not be read or written."""

EXIT_FETCH_ERROR = 6
"""A network-level error occurred and no cached response could stand in."""
