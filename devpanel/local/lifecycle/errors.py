"""
Error types for the process lifecycle subsystem.

None of these are raised out of the public lifecycle operations. Write failures
are returned inside a `PidResult`, query failures collapse to "not alive" and a
malformed settings document only skips the timestamp update. A missing or
unreadable PID record is not an error at all: `PidStore.read_pid()` returns None.
"""


class LifecycleError(Exception):
    """Base class for all lifecycle errors."""


class PidWriteFailed(LifecycleError):
    """The PID file or its directory could not be written."""


class ProcessQueryFailed(LifecycleError):
    """The OS process query command could not be executed."""


class MalformedSettingsDocument(LifecycleError):
    """The JSON settings document could not be read or lacks a 'settings' object."""
