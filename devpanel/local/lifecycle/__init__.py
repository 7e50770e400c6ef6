"""
The lifecycle package.
Tracks the processes of the panel and its managed services.

PID records are written, read and removed by the PidStore, the process table is
queried by a platform-specific ProcessLocator, and the Reconciler turns both
into a single running/stopped verdict per check.
"""
from .bom import strip_bom
from .errors import LifecycleError, MalformedSettingsDocument, PidWriteFailed, ProcessQueryFailed
from .pid_store import PidResult, PidStore
from .locator import ProcessLocator, ProcessObservation, PosixProcessLocator, WindowsProcessLocator, get_process_locator
from .reconciler import Reconciler, ServiceState, Verdict

__all__ = [
    "strip_bom",
    "LifecycleError", "MalformedSettingsDocument", "PidWriteFailed", "ProcessQueryFailed",
    "PidResult", "PidStore",
    "ProcessLocator", "ProcessObservation", "PosixProcessLocator", "WindowsProcessLocator", "get_process_locator",
    "Reconciler", "ServiceState", "Verdict",
]
