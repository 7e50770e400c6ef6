import csv
import abc
import sys
import logging
import subprocess
from typing import Iterable, List, NamedTuple, Optional, Union

from .errors import ProcessQueryFailed

log = logging.getLogger(__name__)

Identity = Union[int, str]


class ProcessObservation(NamedTuple):
    """What the process table said about one identity at one moment. Never persisted."""
    found: bool
    pid: Optional[int] = None


NOT_FOUND = ProcessObservation(found=False)


def _first_pid(lines: Iterable[str]) -> ProcessObservation:
    """Returns the pid on the first non-empty line of pgrep/ps output."""
    for line in lines:
        line = line.strip()
        if not line:
            continue
        return ProcessObservation(True, int(line)) if line.isdigit() else NOT_FOUND
    return NOT_FOUND


def parse_tasklist_csv(lines: Iterable[str], image_name: Optional[str] = None) -> ProcessObservation:
    """
    Parses `tasklist /FO CSV` output and returns the first listed process.

    Tolerates an optional header row, empty output and the "INFO: No tasks are
    running" notice. Only the first data row is considered; when several
    processes share an image name the rest are ignored.

    :param lines: Output lines of tasklist.
    :param image_name: If given, the first row must contain it (case-insensitive).
    :return: A ProcessObservation for the first data row.
    """
    rows = [row for row in csv.reader(line for line in lines if line.strip()) if row]
    if rows and (len(rows[0]) < 2 or rows[0][1].strip().lower() == "pid"):
        rows = rows[1:]  # header or notice line
    if not rows:
        return NOT_FOUND

    first = rows[0]
    if len(first) < 2:
        return NOT_FOUND
    if image_name and image_name.lower() not in first[0].lower():
        return NOT_FOUND
    pid_field = first[1].strip()
    if not pid_field.isdigit():
        return NOT_FOUND
    return ProcessObservation(True, int(pid_field))


class ProcessLocator(abc.ABC):
    """
    Asks the OS process table whether a pid or an image name is alive.

    Lookups are best-effort: if the query command cannot run, times out or is
    denied, the identity is reported as not alive.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    def is_alive(self, identity: Identity) -> bool:
        return self.locate(identity).found

    def locate(self, identity: Identity) -> ProcessObservation:
        """
        :param identity: A pid (int) or an executable/image name (str).
        :return: The observation for the first matching process.
        """
        try:
            return self._locate(identity)
        except ProcessQueryFailed as e:
            log.debug(f"Process query for {identity!r} failed, treating as not alive: {e}")
            return NOT_FOUND

    @abc.abstractmethod
    def _locate(self, identity: Identity) -> ProcessObservation:
        raise NotImplementedError

    def _run(self, args: List[str]) -> List[str]:
        """Runs a query command with a bounded timeout and returns its stdout lines."""
        try:
            completed = subprocess.run(
                args, capture_output=True, text=True, errors="replace",
                timeout=self.timeout, check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessQueryFailed(f"'{args[0]}' did not return within {self.timeout}s") from e
        except (OSError, subprocess.SubprocessError) as e:
            raise ProcessQueryFailed(f"Could not run '{args[0]}': {e}") from e
        return completed.stdout.splitlines()


class PosixProcessLocator(ProcessLocator):
    """
    Uses `pgrep` for names and `ps -p` for pids.

    pgrep matches the name as a pattern against the first 15 characters of the
    process name, so longer image names are never found.
    """

    def _locate(self, identity: Identity) -> ProcessObservation:
        if isinstance(identity, int):
            return _first_pid(self._run(["ps", "-p", str(identity), "-o", "pid="]))
        return _first_pid(self._run(["pgrep", "--", identity]))


class WindowsProcessLocator(ProcessLocator):
    """Uses `tasklist` filtered by image name or pid, in CSV format."""

    def _locate(self, identity: Identity) -> ProcessObservation:
        if isinstance(identity, int):
            lines = self._run(["tasklist", "/FI", f"PID eq {identity}", "/FO", "CSV", "/NH"])
            return parse_tasklist_csv(lines)
        lines = self._run(["tasklist", "/FI", f"IMAGENAME eq {identity}", "/FO", "CSV", "/NH"])
        return parse_tasklist_csv(lines, identity)


def get_process_locator(timeout: float = 5.0) -> ProcessLocator:
    """Returns the locator for the hosting operating system."""
    if sys.platform == "win32":
        return WindowsProcessLocator(timeout)
    return PosixProcessLocator(timeout)
