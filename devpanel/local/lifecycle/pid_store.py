import os
import json
import time
import logging
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from .bom import strip_bom
from .errors import MalformedSettingsDocument, PidWriteFailed

log = logging.getLogger(__name__)


class PidResult(NamedTuple):
    """Outcome of a PID write: either the written pid or the write error."""
    pid: Optional[int] = None
    error: Optional[PidWriteFailed] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.pid is not None


class PidStore:
    """
    Owns a single PID file.

    A record on disk only proves that the process was started through this
    store; liveness must be confirmed with a ProcessLocator.
    """

    def __init__(self, pid_file: Path, settings_file: Optional[Path] = None) -> None:
        """
        :param pid_file: Path of the PID file to manage.
        :param settings_file: Optional JSON settings document whose `settings.t_pid`
                              is stamped on every successful write.
        """
        self.pid_file = Path(pid_file)
        self.settings_file = Path(settings_file) if settings_file else None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.pid_file)!r})"

    def write_pid(self, pid: Optional[int] = None) -> PidResult:
        """
        Writes a pid to the PID file, overwriting any existing record.

        :param pid: The pid to record. Defaults to the current process.
        :return: A PidResult with the pid, or with a PidWriteFailed error on I/O failure.
        """
        pid = os.getpid() if pid is None else pid
        temp_pid_path = self.pid_file.with_name(self.pid_file.name + ".tmp")
        try:
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
            temp_pid_path.write_text(str(pid))
            temp_pid_path.replace(self.pid_file)
        except OSError as e:
            error = PidWriteFailed(f"Error updating PID file '{self.pid_file}': {e}")
            log.error(str(error))
            return PidResult(error=error)
        finally:
            try:
                temp_pid_path.unlink(missing_ok=True)
            except OSError:
                pass

        log.debug(f"Recorded PID {pid} in '{self.pid_file}'.")
        self._stamp_settings()
        return PidResult(pid=pid)

    def read_pid(self) -> Optional[int]:
        """
        Reads the recorded pid.

        The contents are stripped of a byte-order mark and surrounding whitespace.
        Anything but a positive decimal integer counts as no record, since a
        half-written file cannot be told apart from garbage.

        :return: The recorded pid, or None if there is no valid record.
        """
        try:
            raw = self.pid_file.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            log.debug(f"Could not read PID file '{self.pid_file}': {e}")
            return None

        content = strip_bom(raw).decode("ascii", errors="replace").strip()
        if not content.isdigit():
            if content:
                log.debug(f"Ignoring non-numeric PID file content in '{self.pid_file}': {content[:32]!r}")
            return None
        pid = int(content)
        return pid if pid > 0 else None

    def delete_pid(self) -> bool:
        """
        Removes the PID file.

        :return: True if a file was deleted, False if there was nothing to delete.
        """
        try:
            self.pid_file.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            log.error(f"Failed to delete PID file '{self.pid_file}': {e}")
            return False
        log.debug(f"Deleted PID file '{self.pid_file}'.")
        return True

    def _load_settings_document(self) -> Dict[str, Any]:
        try:
            document = json.loads(strip_bom(self.settings_file.read_bytes()).decode("utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedSettingsDocument(f"Cannot read '{self.settings_file}': {e}") from e
        if not isinstance(document, dict) or not isinstance(document.get("settings"), dict):
            raise MalformedSettingsDocument(f"'{self.settings_file}' has no 'settings' object.")
        return document

    def _stamp_settings(self) -> bool:
        """Best-effort update of `settings.t_pid`. Never fails the PID write."""
        if self.settings_file is None or not self.settings_file.exists():
            return False
        try:
            document = self._load_settings_document()
        except MalformedSettingsDocument as e:
            log.warning(f"Skipping PID timestamp update: {e}")
            return False

        document["settings"]["t_pid"] = int(time.time())
        try:
            self.settings_file.write_text(json.dumps(document, indent=4), encoding="utf-8")
        except OSError as e:
            log.warning(f"Failed to write PID timestamp to '{self.settings_file}': {e}")
            return False
        return True
