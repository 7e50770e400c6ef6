import time
import socket
import logging
from typing import Optional

from devpanel.local.config import PanelSettings
from . import process_utils
from .locator import ProcessLocator, get_process_locator
from .manager import ServiceManager
from .pid_store import PidStore
from .reconciler import Reconciler, Verdict

log = logging.getLogger(__name__)

PANEL_NAME = "devpanel"


class PanelController:
    """
    Controls the dashboard server process itself.

    The dashboard records its own pid in PID_FILE_PATH when it starts; this
    controller launches it, waits for it and stops it from the console.
    """

    def __init__(self, settings: PanelSettings, locator: Optional[ProcessLocator] = None) -> None:
        self.settings = settings
        self.locator = locator or get_process_locator(settings.PROCESS_QUERY_TIMEOUT)
        self.pid_store = PidStore(settings.PID_FILE_PATH, settings.CONFIG_JSON_PATH)
        self.reconciler = Reconciler(PANEL_NAME, self.locator, self.pid_store)
        self.manager = ServiceManager(settings, self.locator)

    def status(self) -> Verdict:
        return self.reconciler.check()

    def is_running(self) -> bool:
        pid = self.pid_store.read_pid()
        return pid is not None and self.locator.is_alive(pid)

    def _wait_for_dashboard(self) -> bool:
        """
        Waits for the dashboard to record its pid and accept connections.

        :return: True if the dashboard is up, False if it times out.
        """
        host, port = self.settings.DASHBOARD_HOST, self.settings.DASHBOARD_PORT
        timeout = self.settings.DASHBOARD_STARTUP_TIMEOUT

        log.info(f"Waiting for dashboard at {host}:{port}...")
        start_time = time.monotonic()
        while time.monotonic() - start_time < timeout:
            if self.pid_store.read_pid() is not None:
                try:
                    with socket.create_connection((host, port), timeout=1):
                        log.info("Dashboard is up and listening.")
                        return True
                except OSError:
                    pass
            time.sleep(0.5)
        log.critical(f"Dashboard did not become available after {timeout} seconds.")
        return False

    def start(self) -> bool:
        """
        Launches the dashboard server in the background.

        :return: True on successful startup, False on failure.
        """
        if self.is_running():
            log.error(f"DevPanel appears to be running (PID {self.pid_store.read_pid()}). Use 'stop' or 'restart'.")
            return False

        args = [
            self.settings.PYTHON_EXECUTABLE, "-m", "hypercorn",
            "--bind", f"{self.settings.DASHBOARD_HOST}:{self.settings.DASHBOARD_PORT}",
            "devpanel.web.server:app",
        ]
        try:
            process_utils.launch_detached(args, "dashboard", cwd=self.settings.BASE_DIR, capture_output=False)
        except OSError as e:
            log.critical(f"Failed to launch dashboard: {e}")
            return False
        return self._wait_for_dashboard()

    def stop(self) -> bool:
        """
        Stops the dashboard and removes its PID record.

        :return: True if a running dashboard was stopped, False otherwise.
        """
        pid = self.pid_store.read_pid()
        if pid is None:
            log.info("No running DevPanel found to stop.")
            return False

        proc = process_utils.get_process(pid)
        if proc is None:
            log.warning(f"Recorded PID {pid} is not running. Removing stale PID file.")
            self.pid_store.delete_pid()
            return False

        log.info(f"Stopping DevPanel (PID {pid})...")
        survivors = process_utils.terminate_gracefully(
            process_utils.with_children([proc]), self.settings.GRACEFUL_SHUTDOWN_TIMEOUT
        )
        self.pid_store.delete_pid()
        if survivors:
            log.error(f"{len(survivors)} dashboard processes could not be stopped.")
            return False
        log.info("DevPanel stopped.")
        return True
