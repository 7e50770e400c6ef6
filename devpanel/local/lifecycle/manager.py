import time
import logging
import threading
import subprocess
from typing import Any, Dict, List, NamedTuple, Optional, Set, Tuple

from devpanel.local.config import PanelSettings, ServiceDefinition
from . import process_utils
from .locator import ProcessLocator, get_process_locator
from .pid_store import PidStore
from .reconciler import Reconciler, ServiceState, Verdict
from .stats import StatsStore

log = logging.getLogger(__name__)

VALID_ACTIONS = ("start", "stop", "restart")


class CommandResult(NamedTuple):
    """Outcome of a start/stop/restart command, shaped for the dashboard."""
    success: bool
    message: str
    command: str = ""
    output: Tuple[str, ...] = ()
    code: int = 0
    stats: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.command:
            result["command"] = self.command
        if self.success:
            if self.stats is not None:
                result["stats"] = self.stats
        elif self.command:
            result["output"] = list(self.output)
            result["code"] = self.code
        return result


class ServiceManager:
    """
    Starts, stops, validates and monitors the configured services.

    Each service gets its own Reconciler. Services with a `pid_file` are tracked
    through a PidStore; all others are located by image name.
    """

    def __init__(self, settings: PanelSettings, locator: Optional[ProcessLocator] = None) -> None:
        self.settings = settings
        self.locator = locator or get_process_locator(settings.PROCESS_QUERY_TIMEOUT)
        self.stats = StatsStore(settings.STATS_JSON_PATH)

        self.restart_failures: Dict[str, int] = {}
        self.restart_cooldown_timers: Dict[str, float] = {}
        # Services that went down on their own and still wait for a restart.
        self.pending_restarts: Set[str] = set()
        # Services stopped through a command; auto-restart leaves them alone.
        self._stopped_by_command: Set[str] = set()
        self._check_lock = threading.Lock()

        self.reconcilers: Dict[str, Reconciler] = {}
        for name, service in settings.services.items():
            reconciler = Reconciler(name, self.locator, self.pid_store_for(service), service.image_name)
            reconciler.on_transition(self._handle_transition)
            self.reconcilers[name] = reconciler

    #* --- Lookups ---
    def get_service(self, name: str) -> Optional[ServiceDefinition]:
        return self.settings.services.get((name or "").lower())

    def pid_store_for(self, service: ServiceDefinition) -> Optional[PidStore]:
        return PidStore(service.pid_file) if service.pid_file else None

    #* --- Status Queries ---
    def process_status(self, name: str) -> Dict[str, Any]:
        """
        Image-name liveness check for the dashboard.

        :return: {"running": bool, "process": str}
        """
        service = self.get_service(name)
        if service is None or not service.image_name:
            return {"running": False, "process": name}
        image = service.image_name
        return {"running": self.locator.is_alive(image), "process": image}

    def validate_config(self, name: str) -> Dict[str, Any]:
        """
        Runs the service's configuration test command (e.g. `httpd -t`).

        :return: {"valid": bool, "output": str, "returnCode": int}
        """
        service = self.get_service(name)
        if service is None:
            return {"valid": False, "output": f"Unknown service '{name}'", "returnCode": 1}
        if not service.validate:
            return {"valid": False, "output": f"No validation command defined for '{service.name}'", "returnCode": 1}

        args = list(service.validate)
        log.debug(f"Validating configuration of '{service.name}': {' '.join(args)}")
        try:
            completed = subprocess.run(
                args, capture_output=True, text=True, errors="replace",
                timeout=self.settings.VALIDATION_TIMEOUT, check=False,
            )
        except subprocess.TimeoutExpired:
            return {"valid": False, "output": f"Validation timed out after {self.settings.VALIDATION_TIMEOUT}s", "returnCode": 124}
        except OSError as e:
            return {"valid": False, "output": str(e), "returnCode": 127}

        # httpd -t reports "Syntax OK" on stderr
        output = "\n".join(line for line in (completed.stdout + completed.stderr).splitlines() if line.strip())
        return {"valid": completed.returncode == 0, "output": output, "returnCode": completed.returncode}

    #* --- Commands ---
    def execute(self, name: str, action: str) -> CommandResult:
        """
        Runs a start, stop or restart command for a service.

        :param name: Service name (case-insensitive).
        :param action: One of 'start', 'stop', 'restart'.
        """
        name, action = (name or "").lower(), (action or "").lower()
        if not name or not action:
            return CommandResult(False, "Missing parameters")

        service = self.get_service(name)
        if service is None:
            return CommandResult(False, "Unknown service")
        if action not in VALID_ACTIONS:
            return CommandResult(False, "Invalid action")
        if not service.exe or not service.process:
            return CommandResult(False, f"{name} Executable or process not defined")

        log.info(f"Executing '{action}' for service '{name}'.")
        if action == "start":
            return self.start_service(service)
        if action == "stop":
            return self.stop_service(service)

        self.stop_service(service)
        time.sleep(self.settings.RESTART_DELAY)
        return self.start_service(service)

    def start_service(self, service: ServiceDefinition) -> CommandResult:
        """Launches a service in the background unless it is already alive."""
        if not service.exe:
            return CommandResult(False, f"{service.name} Executable or process not defined")
        self._stopped_by_command.discard(service.name)
        command = " ".join([service.exe, *service.args])
        store = self.pid_store_for(service)
        recorded = store.read_pid() if store else None
        if (recorded is not None and self.locator.is_alive(recorded)) or (
            service.image_name and self.locator.is_alive(service.image_name)
        ):
            log.info(f"Service '{service.name}' is already running.")
            return CommandResult(True, f"{service.name} is already running", command, stats=self.stats.record(service.name, "running"))

        try:
            proc = process_utils.launch_detached([service.exe, *service.args], service.name)
        except OSError as e:
            log.error(f"Failed to start service '{service.name}': {e}")
            return CommandResult(False, "Execution error occurred", command, output=(str(e),), code=e.errno or 1)

        if store:
            result = store.write_pid(proc.pid)
            if not result.ok:
                log.warning(f"Service '{service.name}' started but its PID was not recorded: {result.error}")
        return CommandResult(True, "Command executed successfully", command, stats=self.stats.record(service.name, "running"))

    def stop_service(self, service: ServiceDefinition) -> CommandResult:
        """Terminates the recorded pid and every process with the service's image name."""
        store = self.pid_store_for(service)
        targets = {}

        recorded = store.read_pid() if store else None
        if recorded is not None:
            proc = process_utils.get_process(recorded)
            if proc is not None:
                targets[proc.pid] = proc
        if service.image_name:
            for proc in process_utils.find_processes_by_name(service.image_name):
                targets.setdefault(proc.pid, proc)

        command = f"terminate {service.image_name or service.name}"
        self._stopped_by_command.add(service.name)
        self.pending_restarts.discard(service.name)
        if not targets:
            if store:
                store.delete_pid()
            log.info(f"Service '{service.name}' is not running.")
            return CommandResult(False, "Execution error occurred", command, output=(f"{service.name} is not running",), code=1)

        survivors = process_utils.terminate_gracefully(
            process_utils.with_children(targets.values()), self.settings.GRACEFUL_SHUTDOWN_TIMEOUT
        )
        if survivors:
            pids = ", ".join(str(p.pid) for p in survivors)
            return CommandResult(False, "Execution error occurred", command, output=(f"Processes still alive: {pids}",), code=1)

        if store:
            store.delete_pid()
        log.info(f"Service '{service.name}' stopped ({len(targets)} process(es)).")
        return CommandResult(True, "Command executed successfully", command, stats=self.stats.record(service.name, "stopped"))

    #* --- Monitoring ---
    def _check_one(self, reconciler: Reconciler) -> Verdict:
        verdict = reconciler.check()
        if verdict.service in self.pending_restarts and verdict.state is ServiceState.STOPPED:
            service = self.get_service(verdict.service)
            if service is not None:
                self._attempt_restart(service)
        return verdict

    def check(self, name: str) -> Optional[Verdict]:
        reconciler = self.reconcilers.get((name or "").lower())
        if reconciler is None:
            return None
        with self._check_lock:
            return self._check_one(reconciler)

    def check_all(self) -> List[Verdict]:
        """Runs one reconciliation check for every service and retries pending restarts."""
        with self._check_lock:
            return [self._check_one(reconciler) for reconciler in self.reconcilers.values()]

    def service_summary(self) -> List[Dict[str, Any]]:
        """Returns the last verdict of each service, checking those never checked."""
        summary = []
        for name, reconciler in self.reconcilers.items():
            verdict = reconciler.last_verdict or self.check(name)
            summary.append(verdict.to_dict())
        return summary

    def monitor_loop(self, stop_event: threading.Event) -> None:
        """Checks every service each RECONCILE_INTERVAL seconds until `stop_event` is set."""
        interval = self.settings.RECONCILE_INTERVAL
        log.info(f"Service monitor started. Checking {len(self.reconcilers)} services every {interval}s.")
        while not stop_event.is_set():
            try:
                self.check_all()
            except Exception as e:
                log.critical(f"Unexpected error in service monitor: {e}", exc_info=True)
            stop_event.wait(interval)
        log.info("Service monitor stopped.")

    def _handle_transition(self, verdict: Verdict) -> None:
        name = verdict.service
        if verdict.state is ServiceState.RUNNING:
            self.restart_failures.pop(name, None)
            self.restart_cooldown_timers.pop(name, None)
            self.pending_restarts.discard(name)
            return
        if verdict.previous is not ServiceState.RUNNING or name in self._stopped_by_command:
            return
        service = self.get_service(name)
        if service is not None and service.auto_restart:
            log.warning(f"Service '{name}' went down unexpectedly.")
            self.pending_restarts.add(name)

    def _attempt_restart(self, service: ServiceDefinition) -> bool:
        """
        Attempts to restart a stopped service with cooldown and attempt limits.

        Failures are only reset once the service is observed running again, so a
        service that dies right after launch still runs out of attempts.

        :return: True if the service was started, False otherwise.
        """
        name = service.name
        if self.restart_cooldown_timers.get(name, 0) > time.time():
            log.debug(f"Service '{name}' is in cooldown. Skipping restart.")
            return False

        current_failures = self.restart_failures.get(name, 0)
        if current_failures >= self.settings.MAX_RESTART_ATTEMPTS:
            log.critical(f"Service '{name}' has failed {current_failures} times. Halting restart attempts.")
            self.pending_restarts.discard(name)
            return False

        log.warning(f"Service '{name}' is down. Restart attempt #{current_failures + 1}...")
        result = self.start_service(service)
        self.restart_failures[name] = current_failures + 1
        if result.success:
            log.info(f"Service '{name}' restarted successfully.")
            return True

        cooldown_period = self.settings.RESTART_COOLDOWN_PERIOD
        self.restart_cooldown_timers[name] = time.time() + cooldown_period
        log.error(f"Failed to restart '{name}'. Cooldown active for {cooldown_period}s.")
        return False
