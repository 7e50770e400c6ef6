import enum
import logging
from typing import Callable, List, NamedTuple, Optional, Tuple

from .locator import ProcessLocator
from .pid_store import PidStore

log = logging.getLogger(__name__)


class ServiceState(str, enum.Enum):
    UNKNOWN = "unknown"
    STOPPED = "stopped"
    RUNNING = "running"


class Verdict(NamedTuple):
    """The single answer of one reconciliation check."""
    service: str
    state: ServiceState
    previous: ServiceState
    pid: Optional[int] = None
    record_pid: Optional[int] = None
    transitioned: bool = False

    def to_dict(self) -> dict:
        return {
            "service": self.service,
            "state": self.state.value,
            "running": self.state is ServiceState.RUNNING,
            "pid": self.pid,
            "record_pid": self.record_pid,
        }


TransitionCallback = Callable[[Verdict], None]


class Reconciler:
    """
    Reconciles a service's PID record against the live process table.

    Each call to `check()` produces one verdict. Listeners registered with
    `on_transition()` are called only when the verdict differs from the previous
    one. The previous state is the only thing kept between checks; callers are
    expected to serialize checks for the same service.
    """

    def __init__(
        self,
        name: str,
        locator: ProcessLocator,
        pid_store: Optional[PidStore] = None,
        image_name: Optional[str] = None,
    ) -> None:
        self.name = name
        self.locator = locator
        self.pid_store = pid_store
        self.image_name = image_name
        self.state = ServiceState.UNKNOWN
        self.last_verdict: Optional[Verdict] = None
        self._listeners: List[TransitionCallback] = []

    def on_transition(self, callback: TransitionCallback) -> None:
        self._listeners.append(callback)

    def _observe(self) -> Tuple[ServiceState, Optional[int], Optional[int]]:
        """Returns (state, observed pid, recorded pid)."""
        record_pid = self.pid_store.read_pid() if self.pid_store else None

        if record_pid is None:
            if not self.image_name:
                return ServiceState.STOPPED, None, None
            # Alive without a record means it was started outside the panel; the file is not repaired.
            observation = self.locator.locate(self.image_name)
        else:
            # A dead recorded pid leaves the stale file in place for diagnosis.
            observation = self.locator.locate(record_pid)

        state = ServiceState.RUNNING if observation.found else ServiceState.STOPPED
        return state, observation.pid, record_pid

    def check(self) -> Verdict:
        """
        Runs one reconciliation check. Never raises.

        :return: The verdict for this check.
        """
        previous = self.state
        try:
            state, pid, record_pid = self._observe()
        except Exception as e:
            log.error(f"Status check for '{self.name}' failed, assuming stopped: {e}", exc_info=True)
            state, pid, record_pid = ServiceState.STOPPED, None, None

        verdict = Verdict(
            service=self.name,
            state=state,
            previous=previous,
            pid=pid,
            record_pid=record_pid,
            transitioned=state is not previous,
        )
        self.state = state
        self.last_verdict = verdict

        if verdict.transitioned:
            log.info(f"Service '{self.name}' changed state: {previous.value} -> {state.value}")
            self._notify(verdict)
        return verdict

    def _notify(self, verdict: Verdict) -> None:
        for callback in self._listeners:
            try:
                callback(verdict)
            except Exception as e:
                log.error(f"Transition handler for '{self.name}' failed: {e}", exc_info=True)
