import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

log = logging.getLogger(__name__)


#* --- Process Creation ---
def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific flags so the child outlives the console that started it."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def _read_pipe(pipe, process_name: str, level: int, line_handler: Optional[Callable] = None):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            if line_handler:
                line_handler(line)
            else:
                proc_logger.log(level, line)
    except Exception as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str, line_handler: Optional[Callable] = None):
    """Starts background threads to consume and log a process's stdout/stderr."""
    if process.stdout:
        threading.Thread(target=_read_pipe, args=(process.stdout, name, logging.INFO, line_handler), daemon=True).start()
    if process.stderr:
        threading.Thread(target=_read_pipe, args=(process.stderr, name, logging.ERROR), daemon=True).start()

def launch_detached(args: List[str], name: str, cwd: Optional[Path] = None, capture_output: bool = True) -> subprocess.Popen:
    """
    Launches a process in the background.

    :param args: Command line of the process.
    :param name: Logical name, used for the 'proc.<name>' output logger.
    :param cwd: Working directory; defaults to the executable's directory if it exists.
    :param capture_output: If True, stdout/stderr are drained into the log.
    :raises OSError: If the executable cannot be started.
    """
    if cwd is None:
        exe_dir = Path(args[0]).parent
        cwd = exe_dir if exe_dir.is_dir() and str(exe_dir) != "." else None

    log.info(f"Starting process: {name}...")
    stream = subprocess.PIPE if capture_output else subprocess.DEVNULL
    p = subprocess.Popen(
        args, stdout=stream, stderr=stream, stdin=subprocess.DEVNULL,
        cwd=str(cwd.resolve()) if cwd else None, **_get_popen_creation_flags()
    )
    if capture_output:
        log_process_output(p, name)
    log.info(f"{name.capitalize()} started with PID: {p.pid}")
    return p


#* --- Process Discovery ---
def get_process(pid: int) -> Optional[psutil.Process]:
    """Returns a psutil.Process for a live pid, or None."""
    try:
        return psutil.Process(pid)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None

def find_processes_by_name(image_name: str) -> List[psutil.Process]:
    """Returns all processes whose name matches the image name (case-insensitive)."""
    target = image_name.lower()
    matches = []
    for proc in psutil.process_iter(["name"]):
        name = (proc.info.get("name") or "").lower()
        if name == target:
            matches.append(proc)
    return matches

def with_children(processes: Iterable[psutil.Process]) -> List[psutil.Process]:
    """Expands a set of processes with all of their descendants."""
    by_pid = {p.pid: p for p in processes}
    for proc in list(by_pid.values()):
        try:
            for child in proc.children(recursive=True):
                by_pid.setdefault(child.pid, child)
        except psutil.NoSuchProcess:
            log.warning(f"Process {proc.pid} no longer exists, skipping children retrieval.")
    return list(by_pid.values())


#* --- Process Termination ---
def _terminate_processes(processes: Iterable[psutil.Process]) -> None:
    """Sends SIGTERM (TerminateProcess on Windows) to all processes."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to {proc.name()} (PID {proc.pid})")
            proc.terminate()
        except psutil.NoSuchProcess:
            log.warning(f"Process {proc.pid} no longer exists, skipping termination.")
        except psutil.AccessDenied:
            log.error(f"Access denied while terminating PID {proc.pid}.")

def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not processes:
        return

    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            log.warning(f"Process {proc.pid} no longer exists, skipping forceful kill.")
        except psutil.AccessDenied:
            log.error(f"Access denied while killing PID {proc.pid}.")

def terminate_gracefully(processes: Iterable[psutil.Process], timeout: float) -> List[psutil.Process]:
    """
    Terminates processes, waits up to `timeout` seconds and kills the survivors.

    :return: Processes that were still alive after the forced kill.
    """
    procs_list = list(processes)
    if not procs_list:
        return []
    _terminate_processes(procs_list)

    try:
        _, alive = psutil.wait_procs(procs_list, timeout=timeout)
    except psutil.NoSuchProcess:
        alive = []

    _forceful_kill(alive)
    if not alive:
        return []
    _, still_alive = psutil.wait_procs(alive, timeout=1)
    return still_alive
