import logging
from typing import Any, Dict, List

from devpanel.local.dashboard_client import fetch_service_summary, send_service_command
from devpanel.local.lifecycle.manager import VALID_ACTIONS
from devpanel.local.lifecycle.panel import PanelController

log = logging.getLogger(__name__)

VERBOSE_LOGGING = False


def _print_verdict(name: str, verdict: Dict[str, Any]) -> None:
    state = str(verdict.get("state", "unknown")).upper()
    pid = verdict.get("pid") or "N/A"
    line = f"  - {name:<16} : {state:<8} | PID {pid}"
    record_pid = verdict.get("record_pid")
    if record_pid and not verdict.get("running"):
        line += f" (stale PID file: {record_pid})"
    print(line)

def display_status(panel: PanelController) -> None:
    """Shows the panel's own state and the verdict of every managed service."""
    print("\n--- DevPanel Status ---")
    panel_verdict = panel.status().to_dict()
    _print_verdict("devpanel", panel_verdict)

    services = None
    source = "local checks"
    if panel_verdict["running"]:
        services = fetch_service_summary(panel.settings.DASHBOARD_HOST, panel.settings.DASHBOARD_PORT)
        if services is not None:
            source = f"dashboard (PID {panel_verdict['pid']})"
        else:
            source = "local checks (dashboard API unreachable)"
    if services is None:
        services = [verdict.to_dict() for verdict in panel.manager.check_all()]

    print(f"\nServices (source: {source}):")
    for verdict in services:
        _print_verdict(verdict.get("service", "?"), verdict)

    summary = " | ".join(
        f"{v.get('service')}: {'Running' if v.get('running') else 'Stopped'}" for v in services
    )
    print(f"\n=== Service Summary ===\n{summary}")
    print("-" * 23 + "\n")

def handle_service_command(panel: PanelController, args: List[str]) -> None:
    """Handles 'service <name> <start|stop|restart>'."""
    if len(args) < 2 or args[1].lower() not in VALID_ACTIONS:
        print(f"Usage: service <name> <{'|'.join(VALID_ACTIONS)}>")
        print(f"Known services: {', '.join(sorted(panel.settings.services))}")
        return

    name, action = args[0].lower(), args[1].lower()
    result = None
    if panel.is_running():
        result = send_service_command(panel.settings.DASHBOARD_HOST, panel.settings.DASHBOARD_PORT, name, action)
    if result is None:
        result = panel.manager.execute(name, action).to_dict()

    print(f"{name}: {result.get('message')}")
    if not result.get("success"):
        for line in result.get("output", []):
            print(f"  {line}")

def handle_validate_command(panel: PanelController, args: List[str]) -> None:
    """Handles 'validate <name>'."""
    if not args:
        print("Usage: validate <service>")
        return
    result = panel.manager.validate_config(args[0])
    print(f"\nConfiguration of '{args[0]}' is {'VALID' if result['valid'] else 'INVALID'} (exit code {result['returnCode']}).")
    if result["output"]:
        print(result["output"])
    print()

def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    global VERBOSE_LOGGING
    VERBOSE_LOGGING = not VERBOSE_LOGGING
    new_level = logging.DEBUG if VERBOSE_LOGGING else logging.INFO

    # Reconfigure the console handler's level directly
    root_logger = logging.getLogger()
    found_handler = False
    for handler in root_logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(new_level)
            found_handler = True
            break

    status = "ON" if VERBOSE_LOGGING else "OFF"
    if found_handler:
        print(f"Verbose console logging is now {status}.")
        log.debug("Debug logging test: This message should only appear when verbose is ON.")
    else:
        print("Could not find console handler to modify level.")

def print_help():
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  start                       - Start the DevPanel dashboard in the background.")
    print("  stop                        - Stop the dashboard and remove its PID file.")
    print("  restart                     - Stop and then restart the dashboard.")
    print("  status                      - Show the state of the panel and all services.")
    print("  service <name> <action>     - Start, stop or restart a managed service.")
    print("  validate <name>             - Run a service's configuration test.")
    print("  verbose                     - Toggle detailed DEBUG log output in the console.")
    print("  exit                        - Exit the management console.")
    print()
