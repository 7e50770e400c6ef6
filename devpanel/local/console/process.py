import time
import logging
from typing import List

from devpanel.local.lifecycle.panel import PanelController
from devpanel.local.console.handler import (
    display_status, handle_service_command, handle_validate_command, print_help, toggle_verbose_logging,
)

log = logging.getLogger(__name__)


def execute_command(panel: PanelController, command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param panel: The controller for the dashboard and its services.
    :param command: The main command string (e.g., 'start', 'service').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": panel.start,
        "stop": panel.stop,
        "shutdown": panel.stop, # Foolproof alias
        "status": lambda: display_status(panel),
        "service": lambda: handle_service_command(panel, args),
        "validate": lambda: handle_validate_command(panel, args),
        "verbose": toggle_verbose_logging,
        "help": print_help,
        "exit": lambda: True
    }

    should_exit = False
    if command in command_map:
        result = command_map[command]()
        if command == "exit" and result is True:
            should_exit = True

    elif command == "restart":
        log.info("Stopping DevPanel...")
        panel.stop()
        time.sleep(panel.settings.RESTART_DELAY)
        log.info("Starting DevPanel...")
        panel.start()

    else:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")

    return should_exit
