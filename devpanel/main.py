import sys
import logging
from typing import List

import devpanel.local.console as console
from devpanel.log.setup import setup_logging
from devpanel.local.config import PanelSettings
from devpanel.local.lifecycle.panel import PanelController

log = logging.getLogger("console")


def run_once(panel: PanelController, argv: List[str]) -> None:
    """Runs a single command given on the command line, e.g. `devpanel service web stop --verbose`."""
    command, args = argv[0].lower(), [a for a in argv[1:] if a != "--verbose"]
    if len(args) != len(argv) - 1:
        console.toggle_verbose_logging()
    console.execute_command(panel, command, args)


def run_console(panel: PanelController) -> None:
    """Reads commands until 'exit', Ctrl+C or end of input."""
    print("--- DevPanel Management Console ---")
    print("Type 'help' for a list of commands.")
    print(f"DevPanel is currently {'Running' if panel.is_running() else 'Stopped'}.")

    while True:
        try:
            words = input("> ").split()
        except (KeyboardInterrupt, EOFError):
            print()
            return
        if not words:
            continue

        log.debug(f"Received command: {words}")
        try:
            if console.execute_command(panel, words[0].lower(), words[1:]):
                return
        except Exception as e:
            log.error(f"Command '{words[0]}' failed: {e}", exc_info=True)


def main() -> None:
    setup_logging(logging.INFO)
    panel = PanelController(PanelSettings())
    if len(sys.argv) > 1:
        run_once(panel, sys.argv[1:])
    else:
        run_console(panel)


if __name__ == "__main__":
    main()
