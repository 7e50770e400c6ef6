import sys
from typing import Dict, List, Optional, Union

import pytest

from devpanel.local.config import PanelSettings
from devpanel.local.lifecycle.locator import NOT_FOUND, ProcessLocator, ProcessObservation


class FakeLocator(ProcessLocator):
    """Locator backed by a dict of identity -> pid instead of the OS process table."""

    def __init__(self, alive: Optional[Dict[Union[int, str], int]] = None) -> None:
        super().__init__(timeout=1)
        self.alive = dict(alive or {})
        self.queries: List[Union[int, str]] = []

    def _locate(self, identity):
        self.queries.append(identity)
        if identity in self.alive:
            return ProcessObservation(True, self.alive[identity])
        return NOT_FOUND


@pytest.fixture
def make_locator():
    """Returns the FakeLocator class so tests can build locators with their own process tables."""
    return FakeLocator


@pytest.fixture
def settings(tmp_path) -> PanelSettings:
    config_dir = tmp_path / "config"
    return PanelSettings(
        BASE_DIR=tmp_path,
        CONFIG_DIR=config_dir,
        PID_FILE_PATH=config_dir / "lns.pid",
        CONFIG_JSON_PATH=config_dir / "config.json",
        STATS_JSON_PATH=config_dir / "stats.json",
        LOG_FILE_PATH=tmp_path / "logs" / "devpanel.log",
        RESTART_DELAY=0,
        RECONCILE_INTERVAL=1,
        GRACEFUL_SHUTDOWN_TIMEOUT=1,
        DEFAULT_SERVICES={
            "web": {
                "exe": str(tmp_path / "bin" / "httpd"),
                "process": "httpd",
                "validate": [sys.executable, "-c", "import sys; print('Syntax OK', file=sys.stderr)"],
            },
            "helper": {
                "exe": str(tmp_path / "bin" / "helperd"),
                "process": "helperd",
                "pid_file": str(tmp_path / "run" / "helper.pid"),
            },
        },
    )
