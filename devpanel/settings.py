"""
This module contains the default configuration settings for the DevPanel control panel.
It defines paths, dashboard settings, lifecycle timings and the well-known services.
Values here are the baseline; `config/config.json` and the environment override them.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(os.getenv("DEVPANEL_BASE_DIR", pathlib.Path(__file__).resolve().parent.parent))
BIN_DIR = BASE_DIR / "bin"
CONFIG_DIR = BASE_DIR / "config"
LOGS_DIR = BASE_DIR / "logs"

#* --- Application File Paths ---
PID_FILE_PATH = CONFIG_DIR / "lns.pid"
CONFIG_JSON_PATH = CONFIG_DIR / "config.json"
STATS_JSON_PATH = CONFIG_DIR / "stats.json"
LOG_FILE_PATH = LOGS_DIR / "devpanel.log"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3

#* --- Python Executable Configuration ---
# Used to launch the dashboard server in a detached child process.
PYTHON_EXECUTABLE = os.getenv("PYTHON_EXECUTABLE", sys.executable)

#* --- Dashboard Settings ---
DASHBOARD_HOST = os.getenv("DEVPANEL_HOST", "127.0.0.1")
DASHBOARD_PORT = int(os.getenv("DEVPANEL_PORT", "8765"))
DASHBOARD_PROCESS_TITLE = "DevPanel - Dashboard"
DASHBOARD_STARTUP_TIMEOUT = 15  # seconds

#* --- Lifecycle Settings ---
RECONCILE_INTERVAL = int(os.getenv("DEVPANEL_RECONCILE_INTERVAL", "30"))  # seconds
PROCESS_QUERY_TIMEOUT = 5      # seconds, bound on pgrep/ps/tasklist
VALIDATION_TIMEOUT = 15        # seconds, bound on config test commands
GRACEFUL_SHUTDOWN_TIMEOUT = 10 # seconds before force-killing
RESTART_DELAY = 1              # seconds between stop and start
MAX_RESTART_ATTEMPTS = 3
RESTART_COOLDOWN_PERIOD = 30   # seconds

#* --- Well-known Services ---
# Keys are case-insensitive service names. 'process' is the image name without
# the platform suffix; '.exe' is appended on Windows.
DEFAULT_SERVICES = {
    "apache": {
        "exe": str(BIN_DIR / "apache" / "bin" / "httpd"),
        "process": "httpd",
        "validate": [str(BIN_DIR / "apache" / "bin" / "httpd"), "-t"],
        "auto_restart": False,
    },
    "mysql": {
        "exe": str(BIN_DIR / "mysql" / "bin" / "mysqld"),
        "process": "mysqld",
        "validate": [str(BIN_DIR / "mysql" / "bin" / "mysqld"), "--validate-config"],
        "auto_restart": False,
    },
}
