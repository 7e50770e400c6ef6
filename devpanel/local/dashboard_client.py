import json
import logging
import requests
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)


def fetch_service_summary(host: str, port: int, timeout: float = 2) -> Optional[List[Dict[str, Any]]]:
    """
    Fetches the last service verdicts from a running dashboard.

    :param host: The host of the dashboard API.
    :param port: The port of the dashboard API.
    :param timeout: Request timeout in seconds.
    :return: A list of service verdict dicts, or None if the dashboard is unreachable.
    """
    url = f"http://{host}:{port}/api/services"
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json().get("services", [])
    except requests.exceptions.RequestException as e:
        log.debug(f"Could not reach dashboard API at '{url}': {e}")
        return None
    except (json.JSONDecodeError, AttributeError) as e:
        log.error(f"Failed to decode service summary from dashboard: {e}")
        return None


def send_service_command(host: str, port: int, service: str, action: str, timeout: float = 30) -> Optional[Dict[str, Any]]:
    """
    Asks a running dashboard to start, stop or restart a service.

    :return: The command result dict, or None if the dashboard is unreachable.
    """
    url = f"http://{host}:{port}/api/command"
    try:
        response = requests.get(url, params={"service": service, "action": action}, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        log.error(f"Failed to send '{action}' for '{service}' to dashboard: {e}")
        return None
    except json.JSONDecodeError as e:
        log.error(f"Failed to decode command result from dashboard: {e}")
        return None
