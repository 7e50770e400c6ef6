import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable

log = logging.getLogger(__name__)

RESET_METRICS = {"uptime": "00:00:00", "cpu": "0", "memory": "0"}


class StatsStore:
    """
    Keeps the per-service status snapshot read by the dashboard (stats.json).

    Metrics are reset whenever a service command changes the status.
    """

    def __init__(self, stats_file: Path) -> None:
        self.stats_file = Path(stats_file)

    def load(self) -> Dict[str, Dict[str, Any]]:
        """Returns the stats document, or an empty dict if it is missing or malformed."""
        if not self.stats_file.exists():
            return {}
        try:
            stats = json.loads(self.stats_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, IOError) as e:
            log.warning(f"Ignoring unreadable stats file '{self.stats_file}': {e}")
            return {}
        return stats if isinstance(stats, dict) else {}

    def record(self, service: str, status: str) -> Dict[str, Any]:
        """
        Sets a service's status and resets its metrics.

        :return: The service's updated entry.
        """
        stats = self.load()
        entry = stats.get(service)
        if not isinstance(entry, dict):
            entry = {}
        entry.update(RESET_METRICS, status=status)
        stats[service] = entry

        try:
            self.stats_file.parent.mkdir(parents=True, exist_ok=True)
            self.stats_file.write_text(json.dumps(stats, indent=4), encoding="utf-8")
        except IOError as e:
            log.error(f"Failed to write stats file '{self.stats_file}': {e}")
        return entry

    def snapshot(self, services: Iterable[str]) -> Dict[str, Any]:
        """
        Returns the stats document for the dashboard.

        If the file is missing, unreadable or empty, every service gets a reset
        entry with status "unknown" and a `warning` names the problem.
        """
        stats = self.load()
        if stats:
            return stats
        defaults: Dict[str, Any] = {name: dict(RESET_METRICS, status="unknown") for name in services}
        defaults["warning"] = f"'{self.stats_file.name}' is missing or unreadable. Showing defaults."
        return defaults
