import sys
import json
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import devpanel.settings as default_settings
from devpanel.local.lifecycle.bom import strip_bom

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceDefinition:
    """A single well-known service managed by the panel."""
    name: str
    exe: Optional[str] = None
    process: Optional[str] = None
    args: Tuple[str, ...] = ()
    pid_file: Optional[Path] = None
    validate: Tuple[str, ...] = ()
    auto_restart: bool = False

    @property
    def image_name(self) -> Optional[str]:
        """The platform-specific image name used for process table lookups."""
        if not self.process:
            return None
        if sys.platform == "win32" and not self.process.lower().endswith(".exe"):
            return f"{self.process}.exe"
        return self.process

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ServiceDefinition":
        pid_file = data.get("pid_file")
        return cls(
            name=name.lower(),
            exe=data.get("exe") or None,
            process=data.get("process") or None,
            args=tuple(str(a) for a in data.get("args") or ()),
            pid_file=Path(pid_file) if pid_file else None,
            validate=tuple(str(a) for a in data.get("validate") or ()),
            auto_restart=bool(data.get("auto_restart", False)),
        )


class PanelSettings:
    """
    Merges default settings with the JSON settings document.

    Precedence:
    1. Base values from `settings.py` (already merged with `.env` by `python-dotenv`).
    2. Keyword overrides passed by the caller (used by the dashboard and tests).
    3. The `services` section of `config.json`, merged over `DEFAULT_SERVICES`.

    Paths are resolved once here and handed explicitly to every component.
    """

    def __init__(self, **overrides: Any) -> None:
        self._load_defaults()
        for key, value in overrides.items():
            if not key.isupper():
                raise ValueError(f"Setting names are uppercase, got '{key}'.")
            setattr(self, key, value)

        self.services: Dict[str, ServiceDefinition] = {}
        self._load_services()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _read_document(self) -> Dict[str, Any]:
        """Reads config.json, returning an empty dict if it is missing or malformed."""
        config_path = Path(self.CONFIG_JSON_PATH)
        if not config_path.exists():
            return {}
        try:
            document = json.loads(strip_bom(config_path.read_bytes()).decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, IOError) as e:
            log.error(f"Failed to load or parse settings document '{config_path}': {e}")
            return {}
        if not isinstance(document, dict):
            log.error(f"Settings document '{config_path}' is not a JSON object. Ignoring.")
            return {}
        return document

    def _load_services(self) -> None:
        """Builds the service table from defaults and the `services` section of config.json."""
        merged: Dict[str, Dict[str, Any]] = {
            name.lower(): dict(definition) for name, definition in self.DEFAULT_SERVICES.items()
        }

        configured = self._read_document().get("services", {})
        if not isinstance(configured, dict):
            log.warning("'services' in settings document is not an object. Using defaults.")
            configured = {}

        for name, definition in configured.items():
            if not isinstance(definition, dict):
                log.warning(f"Service '{name}' has an invalid definition. Ignoring.")
                continue
            merged.setdefault(name.lower(), {}).update(definition)

        self.services = {
            name: ServiceDefinition.from_dict(name, definition)
            for name, definition in merged.items()
        }
        log.debug(f"Loaded {len(self.services)} service definitions: {', '.join(sorted(self.services))}")

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return getattr(self, item, default)
