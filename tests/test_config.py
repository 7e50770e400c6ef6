import json
import codecs
from pathlib import Path

import pytest

from devpanel.local import config as config_module
from devpanel.local.config import PanelSettings, ServiceDefinition


def _settings_with_document(tmp_path, raw: bytes) -> PanelSettings:
    config_path = tmp_path / "config.json"
    config_path.write_bytes(raw)
    return PanelSettings(
        CONFIG_JSON_PATH=config_path,
        DEFAULT_SERVICES={"apache": {"exe": "/opt/httpd", "process": "httpd"}},
    )


def test_defaults_without_document(tmp_path):
    settings = PanelSettings(CONFIG_JSON_PATH=tmp_path / "missing.json", RECONCILE_INTERVAL=5)

    assert settings.RECONCILE_INTERVAL == 5
    assert settings.get("NOT_A_SETTING", "fallback") == "fallback"
    assert {"apache", "mysql"} <= set(settings.services)


def test_document_services_merge_case_insensitively(tmp_path):
    document = {
        "settings": {"lang": "en"},
        "services": {
            "Apache": {"exe": "C:/srv/httpd.exe", "auto_restart": True},
            "VHostManager": {"exe": "C:/ahk/AutoHotkey64.exe", "process": "AutoHotkey64.exe",
                             "args": ["VHostManager.ahk"], "pid_file": "C:/srv/vhost.pid"},
        },
    }
    settings = _settings_with_document(tmp_path, json.dumps(document).encode())

    apache = settings.services["apache"]
    assert apache.exe == "C:/srv/httpd.exe"
    assert apache.process == "httpd"
    assert apache.auto_restart is True

    vhost = settings.services["vhostmanager"]
    assert vhost.args == ("VHostManager.ahk",)
    assert vhost.pid_file == Path("C:/srv/vhost.pid")


def test_document_with_bom_is_read(tmp_path):
    document = {"services": {"apache": {"process": "apache2"}}}
    settings = _settings_with_document(tmp_path, codecs.BOM_UTF8 + json.dumps(document).encode())

    assert settings.services["apache"].process == "apache2"


@pytest.mark.parametrize("raw", [b"{broken", b"[]", json.dumps({"services": []}).encode()])
def test_malformed_document_falls_back_to_defaults(tmp_path, raw):
    settings = _settings_with_document(tmp_path, raw)

    assert settings.services == {"apache": ServiceDefinition("apache", exe="/opt/httpd", process="httpd")}


def test_invalid_service_entry_is_ignored(tmp_path):
    settings = _settings_with_document(tmp_path, json.dumps({"services": {"bad": "httpd"}}).encode())

    assert "bad" not in settings.services


def test_lowercase_override_is_rejected():
    with pytest.raises(ValueError):
        PanelSettings(pid_file_path="x")


def test_image_name_gets_exe_suffix_on_windows(monkeypatch):
    service = ServiceDefinition("apache", process="httpd")
    monkeypatch.setattr(config_module.sys, "platform", "win32")

    assert service.image_name == "httpd.exe"
    assert ServiceDefinition("x", process="Tool.EXE").image_name == "Tool.EXE"
    assert ServiceDefinition("x").image_name is None


def test_image_name_is_unchanged_on_posix(monkeypatch):
    monkeypatch.setattr(config_module.sys, "platform", "linux")

    assert ServiceDefinition("apache", process="httpd").image_name == "httpd"
