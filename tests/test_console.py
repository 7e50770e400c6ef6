import pytest

from devpanel import main as main_module
from devpanel.local.console import execute_command
from devpanel.local.console import handler
from devpanel.local.lifecycle import process_utils
from devpanel.local.lifecycle.panel import PanelController


@pytest.fixture
def panel(settings, make_locator):
    return PanelController(settings, make_locator({settings.services["web"].image_name: 55}))


def test_exit_and_unknown_commands(panel):
    assert execute_command(panel, "exit", []) is True
    assert execute_command(panel, "frobnicate", []) is False


def test_status_uses_local_checks_when_panel_stopped(panel, capsys):
    execute_command(panel, "status", [])

    out = capsys.readouterr().out
    assert "devpanel" in out
    assert "local checks" in out
    assert "web: Running" in out
    assert "helper: Stopped" in out


def test_status_marks_stale_panel_record(panel, capsys):
    panel.pid_store.write_pid(4242)

    execute_command(panel, "status", [])

    assert "stale PID file: 4242" in capsys.readouterr().out


def test_service_command_usage(panel, capsys):
    execute_command(panel, "service", ["web"])

    out = capsys.readouterr().out
    assert "Usage: service" in out
    assert "helper" in out


def test_service_command_runs_locally_when_panel_stopped(panel, capsys):
    execute_command(panel, "service", ["web", "start"])

    assert "web: web is already running" in capsys.readouterr().out


def test_validate_command(panel, capsys):
    execute_command(panel, "validate", ["web"])

    assert "is VALID" in capsys.readouterr().out


def test_panel_is_running_follows_record_and_locator(settings, make_locator):
    locator = make_locator()
    panel = PanelController(settings, locator)
    assert panel.is_running() is False

    panel.pid_store.write_pid(4242)
    assert panel.is_running() is False

    locator.alive[4242] = 4242
    assert panel.is_running() is True


def test_panel_start_refuses_when_running(settings, make_locator, monkeypatch):
    launched = []
    monkeypatch.setattr(process_utils, "launch_detached", lambda *a, **kw: launched.append(a))
    panel = PanelController(settings, make_locator({4242: 4242}))
    panel.pid_store.write_pid(4242)

    assert panel.start() is False
    assert launched == []


def test_panel_stop_without_record(panel):
    assert panel.stop() is False


def test_panel_stop_removes_stale_record(panel, monkeypatch):
    monkeypatch.setattr(process_utils, "get_process", lambda pid: None)
    panel.pid_store.write_pid(4242)

    assert panel.stop() is False
    assert not panel.pid_store.pid_file.exists()


def test_panel_stop_terminates_recorded_process(panel, monkeypatch):
    proc = object()
    seen = []
    monkeypatch.setattr(process_utils, "get_process", lambda pid: proc)
    monkeypatch.setattr(process_utils, "with_children", lambda procs: list(procs))
    monkeypatch.setattr(process_utils, "terminate_gracefully", lambda procs, timeout: seen.extend(procs) or [])
    panel.pid_store.write_pid(4242)

    assert panel.stop() is True
    assert seen == [proc]
    assert not panel.pid_store.pid_file.exists()


def test_verbose_toggle(monkeypatch):
    monkeypatch.setattr(handler, "VERBOSE_LOGGING", False)

    handler.toggle_verbose_logging()

    assert handler.VERBOSE_LOGGING is True


def test_run_once_strips_verbose_flag(panel, monkeypatch, capsys):
    seen = []
    monkeypatch.setattr(handler, "VERBOSE_LOGGING", False)
    monkeypatch.setattr(main_module.console, "execute_command", lambda p, command, args: seen.append((command, args)))

    main_module.run_once(panel, ["SERVICE", "web", "--verbose", "stop"])

    assert seen == [("service", ["web", "stop"])]
    assert handler.VERBOSE_LOGGING is True


def test_run_console_exits_on_end_of_input(panel, monkeypatch, capsys):
    lines = iter(["", "help"])

    def fake_input(prompt):
        try:
            return next(lines)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr("builtins.input", fake_input)

    main_module.run_console(panel)

    assert "Available commands:" in capsys.readouterr().out
