import asyncio
import logging
import threading
import contextlib
from typing import AsyncIterator, Optional

from starlette.routing import Route
from starlette.requests import Request
from starlette.middleware import Middleware
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from devpanel.local.config import PanelSettings
from devpanel.local.lifecycle import PidStore
from devpanel.local.lifecycle.manager import ServiceManager

log = logging.getLogger("dashboard")


async def _in_thread(func, *args):
    """Runs a blocking lifecycle call (subprocess, psutil) off the event loop."""
    return await asyncio.get_running_loop().run_in_executor(None, func, *args)


# --- Request Handlers ---
async def process_status(request: Request) -> JSONResponse:
    """{"running": bool, "process": str} for an image-name check."""
    manager: ServiceManager = request.app.state.manager
    return JSONResponse(await _in_thread(manager.process_status, request.path_params["service"]))


async def validate_config(request: Request) -> JSONResponse:
    """{"valid": bool, "output": str, "returnCode": int} for a configuration test."""
    manager: ServiceManager = request.app.state.manager
    return JSONResponse(await _in_thread(manager.validate_config, request.path_params["service"]))


async def service_command(request: Request) -> JSONResponse:
    """Runs ?service=<name>&action=<start|stop|restart>."""
    manager: ServiceManager = request.app.state.manager
    service = request.query_params.get("service", "")
    action = request.query_params.get("action", "")
    result = await _in_thread(manager.execute, service, action)
    if result.success:
        # Record the new state so the next summary does not fire a stale transition.
        await _in_thread(manager.check, service)
    return JSONResponse(result.to_dict())


async def services_summary(request: Request) -> JSONResponse:
    manager: ServiceManager = request.app.state.manager
    return JSONResponse({"services": await _in_thread(manager.service_summary)})


async def service_stats(request: Request) -> JSONResponse:
    """The stats.json snapshot, or per-service defaults with a warning."""
    manager: ServiceManager = request.app.state.manager
    return JSONResponse(await _in_thread(manager.stats.snapshot, list(manager.settings.services)))


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "pid": request.app.state.pid})


# --- Application Factory ---
def create_app(settings: Optional[PanelSettings] = None, manager: Optional[ServiceManager] = None,
               run_monitor: bool = True) -> Starlette:
    """
    Builds the dashboard API.

    On startup the app records its own pid in PID_FILE_PATH and, if `run_monitor`
    is set, starts the service monitor thread. Both are undone on shutdown.

    :param settings: Panel settings. Loaded from settings.py and config.json if omitted.
    :param manager: Service manager to expose. Built from `settings` if omitted.
    :param run_monitor: Whether to run the periodic reconciliation loop.
    """
    settings = settings or PanelSettings()
    manager = manager or ServiceManager(settings)
    pid_store = PidStore(settings.PID_FILE_PATH, settings.CONFIG_JSON_PATH)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        result = pid_store.write_pid()
        if result.ok:
            app.state.pid = result.pid
            log.info(f"Dashboard started with PID {result.pid}.")
        else:
            log.error(f"Dashboard is running without a PID record: {result.error}")

        stop_event = threading.Event()
        if run_monitor:
            threading.Thread(
                target=manager.monitor_loop, args=(stop_event,), daemon=True, name="ServiceMonitorThread"
            ).start()
        try:
            yield
        finally:
            stop_event.set()
            pid_store.delete_pid()
            log.info("Dashboard stopped.")

    app = Starlette(
        routes=[
            Route("/api/process/{service}", process_status),
            Route("/api/validate/{service}", validate_config),
            Route("/api/command", service_command),
            Route("/api/services", services_summary),
            Route("/api/stats", service_stats),
            Route("/api/health", health),
        ],
        middleware=[Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"])],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.manager = manager
    app.state.pid = None
    return app
