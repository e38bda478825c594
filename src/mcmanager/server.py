"""aiohttp HTTP surface: trigger, liveness and status endpoints.

Endpoints:
    POST /update   Run an update; requires X-Secret-Token when a secret is set
    GET  /healthz  Liveness, always 200
    GET  /status   Coordinator status as JSON; same auth as /update
"""

from __future__ import annotations

import asyncio

from aiohttp import web

from mcmanager.auth import SECRET_HEADER
from mcmanager.config import Settings, get_settings
from mcmanager.coordinator import UpdateCoordinator
from mcmanager.logging import get_logger
from mcmanager.models import PipelineConfig, TriggerStatus

log = get_logger("mcmanager.server")

COORDINATOR_KEY: web.AppKey[UpdateCoordinator] = web.AppKey("coordinator", UpdateCoordinator)

_STATUS_CODES: dict[TriggerStatus, int] = {
    TriggerStatus.ACCEPTED: 200,
    TriggerStatus.UNAUTHORIZED: 401,
    TriggerStatus.STAGE_FAILED: 500,
}


async def handle_update(request: web.Request) -> web.Response:
    coordinator = request.app[COORDINATOR_KEY]
    result = await coordinator.trigger(request.headers.get(SECRET_HEADER), remote=request.remote)
    return web.Response(status=_STATUS_CODES[result.status], text=result.message)


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def handle_status(request: web.Request) -> web.Response:
    coordinator = request.app[COORDINATOR_KEY]
    if not coordinator.is_authorized(request.headers.get(SECRET_HEADER)):
        return web.Response(status=401, text="unauthorized")
    return web.json_response(coordinator.status_snapshot())


async def _close_coordinator(app: web.Application) -> None:
    await app[COORDINATOR_KEY].aclose()


def create_app(coordinator: UpdateCoordinator) -> web.Application:
    """Build the aiohttp application around *coordinator*."""
    app = web.Application()
    app[COORDINATOR_KEY] = coordinator
    app.router.add_post("/update", handle_update)
    app.router.add_get("/healthz", handle_health)
    app.router.add_get("/status", handle_status)
    app.on_cleanup.append(_close_coordinator)
    return app


async def run_server(settings: Settings | None = None) -> None:
    """Serve until cancelled."""
    settings = settings or get_settings()
    config = PipelineConfig.from_settings(settings)
    app = create_app(UpdateCoordinator(config))

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host="0.0.0.0", port=settings.port)  # nosec B104
    await site.start()
    log.info(
        "server_listening",
        port=settings.port,
        repo_url=config.repo_url,
        branch=config.repo_branch,
        rcon=settings.rcon_address,
        auth_enabled=config.secret_token is not None,
    )

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        log.info("server_stopped")
