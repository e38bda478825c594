"""Graceful restart over RCON with a player-visible countdown.

Sequence: connect, announce, wait, count down from 10, send the restart
command, close. Any failure stops the sequence; messages already sent stay
sent. The connection is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog
from rcon.source import Client

from mcmanager.errors import RestartError
from mcmanager.logging import get_logger

if TYPE_CHECKING:
    from mcmanager.locale import Messages
    from mcmanager.models import PipelineConfig

log = get_logger("mcmanager.stages.restart")

COUNTDOWN_FROM = 10
COUNTDOWN_INTERVAL_SECONDS = 1.0

Sleep = Callable[[float], Awaitable[Any]]


class RconRestartAnnouncer:
    """Drives the announce/countdown/restart sequence against one server."""

    def __init__(
        self,
        host: str,
        port: int,
        password: str,
        messages: Messages,
        restart_command: str = "restart",
        countdown_wait: float = 50,
        client_factory: Callable[..., Any] = Client,
        sleep: Sleep = asyncio.sleep,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._password = password
        self._messages = messages
        self._restart_command = restart_command
        self._countdown_wait = countdown_wait
        self._client_factory = client_factory
        self._sleep = sleep
        self._log = (logger or log).bind(stage="restart", rcon=f"{host}:{port}")

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        messages: Messages,
        **kwargs: Any,
    ) -> RconRestartAnnouncer:
        return cls(
            host=config.rcon_host,
            port=config.rcon_port,
            password=config.rcon_password,
            messages=messages,
            restart_command=config.restart_command,
            countdown_wait=config.countdown_wait,
            **kwargs,
        )

    async def announce_restart(self) -> None:
        client = await self._connect()
        try:
            await self._say(client, self._messages.restart_warning, step="announce restart")
            self._log.info("restart_warning_sent", wait_seconds=self._countdown_wait)

            await self._sleep(self._countdown_wait)

            for seconds in range(COUNTDOWN_FROM, 0, -1):
                await self._say(
                    client,
                    self._messages.countdown_message(seconds),
                    step="countdown announce",
                )
                await self._sleep(COUNTDOWN_INTERVAL_SECONDS)

            await self._execute(client, self._restart_command, step="send restart command")
            self._log.info("restart_command_sent", command=self._restart_command, outcome="ok")
        finally:
            await asyncio.to_thread(client.close)
            self._log.debug("rcon_session_closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _connect(self) -> Any:
        client = self._client_factory(self._host, self._port, passwd=self._password)
        try:
            await asyncio.to_thread(client.connect, True)
        except Exception as exc:
            # The socket may never have been created, so close can fail too.
            with contextlib.suppress(Exception):
                await asyncio.to_thread(client.close)
            raise RestartError("connect to rcon", str(exc) or type(exc).__name__) from exc
        self._log.info("rcon_connected")
        return client

    async def _say(self, client: Any, text: str, step: str) -> None:
        await self._execute(client, f"say {text}", step=step)

    async def _execute(self, client: Any, command: str, step: str) -> str:
        try:
            return str(await asyncio.to_thread(client.run, command))
        except Exception as exc:
            raise RestartError(step, str(exc) or type(exc).__name__) from exc
