# src/telloseek/orchestrator_link.py
"""
OrchestratorLink Module
=======================

Websocket client for the mission orchestrator (aiohttp).

The link connects, dispatches every decoded inbound message to a handler
coroutine, and reconnects with a fixed delay whenever the socket drops or
the connection attempt fails. Handlers run as their own tasks so a slow
mission start never stalls message ingestion. Outbound messages are dropped
while disconnected; the mission keeps running locally either way.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, Set

import aiohttp

from telloseek.logging_manager import logging_manager
from telloseek.messages import InboundMessage, MessageDecodeError, OutboundMessage, decode_message, encode_message
from telloseek.parameters import Parameters

logger = logging.getLogger(__name__)

MessageHandler = Callable[[InboundMessage], Awaitable[None]]
ConnectCallback = Callable[[], Awaitable[None]]


class OrchestratorLink:
    """
    Reconnecting websocket link to the orchestrator.

    Args:
        url: Websocket URL of the orchestrator agent.
        handler: Coroutine function called with each decoded inbound message.
        reconnect_delay: Seconds to wait between connection attempts.
        heartbeat: Websocket ping interval in seconds (None disables it).
        ignored_types: Message types that are silently discarded.
        on_connect: Coroutine function run after every successful (re)connect.
        session_factory: Factory for the aiohttp client session.
    """

    SERVICE_NAME = "Orchestrator"

    def __init__(self, url: str, handler: MessageHandler, reconnect_delay: float = 5.0,
                 heartbeat: Optional[float] = 30.0, ignored_types: Iterable[str] = ('cf_agent_state',),
                 on_connect: Optional[ConnectCallback] = None,
                 session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession):
        self.url = url
        self.handler = handler
        self.reconnect_delay = reconnect_delay
        self.heartbeat = heartbeat
        self.ignored_types = set(ignored_types)
        self.on_connect = on_connect
        self._session_factory = session_factory

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._stop_event = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self.connection_count = 0
        self.messages_received = 0
        self.messages_dropped = 0

    @classmethod
    def from_parameters(cls, handler: MessageHandler,
                        on_connect: Optional[ConnectCallback] = None) -> 'OrchestratorLink':
        heartbeat = float(Parameters.HEARTBEAT_INTERVAL) or None
        return cls(
            Parameters.AGENT_WS_URL,
            handler,
            reconnect_delay=float(Parameters.RECONNECT_DELAY),
            heartbeat=heartbeat,
            ignored_types=Parameters.IGNORED_MESSAGE_TYPES or (),
            on_connect=on_connect,
        )

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def run(self) -> None:
        """Connect and keep reconnecting until stop() is called."""
        async with self._session_factory() as session:
            while not self._stop_event.is_set():
                try:
                    await self._serve(session)
                    details = "(socket closed)"
                except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                    details = f"({e.__class__.__name__}: {e})"
                finally:
                    self._ws = None

                if self._stop_event.is_set():
                    break
                logging_manager.log_connection_status(
                    logger, self.SERVICE_NAME, False,
                    f"{details} - retrying in {self.reconnect_delay:g}s",
                )
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.reconnect_delay)
                except asyncio.TimeoutError:
                    pass

    async def _serve(self, session: aiohttp.ClientSession) -> None:
        async with session.ws_connect(self.url, heartbeat=self.heartbeat) as ws:
            self._ws = ws
            self.connection_count += 1
            logging_manager.log_connection_status(logger, self.SERVICE_NAME, True, f"({self.url})")
            if self.on_connect is not None:
                self._spawn(self.on_connect(), "session setup")

            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning(f"Orchestrator socket error: {ws.exception()}")
                    break

    def dispatch(self, text: str) -> Optional[asyncio.Task]:
        """Decode one inbound frame and schedule its handler."""
        try:
            message = decode_message(text)
        except MessageDecodeError as e:
            if e.message_type not in self.ignored_types:
                logging_manager.log_operation(logger, "Orchestrator message ignored", 'warning', str(e))
            return None

        self.messages_received += 1
        logger.debug(f"Orchestrator -> {message.type.value}")
        return self._spawn(self.handler(message), message.type.value)

    def _spawn(self, coro: Awaitable[None], name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._task_done(t, name))
        return task

    def _task_done(self, task: asyncio.Task, name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Handler for '{name}' failed: {exc!r}", exc_info=exc)

    async def send(self, message: OutboundMessage) -> bool:
        """
        Send one message.

        Returns:
            bool: False when the link is down or the send failed (message dropped).
        """
        ws = self._ws
        if ws is None or ws.closed:
            self.messages_dropped += 1
            logger.debug(f"Orchestrator offline, dropped '{message.type.value}' message")
            return False
        try:
            await ws.send_str(encode_message(message))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            self.messages_dropped += 1
            logging_manager.log_operation(logger, "Orchestrator send failed", 'warning', str(e))
            return False
        return True

    async def stop(self) -> None:
        """Stop reconnecting, close the socket and cancel pending handlers."""
        self._stop_event.set()
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
