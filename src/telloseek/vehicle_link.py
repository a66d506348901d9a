# src/telloseek/vehicle_link.py
"""
VehicleLink Module
==================

UDP link to the vehicle. Two endpoints run on the event loop:

- the command socket sends text commands and receives the textual
  acknowledgements (``ok``, ``error``, query answers);
- the state socket receives the telemetry feed and feeds the TelemetryStore.

Both listeners are callbacks on asyncio datagram endpoints, so they never
block the mission loop. Acknowledgements are matched to the most recently
sent command only (latest wins); the vehicle protocol has no request ids.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from telloseek import vehicle_commands
from telloseek.logging_manager import logging_manager
from telloseek.parameters import Parameters
from telloseek.telemetry_store import TelemetryStore

logger = logging.getLogger(__name__)


class VehicleLinkError(RuntimeError):
    """Raised when the UDP endpoints cannot be opened."""


@dataclass(frozen=True)
class AckRecord:
    """Acknowledgement text paired with the command it most likely answers."""
    response: str
    command: Optional[str] = None
    received_at: float = field(default_factory=time.monotonic)


class _CommandProtocol(asyncio.DatagramProtocol):

    def __init__(self, link: 'VehicleLink'):
        self._link = link

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._link._handle_ack(data)

    def error_received(self, exc: Exception) -> None:
        logging_manager.log_operation(logger, "Vehicle command socket error", 'warning', str(exc))


class _StateProtocol(asyncio.DatagramProtocol):

    def __init__(self, store: TelemetryStore):
        self._store = store

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        # invalid records are dropped by the store itself
        self._store.update_from_text(data.decode('utf-8', errors='replace'))

    def error_received(self, exc: Exception) -> None:
        logging_manager.log_operation(logger, "Vehicle state socket error", 'warning', str(exc))


class VehicleLink:
    """
    Command/acknowledgement and telemetry channels to one vehicle.

    Args:
        telemetry_store: Store updated by the state listener.
        address: Vehicle IP address.
        command_port: Vehicle command port.
        local_command_port: Local port the command socket binds to (acks arrive here).
        state_port: Local port the telemetry feed arrives on.
        bind_host: Local interface to bind.
        on_ack: Optional callback invoked with every AckRecord.
    """

    def __init__(self, telemetry_store: TelemetryStore, address: str, command_port: int = 8889,
                 local_command_port: int = 8889, state_port: int = 8890, bind_host: str = '0.0.0.0',
                 on_ack: Optional[Callable[[AckRecord], None]] = None):
        self.telemetry_store = telemetry_store
        self.address = address
        self.command_port = command_port
        self.local_command_port = local_command_port
        self.state_port = state_port
        self.bind_host = bind_host
        self.on_ack = on_ack

        self._command_transport: Optional[asyncio.DatagramTransport] = None
        self._state_transport: Optional[asyncio.DatagramTransport] = None
        self.last_command: Optional[str] = None
        self.last_ack: Optional[AckRecord] = None
        self.commands_sent = 0
        self.send_failures = 0

    @classmethod
    def from_parameters(cls, telemetry_store: TelemetryStore,
                        on_ack: Optional[Callable[[AckRecord], None]] = None) -> 'VehicleLink':
        return cls(
            telemetry_store,
            address=Parameters.TELLO_IP,
            command_port=int(Parameters.TELLO_PORT),
            local_command_port=int(Parameters.COMMAND_LOCAL_PORT),
            state_port=int(Parameters.STATE_PORT),
            bind_host=Parameters.UDP_BIND_HOST,
            on_ack=on_ack,
        )

    @property
    def is_started(self) -> bool:
        return self._command_transport is not None

    async def start(self) -> None:
        """
        Open the command and state endpoints.

        Raises:
            VehicleLinkError: If a port cannot be bound.
        """
        if self.is_started:
            return
        loop = asyncio.get_running_loop()
        try:
            self._command_transport, _ = await loop.create_datagram_endpoint(
                lambda: _CommandProtocol(self),
                local_addr=(self.bind_host, self.local_command_port),
            )
            self._state_transport, _ = await loop.create_datagram_endpoint(
                lambda: _StateProtocol(self.telemetry_store),
                local_addr=(self.bind_host, self.state_port),
            )
        except OSError as e:
            self.close()
            raise VehicleLinkError(f"cannot open vehicle UDP endpoints: {e}") from e

        logging_manager.log_connection_status(
            logger, "Vehicle", True,
            f"({self.address}:{self.command_port}, state on :{self.state_port})",
        )

    def send(self, command: str) -> bool:
        """
        Send one command datagram.

        Failures are logged and reported as False; the caller never retries.
        """
        if self._command_transport is None:
            logging_manager.log_operation(logger, "Vehicle send skipped", 'warning',
                                          f"link not started, dropped '{command}'")
            self.send_failures += 1
            return False
        try:
            self._command_transport.sendto(command.encode('utf-8'), (self.address, self.command_port))
        except OSError as e:
            logging_manager.log_operation(logger, "Vehicle send failed", 'error', f"'{command}': {e}")
            self.send_failures += 1
            return False

        self.last_command = command
        self.commands_sent += 1
        logger.info(f"Sent command: {command}")
        return True

    def _handle_ack(self, data: bytes) -> None:
        text = data.decode('utf-8', errors='replace').strip()
        record = AckRecord(response=text, command=self.last_command)
        self.last_ack = record
        logger.debug(f"Vehicle ack '{text}' for '{record.command}'")
        if self.on_ack is not None:
            self.on_ack(record)

    async def enter_command_mode(self, streamon_delay: float = 1.0) -> None:
        """Re-arm the vehicle session: SDK mode, battery query, then the video stream."""
        self.send(vehicle_commands.ENTER_SDK_MODE)
        self.send(vehicle_commands.BATTERY_QUERY)
        await asyncio.sleep(streamon_delay)
        self.send(vehicle_commands.STREAM_ON)

    def close(self) -> None:
        for transport in (self._command_transport, self._state_transport):
            if transport is not None:
                transport.close()
        was_started = self._command_transport is not None
        self._command_transport = None
        self._state_transport = None
        if was_started:
            logging_manager.log_connection_status(logger, "Vehicle", False, "(link closed)")
