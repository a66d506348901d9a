# tests/unit/test_vehicle_link.py
"""
Unit tests for VehicleLink.

Socket tests bind ephemeral ports on 127.0.0.1 and play the vehicle with a
plain asyncio datagram endpoint.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from telloseek.logging_manager import logging_manager
from telloseek.telemetry_store import TelemetryStore
from telloseek.vehicle_link import AckRecord, VehicleLink, VehicleLinkError


pytestmark = [pytest.mark.unit]


class FakeVehicle(asyncio.DatagramProtocol):
    """Answers every command with ``ok`` (or a battery level for ``battery?``)."""

    def __init__(self):
        self.received = []
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        command = data.decode()
        self.received.append(command)
        self.transport.sendto(b'87' if command == 'battery?' else b'ok', addr)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def fake_vehicle():
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(FakeVehicle, local_addr=('127.0.0.1', 0))
    yield protocol
    transport.close()


def bound_port(transport) -> int:
    return transport.get_extra_info('sockname')[1]


# =============================================================================
# Test: Without Sockets
# =============================================================================

class TestVehicleLinkOffline:

    def test_send_before_start_fails(self):
        link = VehicleLink(TelemetryStore(), '127.0.0.1')
        assert link.send('takeoff') is False
        assert link.send_failures == 1
        assert link.last_command is None

    def test_send_os_error_reported(self):
        link = VehicleLink(TelemetryStore(), '127.0.0.1')
        link._command_transport = MagicMock()
        link._command_transport.sendto.side_effect = OSError("Network is unreachable")
        assert link.send('land') is False
        assert link.send_failures == 1

    def test_send_records_last_command(self):
        link = VehicleLink(TelemetryStore(), '127.0.0.1', command_port=9000)
        link._command_transport = MagicMock()
        assert link.send('cw 30') is True
        link._command_transport.sendto.assert_called_once_with(b'cw 30', ('127.0.0.1', 9000))
        assert link.last_command == 'cw 30'
        assert link.commands_sent == 1

    def test_ack_correlated_to_latest_command(self):
        received = []
        link = VehicleLink(TelemetryStore(), '127.0.0.1', on_ack=received.append)
        link._command_transport = MagicMock()
        link.send('up 20')
        link.send('cw 30')
        link._handle_ack(b'ok\r\n')
        assert received == [link.last_ack]
        assert link.last_ack.response == 'ok'
        assert link.last_ack.command == 'cw 30'

    def test_ack_without_command(self):
        link = VehicleLink(TelemetryStore(), '127.0.0.1')
        link._handle_ack(b'error')
        assert isinstance(link.last_ack, AckRecord)
        assert link.last_ack.response == 'error'
        assert link.last_ack.command is None

    def test_close_is_idempotent(self):
        link = VehicleLink(TelemetryStore(), '127.0.0.1')
        link.close()
        link.close()
        assert not link.is_started

    def test_from_parameters(self):
        link = VehicleLink.from_parameters(TelemetryStore())
        assert link.command_port == 8889
        assert link.state_port == 8890


# =============================================================================
# Test: Real UDP Endpoints
# =============================================================================

class TestVehicleLinkSockets:

    @pytest.mark.asyncio
    async def test_command_ack_roundtrip(self, fake_vehicle):
        acks = []
        link = VehicleLink(TelemetryStore(), '127.0.0.1', command_port=bound_port(fake_vehicle.transport),
                           local_command_port=0, state_port=0, bind_host='127.0.0.1', on_ack=acks.append)
        await link.start()
        try:
            assert logging_manager.is_connected("Vehicle")
            assert link.send('takeoff')
            await wait_until(lambda: acks)
            assert fake_vehicle.received == ['takeoff']
            assert acks[0].response == 'ok'
            assert acks[0].command == 'takeoff'
        finally:
            link.close()
        assert not logging_manager.is_connected("Vehicle")

    @pytest.mark.asyncio
    async def test_telemetry_feed_updates_store(self):
        store = TelemetryStore()
        link = VehicleLink(store, '127.0.0.1', local_command_port=0, state_port=0, bind_host='127.0.0.1')
        await link.start()
        loop = asyncio.get_running_loop()
        sender, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol,
            remote_addr=('127.0.0.1', bound_port(link._state_transport)),
        )
        try:
            sender.sendto(b'h:45;bat:80;tof:50;\r\n')
            await wait_until(lambda: store.latest is not None)
            previous = store.latest

            sender.sendto(b'bat:80')
            sender.sendto(b'\xff\xfe garbage')
            await wait_until(lambda: store.rejected == 2)
            assert store.latest is previous
            assert store.latest.height_cm == 45
        finally:
            sender.close()
            link.close()

    @pytest.mark.asyncio
    async def test_enter_command_mode_sequence(self, fake_vehicle):
        acks = []
        link = VehicleLink(TelemetryStore(), '127.0.0.1', command_port=bound_port(fake_vehicle.transport),
                           local_command_port=0, state_port=0, bind_host='127.0.0.1', on_ack=acks.append)
        await link.start()
        try:
            await link.enter_command_mode(streamon_delay=0.01)
            await wait_until(lambda: len(acks) == 3)
            assert fake_vehicle.received == ['command', 'battery?', 'streamon']
            assert '87' in [ack.response for ack in acks]
        finally:
            link.close()

    @pytest.mark.asyncio
    async def test_port_in_use_raises(self):
        first = VehicleLink(TelemetryStore(), '127.0.0.1', local_command_port=0, state_port=0, bind_host='127.0.0.1')
        await first.start()
        taken = bound_port(first._state_transport)
        second = VehicleLink(TelemetryStore(), '127.0.0.1', local_command_port=0, state_port=taken,
                             bind_host='127.0.0.1')
        try:
            with pytest.raises(VehicleLinkError):
                await second.start()
            assert not second.is_started
        finally:
            first.close()
            second.close()
