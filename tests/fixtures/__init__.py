# tests/fixtures/__init__.py
"""
Test fixtures package for TelloSeek testing.

Provides reusable mocks for the vehicle and orchestrator sides.
"""

from tests.fixtures.mock_vehicle import (
    FakeClock,
    MockVehicleLink,
    ScriptedDetector,
    ScriptedFrameCapture,
    pixel_box,
)
from tests.fixtures.mock_orchestrator import MockOrchestratorLink, RecordingReporter

__all__ = [
    'FakeClock',
    'MockVehicleLink',
    'ScriptedDetector',
    'ScriptedFrameCapture',
    'pixel_box',
    'MockOrchestratorLink',
    'RecordingReporter',
]
