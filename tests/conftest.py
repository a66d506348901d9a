# tests/conftest.py
"""
Root pytest configuration and fixtures for TelloSeek testing.

Provides shared fixtures for mock collaborators, deterministic timing and
test isolation. All fixtures here are available to all test modules.
"""

import pytest
import sys
import os
from typing import Dict, Any

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from telloseek.detection_geometry import BoundingBox, Detection
from telloseek.logging_manager import logging_manager
from telloseek.mission_controller import MissionSettings
from telloseek.navigation.pid_policy import PIDNavigationConfig, PIDNavigationPolicy
from telloseek.parameters import Parameters
from telloseek.telemetry_store import TelemetryStore

from tests.fixtures.mock_vehicle import FakeClock, MockVehicleLink, ScriptedDetector, ScriptedFrameCapture
from tests.fixtures.mock_orchestrator import RecordingReporter


FRAME_WIDTH = 960
FRAME_HEIGHT = 720


# =============================================================================
# Timing Fixtures
# =============================================================================

@pytest.fixture
def fake_clock():
    """
    FakeClock starting at t=100s.

    Usage:
        def test_pid(fake_clock):
            pid = AxisPID(Kp=1.0, time_fn=fake_clock)
            fake_clock.advance(0.5)
    """
    return FakeClock()


@pytest.fixture
def fast_settings():
    """MissionSettings with every delay set to zero."""
    return MissionSettings(
        frame_width=FRAME_WIDTH,
        frame_height=FRAME_HEIGHT,
        detection_interval=0.0,
        cycle_error_backoff=0.0,
        takeoff_settle_time=0.0,
    )


# =============================================================================
# Navigation Fixtures
# =============================================================================

@pytest.fixture
def pid_config():
    """Default PID navigation tuning."""
    return PIDNavigationConfig()


@pytest.fixture
def pid_policy(pid_config, fake_clock):
    """PIDNavigationPolicy driven by the fake clock."""
    return PIDNavigationPolicy(pid_config, time_fn=fake_clock)


@pytest.fixture
def make_detection():
    """
    Factory for Detections in a 960x720 frame.

    Usage:
        detection = make_detection((380, 260, 580, 460))
        missing = make_detection(None)
    """
    def _make(box=None, width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT) -> Detection:
        if box is None:
            return Detection(width, height)
        return Detection.from_box(width, height, BoundingBox(*box))
    return _make


# =============================================================================
# Collaborator Fixtures
# =============================================================================

@pytest.fixture
def telemetry_store():
    return TelemetryStore()


@pytest.fixture
def vehicle():
    return MockVehicleLink()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def frame_capture():
    return ScriptedFrameCapture()


@pytest.fixture
def detector():
    return ScriptedDetector()


# =============================================================================
# Test Isolation Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def isolate_logging_manager():
    """Reset the global logging manager before and after each test."""
    logging_manager.reset()
    yield
    logging_manager.reset()


@pytest.fixture
def restore_parameters():
    """Snapshot Parameters class attributes and restore them after the test."""
    snapshot = {
        name: value for name, value in vars(Parameters).items()
        if not name.startswith('__') and not callable(value) and not isinstance(value, classmethod)
    }
    yield Parameters
    for name in [n for n in vars(Parameters) if n not in snapshot and not n.startswith('__')]:
        if not callable(getattr(Parameters, name)):
            delattr(Parameters, name)
    for name, value in snapshot.items():
        setattr(Parameters, name, value)


@pytest.fixture
def temp_config_file(tmp_path):
    """
    Create a temporary config file for testing.

    Usage:
        def test_config_loading(temp_config_file):
            config_path = temp_config_file({'Mission': {'frame_width': 640}})
    """
    import yaml

    def _create_config(content: Dict[str, Any]) -> str:
        config_file = tmp_path / "test_config.yaml"
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(content, f)
        return str(config_file)

    return _create_config
