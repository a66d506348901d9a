# tests/unit/test_main.py
"""Unit tests for the ``telloseek`` command line entry point."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from telloseek import main as cli
from telloseek.parameters import Parameters
from telloseek.vehicle_link import VehicleLinkError


pytestmark = [pytest.mark.unit]


def controller_mock(run_side_effect=None):
    controller = MagicMock()
    controller.run = AsyncMock(side_effect=run_side_effect)
    return controller


class TestParser:

    def test_defaults(self):
        args = cli.build_parser().parse_args([])
        assert args.config is None
        assert args.log_level is None
        assert args.policy is None

    def test_log_level_case_insensitive(self):
        assert cli.build_parser().parse_args(['--log-level', 'debug']).log_level == 'DEBUG'

    def test_policy_choices(self):
        assert cli.build_parser().parse_args(['--policy', 'external']).policy == 'external'
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(['--policy', 'autopilot'])


class TestMain:

    def test_missing_config_is_usage_error(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(['--config', str(tmp_path / 'missing.yaml')])
        assert exc_info.value.code == 2

    def test_config_loaded_before_startup(self, restore_parameters, temp_config_file):
        path = temp_config_file({'Mission': {'navigation_policy': 'external'}})
        with patch.object(cli, 'AppController', return_value=controller_mock()) as app:
            assert cli.main(['--config', path]) == 0
        assert Parameters.NAVIGATION_POLICY == 'external'
        app.assert_called_once_with(policy_name=None)

    def test_policy_passed_through(self):
        with patch.object(cli, 'AppController', return_value=controller_mock()) as app:
            assert cli.main(['--policy', 'pid']) == 0
        app.assert_called_once_with(policy_name='pid')

    def test_startup_failure_returns_1(self):
        with patch.object(cli, 'AppController', side_effect=ValueError("Unknown navigation policy")):
            assert cli.main([]) == 1

    def test_vehicle_link_failure_returns_1(self):
        controller = controller_mock(VehicleLinkError("address in use"))
        with patch.object(cli, 'AppController', return_value=controller):
            assert cli.main([]) == 1

    def test_keyboard_interrupt_is_clean_exit(self):
        with patch.object(cli, 'AppController', return_value=controller_mock()), \
                patch.object(cli.asyncio, 'run', side_effect=KeyboardInterrupt):
            assert cli.main([]) == 0

    def test_summary_interval_applied(self, restore_parameters):
        Parameters.LOG_SUMMARY_INTERVAL = 42
        previous = cli.logging_manager.summary_interval
        try:
            with patch.object(cli, 'AppController', return_value=controller_mock()):
                cli.main([])
            assert cli.logging_manager.summary_interval == 42.0
        finally:
            cli.logging_manager.summary_interval = previous
