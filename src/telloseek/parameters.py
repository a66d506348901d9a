# src/telloseek/parameters.py
"""
Parameters Module - Central Configuration Management
=====================================================

This module provides the Parameters class for loading and accessing
configuration values from YAML files.

Project Information:
- Project Name: TelloSeek
- Purpose: Vision-guided approach-and-land missions for a Tello quadcopter

Resolution:
    1. Values from the YAML file (flattened to UPPER_CASE class attributes)
    2. Class-level defaults below (used when the file or a key is missing)

Grouped sections (e.g. ``PIDNavigation``) are kept as dictionaries and are
consumed through ``from_config()`` factories instead of being flattened.
"""

import yaml
import os
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
DEFAULT_CONFIG_FILE = os.path.join(_PROJECT_ROOT, 'configs', 'config.yaml')
CONFIG_ENV_VAR = 'TELLOSEEK_CONFIG'


class Parameters:
    """
    Central configuration class for the TelloSeek project.
    Loads configuration parameters from the config.yaml file on import.
    Configurations are set as class variables so every component reads the
    same values without passing a config object around.
    """

    # Raw config storage
    _raw_config: Dict[str, Any] = {}
    _loaded_from: str = ''

    # Grouped sections that should NOT be flattened
    _GROUPED_SECTIONS = [
        'PIDNavigation',
        'DetectionBackends',
    ]

    # --- Vehicle link ---
    TELLO_IP = '192.168.10.1'
    TELLO_PORT = 8889
    COMMAND_LOCAL_PORT = 8889
    STATE_PORT = 8890
    VIDEO_PORT = 11111
    UDP_BIND_HOST = '0.0.0.0'

    # --- Orchestrator link ---
    AGENT_WS_URL = 'ws://localhost:5173/agents/drone-agent/default'
    RECONNECT_DELAY = 5.0
    STREAMON_DELAY = 1.0
    HEARTBEAT_INTERVAL = 30.0
    IGNORED_MESSAGE_TYPES = ['cf_agent_state']

    # --- Mission ---
    FRAME_WIDTH = 960
    FRAME_HEIGHT = 720
    DETECTION_INTERVAL = 1.5
    CYCLE_ERROR_BACKOFF = 1.0
    TAKEOFF_HEIGHT_THRESHOLD = 30
    TAKEOFF_SETTLE_TIME = 5.0
    CAPTURE_TIMEOUT = 10.0
    DETECTION_TIMEOUT = 15.0
    MAX_CONSECUTIVE_CYCLE_FAILURES = 0
    NAVIGATION_POLICY = 'pid'
    EXTERNAL_COMMAND_BUFFER = 8

    # --- Detection ---
    DETECTION_BACKEND = 'ultralytics'
    DETECTION_MODEL_PATH = 'models/yolo11n.pt'
    DETECTION_CONFIDENCE = 0.3
    DETECTION_DEVICE = 'auto'

    # --- Logging ---
    LOG_LEVEL = 'INFO'
    LOG_SUMMARY_INTERVAL = 15.0

    # --- Grouped sections ---
    PIDNavigation: Dict[str, Any] = {}
    DetectionBackends: Dict[str, Any] = {}

    @classmethod
    def resolve_config_file(cls, config_file: str = None) -> str:
        """Return the explicit path, the env override, or the project default."""
        if config_file:
            return config_file
        return os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)

    @classmethod
    def load_config(cls, config_file: str = None):
        """
        Class method to load configurations from the config.yaml file and set class variables.

        Raises:
            FileNotFoundError: If the config file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        config_file = cls.resolve_config_file(config_file)

        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}

        cls._raw_config = config
        cls._loaded_from = config_file

        # Iterate over all top-level keys (sections)
        for section, params in config.items():
            if params is None:
                continue
            if section in cls._GROUPED_SECTIONS:
                setattr(cls, section, params)
            elif isinstance(params, dict):
                for key, value in params.items():
                    setattr(cls, key.upper(), value)
            else:
                setattr(cls, section, params)

        logger.debug(f"Configuration loaded from {config_file}")

    @classmethod
    def get_section(cls, section_name: str) -> dict:
        """
        Get all parameters in a grouped section as a dictionary.

        Args:
            section_name: Name of the section (e.g., 'PIDNavigation')

        Returns:
            dict: The section parameters, or empty dict if not found
        """
        section = getattr(cls, section_name, {})
        return section if isinstance(section, dict) else {}

    @classmethod
    def reload_config(cls, config_file: str = None) -> bool:
        """
        Reload configuration from disk.

        Args:
            config_file: Path to the config file (default: the last resolved path)

        Returns:
            bool: True if reload was successful, False otherwise
        """
        try:
            target = config_file or cls._loaded_from or None
            logger.info(f"Reloading configuration from {cls.resolve_config_file(target)}")
            cls.load_config(target)
            logger.info("Configuration reloaded successfully")
            return True
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to reload configuration: {e}")
            return False


# Load the configurations upon module import
try:
    Parameters.load_config()
except FileNotFoundError:
    logger.warning(
        f"Config file {Parameters.resolve_config_file()} not found - using built-in defaults"
    )
