# src/telloseek/navigation/pid_policy.py
"""
PID navigation policy.

Reduces the pixel error between the target and the frame center with one
PID per axis and closes range in discrete hops sized by target coverage.

Decision order (first match wins):
    1. No target           -> reset PIDs, rotate to search
    2. Coverage >= landing -> reset PIDs, land
    3. Both axes centered  -> forward hop, smaller as coverage grows
    4. Larger-error axis   -> yaw (cw/ccw) or altitude (up/down), one axis per command,
                              sub-threshold corrections suppressed
    5. Fallback            -> minimum forward hop
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

from telloseek import vehicle_commands
from telloseek.detection_geometry import Detection, detection_errors, round_half_up
from telloseek.navigation.axis_pid import AxisPID
from telloseek.navigation.base_policy import DecisionRule, NavigationDecision, NavigationPolicy
from telloseek.telemetry_store import VehicleState

logger = logging.getLogger(__name__)


@dataclass
class PIDNavigationConfig:
    """Tuning constants for the PID policy. Loaded from the PIDNavigation config group."""

    horizontal_gains: Dict[str, float] = field(default_factory=lambda: {'kp': 0.15, 'ki': 0.01, 'kd': 0.05})
    vertical_gains: Dict[str, float] = field(default_factory=lambda: {'kp': 0.10, 'ki': 0.01, 'kd': 0.03})
    forward_gains: Dict[str, float] = field(default_factory=lambda: {'kp': 0.12, 'ki': 0.01, 'kd': 0.04})
    integral_limit: float = 100.0
    landing_coverage: int = 75          # %
    center_tolerance: float = 50.0      # px
    min_move: int = 20                  # cm
    max_move: int = 100                 # cm
    search_rotation: int = 30           # deg
    rotation_scale: float = 0.5
    min_rotation: int = 5               # deg
    max_rotation: int = 45              # deg
    forward_coverage_gain: float = 1.5

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PIDNavigationConfig':
        """Create a config from the PIDNavigation dictionary (UPPER_CASE keys)."""
        defaults = cls()
        return cls(
            horizontal_gains=config.get('HORIZONTAL_GAINS', defaults.horizontal_gains),
            vertical_gains=config.get('VERTICAL_GAINS', defaults.vertical_gains),
            forward_gains=config.get('FORWARD_GAINS', defaults.forward_gains),
            integral_limit=config.get('INTEGRAL_LIMIT', defaults.integral_limit),
            landing_coverage=config.get('LANDING_COVERAGE', defaults.landing_coverage),
            center_tolerance=config.get('CENTER_TOLERANCE', defaults.center_tolerance),
            min_move=config.get('MIN_MOVE', defaults.min_move),
            max_move=config.get('MAX_MOVE', defaults.max_move),
            search_rotation=config.get('SEARCH_ROTATION', defaults.search_rotation),
            rotation_scale=config.get('ROTATION_SCALE', defaults.rotation_scale),
            min_rotation=config.get('MIN_ROTATION', defaults.min_rotation),
            max_rotation=config.get('MAX_ROTATION', defaults.max_rotation),
            forward_coverage_gain=config.get('FORWARD_COVERAGE_GAIN', defaults.forward_coverage_gain),
        )


class PIDNavigationPolicy(NavigationPolicy):
    """
    Deterministic navigation policy backed by three AxisPID units:
    horizontal (yaw), vertical (altitude) and a forward axis held in reserve.
    """

    name = "pid"

    def __init__(self, config: Optional[PIDNavigationConfig] = None, time_fn=None):
        super().__init__()
        self.config = config or PIDNavigationConfig()
        cfg = self.config
        self.pid_horizontal = AxisPID.from_gains(cfg.horizontal_gains, cfg.max_move, cfg.integral_limit, time_fn)
        self.pid_vertical = AxisPID.from_gains(cfg.vertical_gains, cfg.max_move, cfg.integral_limit, time_fn)
        self.pid_forward = AxisPID.from_gains(cfg.forward_gains, cfg.max_move, cfg.integral_limit, time_fn)

        self.last_outputs = (0.0, 0.0)

        logger.info(f"PIDNavigationPolicy initialized (landing at {cfg.landing_coverage}% coverage, "
                    f"center tolerance {cfg.center_tolerance}px, moves {cfg.min_move}-{cfg.max_move}cm)")

    def decide(self, detection: Detection,
               vehicle_state: Optional[VehicleState] = None) -> NavigationDecision:
        cfg = self.config
        errors = detection_errors(detection)

        if errors is None:
            self.reset()
            return self._record(NavigationDecision(
                vehicle_commands.rotate(cfg.search_rotation), DecisionRule.SEARCH))

        if detection.coverage_percent >= cfg.landing_coverage:
            self.reset()
            return self._record(NavigationDecision(
                vehicle_commands.LAND, DecisionRule.LAND, errors.horizontal, errors.vertical))

        output_horizontal = self.pid_horizontal(errors.horizontal)
        output_vertical = self.pid_vertical(errors.vertical)
        self.last_outputs = (output_horizontal, output_vertical)

        abs_horizontal = abs(errors.horizontal)
        abs_vertical = abs(errors.vertical)

        def decision(command, rule):
            return self._record(NavigationDecision(command, rule, errors.horizontal, errors.vertical))

        if abs_horizontal < cfg.center_tolerance and abs_vertical < cfg.center_tolerance:
            # further away (less coverage) -> bigger hop
            hop = round_half_up((100 - detection.coverage_percent) * cfg.forward_coverage_gain)
            hop = max(cfg.min_move, min(cfg.max_move, hop))
            return decision(vehicle_commands.forward(hop), DecisionRule.APPROACH)

        if abs_horizontal > abs_vertical:
            angle = abs(round_half_up(output_horizontal * cfg.rotation_scale))
            if angle >= cfg.min_rotation:
                signed = min(angle, cfg.max_rotation) * (1 if errors.horizontal > 0 else -1)
                return decision(vehicle_commands.rotate(signed), DecisionRule.YAW)

        climb = abs(round_half_up(output_vertical))
        if climb >= cfg.min_move:
            signed = min(climb, cfg.max_move) * (1 if errors.vertical > 0 else -1)
            return decision(vehicle_commands.vertical(signed), DecisionRule.ALTITUDE)

        return decision(vehicle_commands.forward(cfg.min_move), DecisionRule.FALLBACK)

    def reset(self) -> None:
        self.pid_horizontal.reset()
        self.pid_vertical.reset()
        self.pid_forward.reset()
        self.last_outputs = (0.0, 0.0)

    def get_policy_telemetry(self) -> Dict[str, Any]:
        telemetry = super().get_policy_telemetry()
        telemetry.update({
            'pid_outputs': {'horizontal': self.last_outputs[0], 'vertical': self.last_outputs[1]},
            'integrals': {
                'horizontal': self.pid_horizontal.integral,
                'vertical': self.pid_vertical.integral,
                'forward': self.pid_forward.integral,
            },
        })
        return telemetry
