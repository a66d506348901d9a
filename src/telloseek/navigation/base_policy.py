# src/telloseek/navigation/base_policy.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
import logging

from telloseek import vehicle_commands
from telloseek.detection_geometry import Detection
from telloseek.telemetry_store import VehicleState

logger = logging.getLogger(__name__)


class DecisionRule(str, Enum):
    """Which rule of a policy produced the command."""
    SEARCH = "search"
    LAND = "land"
    APPROACH = "approach"
    YAW = "yaw"
    ALTITUDE = "altitude"
    FALLBACK = "fallback"
    EXTERNAL = "external"


@dataclass(frozen=True)
class NavigationDecision:
    """One command chosen for one cycle, with the reason it was chosen."""
    command: str
    rule: DecisionRule
    horizontal_error: Optional[float] = None
    vertical_error: Optional[float] = None

    @property
    def completes_mission(self) -> bool:
        return self.command.strip().lower() == vehicle_commands.LAND

    def to_dict(self) -> Dict[str, Any]:
        return {
            'command': self.command,
            'rule': self.rule.value,
            'horizontal_error': self.horizontal_error,
            'vertical_error': self.vertical_error,
        }


class NavigationPolicy(ABC):
    """
    Strategy that turns one cycle's detection (and optional telemetry) into a
    vehicle command.

    The mission state machine only talks to this interface, so it does not
    care whether commands come from the PID controller or from the orchestrator.
    """

    name = "base"

    def __init__(self):
        self.last_decision: Optional[NavigationDecision] = None

    @abstractmethod
    def decide(self, detection: Detection,
               vehicle_state: Optional[VehicleState] = None) -> Optional[NavigationDecision]:
        """
        Choose the command for this cycle.

        Returns:
            NavigationDecision, or None when the policy has nothing to send this cycle.
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Drop all per-mission state."""
        pass

    def submit_command(self, command: str) -> bool:
        """
        Offer an externally supplied command to the policy.

        Returns:
            bool: True if the policy took ownership of the command.
        """
        return False

    def get_policy_telemetry(self) -> Dict[str, Any]:
        return {
            'policy': self.name,
            'last_decision': self.last_decision.to_dict() if self.last_decision else None,
        }

    def _record(self, decision: NavigationDecision) -> NavigationDecision:
        self.last_decision = decision
        logger.debug(f"[{self.name}] {decision.rule.value}: {decision.command}")
        return decision
