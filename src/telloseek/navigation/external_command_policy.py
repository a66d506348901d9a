# src/telloseek/navigation/external_command_policy.py
"""
External command policy.

Forwards commands produced outside the controller (for example by a language
model running in the orchestrator). Commands are buffered in arrival order and
released one per cycle; when the buffer is full the oldest command is dropped.
"""

from collections import deque
from threading import Lock
from typing import Any, Dict, Optional
import logging

from telloseek import vehicle_commands
from telloseek.detection_geometry import Detection, detection_errors
from telloseek.navigation.base_policy import DecisionRule, NavigationDecision, NavigationPolicy
from telloseek.telemetry_store import VehicleState

logger = logging.getLogger(__name__)


class ExternalCommandPolicy(NavigationPolicy):

    name = "external"

    def __init__(self, buffer_size: int = 8):
        super().__init__()
        self._pending = deque(maxlen=max(1, int(buffer_size)))
        self._lock = Lock()
        self.dropped = 0

    def submit_command(self, command: str) -> bool:
        command = command.strip()
        if not command:
            return False
        if not vehicle_commands.is_valid_command(command):
            logger.warning(f"Forwarding command outside the known grammar: {command!r}")
        with self._lock:
            if len(self._pending) == self._pending.maxlen:
                self.dropped += 1
                logger.warning(f"External command buffer full, dropping {self._pending[0]!r}")
            self._pending.append(command)
        return True

    def decide(self, detection: Detection,
               vehicle_state: Optional[VehicleState] = None) -> Optional[NavigationDecision]:
        with self._lock:
            if not self._pending:
                return None
            command = self._pending.popleft()

        errors = detection_errors(detection)
        return self._record(NavigationDecision(
            command,
            DecisionRule.EXTERNAL,
            errors.horizontal if errors else None,
            errors.vertical if errors else None,
        ))

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def reset(self) -> None:
        with self._lock:
            self._pending.clear()

    def get_policy_telemetry(self) -> Dict[str, Any]:
        telemetry = super().get_policy_telemetry()
        telemetry.update({'pending': self.pending_count, 'dropped': self.dropped})
        return telemetry
