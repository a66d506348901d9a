# src/telloseek/mission_controller.py
"""
MissionController Module
========================

Owns everything that belongs to one vehicle connection: the telemetry
store, the navigation policy and the active mission. Orchestrator messages
and the transport listeners all go through this object.

Mission lifecycle::

    IDLE -> TAKING_OFF -> ACTIVE -> LANDING -> IDLE
                 \\           \\
                  +-----------+--> ABORTED -> IDLE

At most one mission runs at a time. Starting a mission while another is
running cancels the old one and waits for its loop to exit before the new
loop starts, so only one loop ever sends commands to the vehicle.

Each ACTIVE cycle runs capture -> detect -> geometry -> policy -> send ->
report to completion before the next cycle's delay starts. The loop checks
its cancellation token at the top of every cycle and after every await.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from telloseek import vehicle_commands
from telloseek.cancellation import CancellationToken, MissionCancelled
from telloseek.detection_geometry import BoundingBox, Detection
from telloseek.frame_capture import FrameCapture, FrameCaptureError
from telloseek.logging_manager import logging_manager
from telloseek.messages import (
    CompleteMission, DetectionReport, GetStatus, InboundMessage, MissionAborted,
    OutboundMessage, RawCommand, Response, StartMission, StopMission,
)
from telloseek.navigation import NavigationDecision, NavigationPolicy
from telloseek.object_detector import DetectionError, ObjectDetector
from telloseek.parameters import Parameters
from telloseek.telemetry_store import TelemetryStore

logger = logging.getLogger(__name__)

Reporter = Callable[[OutboundMessage], Awaitable[bool]]


class MissionState(str, Enum):
    IDLE = "idle"
    TAKING_OFF = "taking_off"
    ACTIVE = "active"
    LANDING = "landing"
    ABORTED = "aborted"


@dataclass
class Mission:
    """One run of the detect-navigate-land cycle for a single target label."""
    target_label: str
    token: CancellationToken = field(default_factory=CancellationToken)
    cycle_count: int = 0
    state: MissionState = MissionState.IDLE
    started_at: float = field(default_factory=time.monotonic)

    @property
    def running(self) -> bool:
        return self.state is not MissionState.ABORTED and not self.token.cancelled


@dataclass
class MissionSettings:
    frame_width: int = 960
    frame_height: int = 720
    video_port: int = 11111
    detection_interval: float = 1.5
    cycle_error_backoff: float = 1.0
    takeoff_height_threshold: float = 30.0
    takeoff_settle_time: float = 5.0
    max_consecutive_failures: int = 0    # 0 disables the limit

    @classmethod
    def from_parameters(cls) -> 'MissionSettings':
        return cls(
            frame_width=int(Parameters.FRAME_WIDTH),
            frame_height=int(Parameters.FRAME_HEIGHT),
            video_port=int(Parameters.VIDEO_PORT),
            detection_interval=float(Parameters.DETECTION_INTERVAL),
            cycle_error_backoff=float(Parameters.CYCLE_ERROR_BACKOFF),
            takeoff_height_threshold=float(Parameters.TAKEOFF_HEIGHT_THRESHOLD),
            takeoff_settle_time=float(Parameters.TAKEOFF_SETTLE_TIME),
            max_consecutive_failures=int(Parameters.MAX_CONSECUTIVE_CYCLE_FAILURES),
        )


class MissionController:
    """
    Mission state machine and per-vehicle context.

    Args:
        telemetry_store: Latest vehicle telemetry (outlives missions).
        policy: Navigation strategy consulted once per cycle.
        vehicle: Object with ``address`` and ``send(command) -> bool`` (VehicleLink).
        frame_capture: Frame source with ``async capture(address, port) -> bytes``.
        detector: ObjectDetector (``async detect(image, label)``).
        settings: Cycle timing, frame size and takeoff thresholds.
        reporter: Coroutine function delivering outbound orchestrator messages.
    """

    def __init__(self, telemetry_store: TelemetryStore, policy: NavigationPolicy, vehicle,
                 frame_capture: FrameCapture, detector: ObjectDetector,
                 settings: Optional[MissionSettings] = None,
                 reporter: Optional[Reporter] = None):
        self.telemetry_store = telemetry_store
        self.policy = policy
        self.vehicle = vehicle
        self.frame_capture = frame_capture
        self.detector = detector
        self.settings = settings or MissionSettings()
        self.reporter = reporter

        self._mission: Optional[Mission] = None
        self._task: Optional[asyncio.Task] = None
        self._mission_lock = asyncio.Lock()
        self._closed = False
        self.missions_started = 0
        self.missions_completed = 0
        self.missions_aborted = 0

    # ------------------------------------------------------------------ status

    @property
    def mission(self) -> Optional[Mission]:
        return self._mission

    @property
    def state(self) -> MissionState:
        return self._mission.state if self._mission else MissionState.IDLE

    def get_status(self) -> str:
        """Human-readable status line for the orchestrator."""
        mission = self._mission
        if mission is None:
            parts = ["Idle."]
        else:
            parts = [f'Mission: "{mission.target_label}" ({mission.cycle_count} cycles, {mission.state.value})']
        vehicle_state = self.telemetry_store.latest
        if vehicle_state is not None:
            parts.append(f"Height: {vehicle_state.height_cm:g}cm")
            parts.append(f"Battery: {vehicle_state.battery_percent:g}%")
        return " | ".join(parts)

    def get_status_dict(self) -> Dict[str, Any]:
        mission = self._mission
        vehicle_state = self.telemetry_store.latest
        return {
            'state': self.state.value,
            'target': mission.target_label if mission else None,
            'cycle_count': mission.cycle_count if mission else 0,
            'telemetry': vehicle_state.to_payload() if vehicle_state else None,
            'policy': self.policy.get_policy_telemetry(),
        }

    # ---------------------------------------------------------------- messages

    async def handle_message(self, message: InboundMessage) -> None:
        """Route one decoded orchestrator message."""
        if isinstance(message, StartMission):
            await self.start_mission(message.label)
        elif isinstance(message, StopMission):
            await self.stop_mission("stopped by orchestrator")
        elif isinstance(message, CompleteMission):
            await self.stop_mission("completed by orchestrator")
        elif isinstance(message, RawCommand):
            self.handle_raw_command(message.command)
        elif isinstance(message, GetStatus):
            await self.report(Response(self.get_status()))
        else:
            logger.warning(f"No handler for message {message!r}")

    def handle_raw_command(self, command: str) -> bool:
        """
        Route an externally supplied command.

        While a mission runs and the policy accepts external commands, the
        command is queued for the policy; otherwise it goes straight to the vehicle.
        """
        mission = self._mission
        if mission is not None and mission.running and self.policy.submit_command(command):
            logger.info(f"Queued external command for mission '{mission.target_label}': {command}")
            return True
        if not vehicle_commands.is_valid_command(command):
            logger.warning(f"Forwarding command outside the known grammar: {command!r}")
        return self.vehicle.send(command)

    async def report(self, message: OutboundMessage) -> bool:
        if self.reporter is None:
            logger.debug(f"No reporter attached, dropped '{message.type.value}' message")
            return False
        return await self.reporter(message)

    # --------------------------------------------------------------- lifecycle

    async def start_mission(self, label: str) -> Optional[Mission]:
        """
        Start a mission for ``label``, superseding any running mission.

        Returns only after the previous loop (if any) has exited. Returns None
        once the controller has been shut down.
        """
        async with self._mission_lock:
            if self._closed:
                logger.warning(f"Ignoring mission '{label}': controller is shutting down")
                return None
            await self._cancel_active(f"superseded by mission '{label}'")
            mission = Mission(target_label=label)
            self.policy.reset()
            self._mission = mission
            self.missions_started += 1
            logger.info(f"Mission started: find and land on '{label}'")
            self._task = asyncio.ensure_future(self._run_mission(mission))
            return mission

    async def stop_mission(self, reason: str = "stopped") -> bool:
        """
        Cancel the running mission and wait for its loop to exit.

        Returns:
            bool: False when there was nothing to stop.
        """
        async with self._mission_lock:
            if self._task is None or self._task.done():
                logger.info("Stop requested with no active mission")
                return False
            await self._cancel_active(reason)
            return True

    async def wait_for_mission(self) -> None:
        """Wait until the current mission loop (if any) has exited."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def shutdown(self) -> None:
        """Refuse new missions, then stop the running one."""
        self._closed = True
        await self.stop_mission("shutdown")

    async def _cancel_active(self, reason: str) -> None:
        task, mission = self._task, self._mission
        if task is None or task.done():
            return
        logger.info(f"Cancelling mission '{mission.target_label}': {reason}")
        mission.token.cancel(reason)
        await asyncio.wait({task})

    # ------------------------------------------------------------ control loop

    async def _run_mission(self, mission: Mission) -> None:
        token = mission.token
        try:
            await self._take_off_if_needed(mission)
            mission.state = MissionState.ACTIVE
            failures = 0

            while True:
                token.raise_if_cancelled()
                try:
                    decision = await self._run_cycle(mission)
                except (FrameCaptureError, DetectionError) as e:
                    failures += 1
                    limit = self.settings.max_consecutive_failures
                    if limit and failures >= limit:
                        token.cancel(f"{failures} consecutive failed cycles (last: {e})")
                    await token.sleep(self.settings.cycle_error_backoff)
                    continue

                failures = 0
                if decision is not None and decision.completes_mission:
                    mission.state = MissionState.LANDING
                    self.missions_completed += 1
                    logger.info(f"Mission '{mission.target_label}' complete after {mission.cycle_count} cycles")
                    await self.report(CompleteMission(mission.cycle_count, mission.target_label))
                    return

                await token.sleep(self.settings.detection_interval)

        except MissionCancelled as e:
            await self._abort(mission, e.reason)
        except Exception as e:
            logger.exception(f"Mission '{mission.target_label}' failed")
            await self._abort(mission, f"error: {e}")
        finally:
            self.policy.reset()
            if self._mission is mission:
                self._mission = None

    async def _abort(self, mission: Mission, reason: str) -> None:
        mission.state = MissionState.ABORTED
        self.missions_aborted += 1
        logger.warning(f"Mission '{mission.target_label}' aborted: {reason}")
        await self.report(MissionAborted(reason, mission.target_label, mission.cycle_count))

    async def _take_off_if_needed(self, mission: Mission) -> None:
        vehicle_state = self.telemetry_store.latest
        threshold = self.settings.takeoff_height_threshold
        if vehicle_state is not None and vehicle_state.height_cm >= threshold:
            logger.info(f"Already airborne ({vehicle_state.summary()}), skipping takeoff")
            return

        mission.state = MissionState.TAKING_OFF
        logger.info("Taking off" if vehicle_state is None else f"Taking off from {vehicle_state.height_cm:g}cm")
        self.vehicle.send(vehicle_commands.TAKEOFF)
        await mission.token.sleep(self.settings.takeoff_settle_time)

    async def _run_cycle(self, mission: Mission) -> Optional[NavigationDecision]:
        token = mission.token
        width, height = self.settings.frame_width, self.settings.frame_height

        try:
            image = await token.guard(self.frame_capture.capture(self.vehicle.address, self.settings.video_port))
        except FrameCaptureError as e:
            logging_manager.log_stage_result(logger, 'capture', False, str(e))
            raise
        logging_manager.log_stage_result(logger, 'capture', True)

        try:
            box = await token.guard(self.detector.detect(image, mission.target_label))
        except DetectionError as e:
            logging_manager.log_stage_result(logger, 'detection', False, str(e))
            raise
        logging_manager.log_stage_result(logger, 'detection', True)

        if box is None:
            detection = Detection(width, height)
        else:
            detection = Detection.from_box(width, height, BoundingBox.from_normalized(box.as_tuple(), width, height))

        mission.cycle_count += 1
        vehicle_state = self.telemetry_store.latest
        decision = self.policy.decide(detection, vehicle_state)
        token.raise_if_cancelled()

        if decision is not None:
            sent = self.vehicle.send(decision.command)
            logging_manager.log_stage_result(logger, 'send', sent, f"'{decision.command}' not sent")
            logger.info(
                f"Cycle {mission.cycle_count}: {decision.rule.value} -> {decision.command}"
                + (f" (coverage {detection.coverage_percent}%)" if detection.found else " (target not found)")
            )

        await self.report(DetectionReport(
            detection=detection.to_payload(),
            command=decision.command if decision else None,
            telemetry=vehicle_state.to_payload() if vehicle_state else None,
            cycle_count=mission.cycle_count,
            decision=decision.to_dict() if decision else None,
        ))
        return decision
