# src/telloseek/app_controller.py
import asyncio
import logging
import signal
from typing import Optional, Set

from telloseek.frame_capture import FrameCapture
from telloseek.logging_manager import logging_manager
from telloseek.messages import Response
from telloseek.mission_controller import MissionController, MissionSettings
from telloseek.navigation import create_policy
from telloseek.object_detector import ObjectDetector
from telloseek.orchestrator_link import OrchestratorLink
from telloseek.parameters import Parameters
from telloseek.telemetry_store import TelemetryStore
from telloseek.vehicle_link import AckRecord, VehicleLink

logger = logging.getLogger(__name__)


class AppController:
    """
    Builds and wires the controller's components for one vehicle.

    - Vehicle acknowledgements are forwarded to the orchestrator as ``response`` messages.
    - Every (re)connect of the orchestrator link re-arms the vehicle session.
    - SIGINT/SIGTERM trigger a graceful shutdown.

    Components can be injected (tests); anything not given is built from Parameters.
    """

    def __init__(self, policy_name: Optional[str] = None,
                 telemetry_store: Optional[TelemetryStore] = None,
                 vehicle_link: Optional[VehicleLink] = None,
                 orchestrator_link: Optional[OrchestratorLink] = None,
                 frame_capture: Optional[FrameCapture] = None,
                 detector: Optional[ObjectDetector] = None):
        logging.info("Initializing AppController...")

        self.telemetry_store = telemetry_store or TelemetryStore()

        self.vehicle_link = vehicle_link or VehicleLink.from_parameters(self.telemetry_store)
        self.vehicle_link.on_ack = self._on_ack

        self.frame_capture = frame_capture or FrameCapture(timeout=float(Parameters.CAPTURE_TIMEOUT))
        self.detector = detector or ObjectDetector.from_parameters()

        policy = create_policy(
            policy_name or Parameters.NAVIGATION_POLICY,
            config=Parameters.get_section('PIDNavigation'),
            buffer_size=int(Parameters.EXTERNAL_COMMAND_BUFFER),
        )
        self.mission_controller = MissionController(
            self.telemetry_store,
            policy,
            self.vehicle_link,
            self.frame_capture,
            self.detector,
            settings=MissionSettings.from_parameters(),
        )

        self.orchestrator_link = orchestrator_link or OrchestratorLink.from_parameters(
            self.mission_controller.handle_message,
            on_connect=self.rearm_session,
        )
        self.mission_controller.reporter = self.orchestrator_link.send

        self._shutdown_event: Optional[asyncio.Event] = None
        self._link_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._stopped = False

        logging.info("AppController initialized.")

    # ------------------------------------------------------------ link events

    def _on_ack(self, record: AckRecord) -> None:
        """Forward a vehicle acknowledgement upstream without blocking the datagram callback."""
        task = asyncio.ensure_future(self.orchestrator_link.send(Response(record.response)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def rearm_session(self) -> None:
        """Put the vehicle back into SDK mode and restart its video stream."""
        logger.info("Re-arming vehicle session")
        await self.vehicle_link.enter_command_mode(float(Parameters.STREAMON_DELAY))

    # -------------------------------------------------------------- lifecycle

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None and not self._shutdown_event.is_set():
            logger.info("Shutdown requested")
            self._shutdown_event.set()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # no signal support on this loop (e.g. Windows); Ctrl+C still raises KeyboardInterrupt
                logger.debug(f"Signal handler for {sig.name} not installed")

    async def run(self) -> None:
        """Start both links and run until a shutdown is requested."""
        self._shutdown_event = asyncio.Event()
        self._install_signal_handlers(asyncio.get_running_loop())

        await self.vehicle_link.start()
        self._link_task = asyncio.ensure_future(self.orchestrator_link.run())
        logging_manager.log_operation(logger, "System Startup", "info", "TelloSeek initialized")

        try:
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """
        Graceful shutdown: cancel the mission (waiting for its loop), stop the
        orchestrator link, close the UDP endpoints and clear telemetry.
        """
        if self._stopped:
            return
        self._stopped = True
        logger.info("Starting application shutdown...")
        logger.info(f"Mission status at shutdown: {self.mission_controller.get_status_dict()}")

        await self.mission_controller.shutdown()
        await self.orchestrator_link.stop()
        if self._link_task is not None:
            await asyncio.gather(self._link_task, return_exceptions=True)
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        self.vehicle_link.close()
        self.detector.close()
        self.telemetry_store.clear()

        logging_manager.log_system_summary(logger)
        logger.info("Application shutdown completed")
