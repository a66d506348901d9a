"""
ObjectDetector Module
---------------------

Turns a captured PNG frame and a target label into at most one normalized
bounding box. Decoding uses OpenCV; inference is delegated to a detection
backend (see ``telloseek.backends``) and runs on a single dedicated worker
thread so the event loop keeps serving telemetry and orchestrator traffic
meanwhile, and two inferences never run on the same model at once.
"""

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Set

import cv2
import numpy as np

from telloseek.backends import DetectionBackend, DevicePreference, NormalizedBox, create_backend
from telloseek.parameters import Parameters

logger = logging.getLogger(__name__)


class DetectionError(RuntimeError):
    """Raised when a frame could not be decoded or the detector failed or timed out."""


class ObjectDetector:
    """
    Label-filtered object detector.

    Attributes:
        backend (DetectionBackend): Inference backend.
        model_path (str): Model loaded lazily on the first detect() call.
        confidence (float): Minimum detection confidence.
        timeout (float): Seconds allowed for one inference.
    """

    def __init__(self, backend: DetectionBackend, model_path: str,
                 confidence: float = 0.3, timeout: float = 15.0,
                 device: DevicePreference = DevicePreference.AUTO):
        self.backend = backend
        self.model_path = model_path
        self.confidence = confidence
        self.timeout = timeout
        self.device = device
        self._load_lock = asyncio.Lock()
        # one worker: model loading and inference never overlap
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='detector')
        self._inference: Optional[Future] = None
        self._checked_labels: Set[str] = set()

    @classmethod
    def from_parameters(cls) -> 'ObjectDetector':
        backend_name = Parameters.DETECTION_BACKEND
        backend_config = Parameters.get_section('DetectionBackends').get(backend_name, {})
        try:
            device = DevicePreference(str(Parameters.DETECTION_DEVICE).lower())
        except ValueError:
            logger.warning(f"Unknown detection device '{Parameters.DETECTION_DEVICE}', using auto")
            device = DevicePreference.AUTO
        return cls(
            backend=create_backend(backend_name, backend_config),
            model_path=Parameters.DETECTION_MODEL_PATH,
            confidence=float(Parameters.DETECTION_CONFIDENCE),
            timeout=float(Parameters.DETECTION_TIMEOUT),
            device=device,
        )

    @staticmethod
    def decode_image(image_bytes: bytes) -> np.ndarray:
        if not image_bytes:
            raise DetectionError("empty image")
        frame = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_COLOR)
        if frame is None:
            raise DetectionError("image could not be decoded")
        return frame

    async def _ensure_loaded(self) -> None:
        async with self._load_lock:
            if self.backend.is_loaded:
                return
            if not self.backend.is_available:
                raise DetectionError(f"detection backend '{self.backend.backend_name}' is not available")
            try:
                info = await asyncio.wrap_future(
                    self._executor.submit(self.backend.load_model, self.model_path, self.device)
                )
            except Exception as e:
                raise DetectionError(f"model load failed: {e}") from e
            logger.info(f"Detection model ready: {info}")

    def _check_label(self, label: str) -> None:
        """Warn once per label that the loaded model cannot produce."""
        key = label.strip().lower()
        if key in self._checked_labels:
            return
        self._checked_labels.add(key)
        known = {str(name).lower() for name in self.backend.get_model_labels().values()}
        if known and key not in known:
            logger.warning(f"'{label}' is not a class of the loaded model and will never be detected")

    @property
    def busy(self) -> bool:
        """True while an inference (possibly abandoned after a timeout) is still running."""
        return self._inference is not None and not self._inference.done()

    async def detect(self, image_bytes: bytes, label: str) -> Optional[NormalizedBox]:
        """
        Detect ``label`` in an encoded image.

        A timed-out inference keeps its worker thread until the backend
        returns; until then further calls fail fast instead of queueing a
        second inference on the same model.

        Returns:
            The first (most confident) matching box, or None when nothing matched.

        Raises:
            DetectionError: Decode failure, backend failure, timeout, or a
                previous inference still running.
        """
        if self.busy:
            raise DetectionError("previous inference still running")
        await self._ensure_loaded()
        frame = self.decode_image(image_bytes)
        self._check_label(label)

        try:
            self._inference = self._executor.submit(self.backend.detect, frame, label, self.confidence)
            boxes = await asyncio.wait_for(asyncio.wrap_future(self._inference), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise DetectionError(f"detection timed out after {self.timeout}s")
        except Exception as e:
            raise DetectionError(f"detection failed: {e!r}") from e

        if not boxes:
            return None
        return boxes[0]

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self.backend.is_loaded:
            self.backend.unload_model()
