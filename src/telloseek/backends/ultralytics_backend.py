"""
Ultralytics (YOLO) detection backend.

Default backend for ObjectDetector. Wraps the Ultralytics YOLO library and
filters its detections down to the mission's target label.
"""

import logging
import math
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from telloseek.backends.detection_backend import DetectionBackend, DevicePreference, NormalizedBox

# ── Conditional AI imports ──────────────────────────────────────────────
# Allows the controller to start (with detection disabled) without ultralytics/torch.
try:
    from ultralytics import YOLO
    ULTRALYTICS_AVAILABLE = True
except ImportError:
    YOLO = None
    ULTRALYTICS_AVAILABLE = False
    logging.warning(
        "Ultralytics not installed - object detection disabled. "
        "Install with: pip install ultralytics"
    )

logger = logging.getLogger(__name__)


class UltralyticsBackend(DetectionBackend):
    """
    Ultralytics YOLO detection backend.

    Handles:
    - Model loading on the preferred device (CUDA when available in auto mode)
    - Inference via model.predict()
    - Label matching against the model's class names (case-insensitive)
    """

    def __init__(self, config: dict):
        self._config = config
        self._model = None
        self.max_det = int(config.get('MAX_DETECTIONS', 20))
        self.half = bool(config.get('USE_HALF_PRECISION', False))

    # ── Properties ──────────────────────────────────────────────────────

    @property
    def is_available(self) -> bool:
        return ULTRALYTICS_AVAILABLE

    @property
    def backend_name(self) -> str:
        return "ultralytics"

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    # ── Lifecycle ───────────────────────────────────────────────────────

    def load_model(
        self,
        model_path: str,
        device: DevicePreference = DevicePreference.AUTO,
    ) -> Dict[str, Any]:
        if not self.is_available:
            raise RuntimeError("ultralytics is not installed")

        device_str = device.value if isinstance(device, DevicePreference) else str(device or "auto").lower()
        if device_str not in ("auto", "cpu", "cuda"):
            device_str = "auto"
        if device_str == "auto":
            device_str = "cuda" if self._cuda_available() else "cpu"

        model_path = str(Path(model_path.replace("\\", "/")).as_posix())
        logger.info(f"[Detector] Loading model {model_path} on {device_str}")

        model = YOLO(model_path)
        if device_str == "cuda":
            model.to('cuda')

        self._model = model
        return {
            "model_path": model_path,
            "model_name": Path(model_path).name,
            "backend": self.backend_name,
            "device": device_str,
        }

    def unload_model(self) -> None:
        if self._model is not None:
            del self._model
            self._model = None
        self._clear_torch_cuda_cache()

    # ── Inference ───────────────────────────────────────────────────────

    def detect(self, frame: np.ndarray, label: str, conf: float = 0.3) -> List[NormalizedBox]:
        if self._model is None:
            raise RuntimeError("no model loaded")

        results = self._model.predict(
            frame,
            conf=conf,
            max_det=self.max_det,
            half=self.half,
            verbose=False,
        )
        if not results:
            return []
        return self._parse_boxes(results[0], label)

    # ── Metadata ────────────────────────────────────────────────────────

    def get_model_labels(self) -> Dict[int, str]:
        if self._model and hasattr(self._model, 'names'):
            return dict(self._model.names)
        return {}

    @staticmethod
    def _cuda_available() -> bool:
        """Check CUDA availability safely."""
        try:
            import torch
            return bool(torch.cuda.is_available())
        except ImportError:
            return False

    @staticmethod
    def _clear_torch_cuda_cache():
        """Clear CUDA cache if available; no-op otherwise."""
        try:
            import torch
        except ImportError:
            return
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    # ── Result Parsing ──────────────────────────────────────────────────

    @staticmethod
    def _to_list(value: Any) -> List[Any]:
        """Convert torch/numpy-like object to a Python list."""
        if value is None:
            return []
        if hasattr(value, "detach"):
            value = value.detach()
        if hasattr(value, "cpu"):
            value = value.cpu()
        if hasattr(value, "numpy"):
            value = value.numpy()
        if hasattr(value, "tolist"):
            return value.tolist()
        if isinstance(value, list):
            return value
        return []

    @classmethod
    def _parse_boxes(cls, result: Any, label: str) -> List[NormalizedBox]:
        boxes = getattr(result, "boxes", None)
        if boxes is None:
            return []

        names = getattr(result, "names", {}) or {}
        wanted = label.strip().lower()

        xyxyn = cls._to_list(getattr(boxes, "xyxyn", None))
        confs = cls._to_list(getattr(boxes, "conf", None))
        classes = cls._to_list(getattr(boxes, "cls", None))

        out: List[NormalizedBox] = []
        for coords, confidence, class_id in zip(xyxyn, confs, classes):
            class_name = str(names.get(int(class_id), "")).lower()
            if class_name != wanted:
                continue
            x1, y1, x2, y2 = coords
            if not all(math.isfinite(v) for v in (x1, y1, x2, y2)):
                continue
            out.append(NormalizedBox(
                x_min=min(x1, x2), y_min=min(y1, y2),
                x_max=max(x1, x2), y_max=max(y1, y2),
                confidence=float(confidence),
                label=class_name,
            ))

        out.sort(key=lambda box: box.confidence, reverse=True)
        return out
