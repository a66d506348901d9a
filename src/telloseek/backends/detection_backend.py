"""
Abstract detection backend interface.

Defines the contract for the object detectors used by ObjectDetector.
Backends handle model loading, device management, inference and result
parsing; the mission loop never imports YOLO or any other framework directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Tuple

import numpy as np


class DevicePreference(Enum):
    """Preferred compute device for model inference."""
    AUTO = "auto"
    CPU = "cpu"
    CUDA = "cuda"


@dataclass(frozen=True)
class NormalizedBox:
    """Detection box in normalized [0, 1] image coordinates."""
    x_min: float
    y_min: float
    x_max: float
    y_max: float
    confidence: float = 1.0
    label: str = ""

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x_min, self.y_min, self.x_max, self.y_max)


class DetectionBackend(ABC):
    """
    Abstract detection backend.

    Implementations handle:
    - Model lifecycle (load, unload)
    - Label-filtered inference
    - Result normalization to NormalizedBox
    """

    # ── Properties ──────────────────────────────────────────────────────

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether this backend's dependencies are installed and importable."""
        ...

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Human-readable backend identifier (e.g., 'ultralytics')."""
        ...

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether a model is currently loaded and ready for inference."""
        ...

    # ── Lifecycle ───────────────────────────────────────────────────────

    @abstractmethod
    def load_model(
        self,
        model_path: str,
        device: DevicePreference = DevicePreference.AUTO,
    ) -> Dict[str, Any]:
        """
        Load a model.

        Returns:
            RuntimeInfo dict with at least: model_path, backend, device.
        """
        ...

    @abstractmethod
    def unload_model(self) -> None:
        """Release current model and free device memory."""
        ...

    # ── Inference ───────────────────────────────────────────────────────

    @abstractmethod
    def detect(self, frame: np.ndarray, label: str, conf: float = 0.3) -> List[NormalizedBox]:
        """
        Detect objects matching ``label`` in a BGR frame.

        Returns:
            Matching boxes sorted by descending confidence (may be empty).
        """
        ...

    @abstractmethod
    def get_model_labels(self) -> Dict[int, str]:
        """Class id -> label mapping of the loaded model."""
        ...
