"""
Detection backends.

Each backend is registered by name and imported lazily, so the controller
starts even when a backend's heavy dependencies (torch, ultralytics) are
missing; ObjectDetector then reports detection as unavailable per cycle.
"""

import importlib
import logging
from typing import Optional

from telloseek.backends.detection_backend import DetectionBackend, DevicePreference, NormalizedBox

logger = logging.getLogger(__name__)

# name -> (module, class)
AVAILABLE_BACKENDS = {
    'ultralytics': ('telloseek.backends.ultralytics_backend', 'UltralyticsBackend'),
}


def create_backend(backend_name: str = 'ultralytics', config: Optional[dict] = None) -> DetectionBackend:
    """
    Build the detection backend named in ``Detection.detection_backend``.

    Args:
        backend_name: Registered backend name (case-insensitive)
        config: The backend's entry of the ``DetectionBackends`` section

    Raises:
        ValueError: Unknown backend name
        ImportError: The backend module failed to import
    """
    key = (backend_name or '').strip().lower()
    if key not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Unknown detection backend: '{backend_name}'. "
            f"Registered: {', '.join(sorted(AVAILABLE_BACKENDS))}"
        )

    module_path, class_name = AVAILABLE_BACKENDS[key]
    try:
        backend_class = getattr(importlib.import_module(module_path), class_name)
    except ImportError as e:
        raise ImportError(f"Detection backend '{key}' could not be loaded: {e}") from e

    backend = backend_class(dict(config or {}))
    if not backend.is_available:
        logger.warning(f"Detection backend '{key}' is registered but its dependencies are missing")
    return backend


__all__ = [
    'AVAILABLE_BACKENDS',
    'DetectionBackend',
    'DevicePreference',
    'NormalizedBox',
    'create_backend',
]
