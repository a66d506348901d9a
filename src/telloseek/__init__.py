"""TelloSeek: vision-guided approach-and-land missions for a Tello quadcopter."""

__version__ = "0.1.0"
