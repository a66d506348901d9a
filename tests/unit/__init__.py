# tests/unit/__init__.py
"""
Unit tests for TelloSeek components.

Unit tests validate individual functions and classes in isolation,
with no real vehicle, no orchestrator and no model weights.
"""
