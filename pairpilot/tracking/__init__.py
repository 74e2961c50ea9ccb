"""Rolling in-memory performance tracking for inference capabilities."""

from pairpilot.tracking.performance_tracker import PerformanceTracker
from pairpilot.tracking.ring_buffer import RingBuffer

__all__ = ["PerformanceTracker", "RingBuffer"]
