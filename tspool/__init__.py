"""Thread-based task pool with bounded queueing, task timeouts and auto-scaling."""

__version__ = "0.1.0"
__all__ = ["autoscale", "pool", "demo"]