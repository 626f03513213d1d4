"""Terminal bandwidth utilization monitor by process, connection and remote address."""

__version__ = "0.1.0"