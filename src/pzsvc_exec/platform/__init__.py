"""Clients for the remote platform."""

from pzsvc_exec.platform.client import JobStatus, PlatformClient, Task

__all__ = ["JobStatus", "PlatformClient", "Task"]
