"""General utilities for the entire bot."""

from warden.utils.scheduling import KeyedLock, WorkerPool, create_task

__all__ = ["KeyedLock", "WorkerPool", "create_task"]
