"""
Task management.
"""

from taskgate.kernel.tasks.task_service import TaskService

__all__ = ["TaskService"]
