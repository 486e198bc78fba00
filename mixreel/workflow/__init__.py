"""Planificación y ejecución de workflows de video."""

from .executor import JobContext, WorkflowExecutor
from .planner import WorkflowPlanner, classify

__all__ = ["JobContext", "WorkflowExecutor", "WorkflowPlanner", "classify"]
