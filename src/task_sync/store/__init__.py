"""Local task record store."""

from .task_store import QueueAppender, TaskStore

__all__ = ["QueueAppender", "TaskStore"]
