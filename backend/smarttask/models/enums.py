"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so that JSON serialisation renders plain
strings and equality checks against raw literals (``role == "Admin"``) keep
working.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    USER = "User"
    ADMIN = "Admin"


class TaskStatus(str, Enum):
    TODO = "Todo"
    IN_PROGRESS = "InProgress"
    DONE = "Done"
    CANCELLED = "Cancelled"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


__all__ = [
    "UserRole",
    "TaskStatus",
    "TaskPriority",
]
