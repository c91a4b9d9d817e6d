"""Manager modules for Momentum integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and own persistence through the store.
"""

from .base_manager import BaseManager
from .habit_manager import HabitManager
from .project_manager import ProjectManager
from .system_manager import SystemManager
from .task_manager import TaskManager

__all__ = [
    "BaseManager",
    "HabitManager",
    "ProjectManager",
    "SystemManager",
    "TaskManager",
]
