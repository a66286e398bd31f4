# SQLAlchemy models
from .base import Base
from .cycle import (
    StudyCycle,
    StudyCycleAdvance,
    StudyCycleCompletion,
    StudyCycleItem,
)
from .workspace import (
    StudySession,
    Subject,
    Workspace,
)

__all__ = [
    # Base
    "Base",
    # Collaborators
    "Workspace",
    "Subject",
    "StudySession",
    # Study cycles
    "StudyCycle",
    "StudyCycleItem",
    "StudyCycleAdvance",
    "StudyCycleCompletion",
]
