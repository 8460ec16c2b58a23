"""
Edit decision lists for screen recordings.

- Projects and their edits are immutable values; every edit returns an
  ``EditResult`` (applied, or rejected with a reason)
- ``EditorSession`` is the single writer: history, drafts, playback, saving
- SQLite (``ProjectStore``) is the source of truth on disk
"""

from .results import EditResult, RejectReason
from .session import Autosaver, EditorSession
from .store import PersistenceError, ProjectNotFoundError, ProjectStore

__all__ = [
    "Autosaver",
    "EditResult",
    "EditorSession",
    "PersistenceError",
    "ProjectNotFoundError",
    "ProjectStore",
    "RejectReason",
]
