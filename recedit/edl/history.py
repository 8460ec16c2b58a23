from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List

from .models import Project

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 50

Mutator = Callable[[Project], Project]


class HistoryManager:
    """
    Bounded undo/redo over whole-project snapshots.

    Projects are immutable, so a snapshot is just a reference kept in an arena
    keyed by an integer; the past and future stacks hold keys only. Undo
    followed by redo hands back the very same object.

    ``lock`` guards the live project and both stacks. Callers that need to
    read-then-write (the editor session, the playback checker) hold it across
    the whole operation.
    """

    def __init__(self, initial: Project, limit: int = MAX_HISTORY_SIZE) -> None:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        self.limit = limit
        self.lock = threading.RLock()
        self._current = initial
        self._arena: Dict[int, Project] = {}
        self._next_key = 0
        self._past: List[int] = []
        self._future: List[int] = []

    # --- arena ---
    def _keep(self, project: Project) -> int:
        key = self._next_key
        self._next_key += 1
        self._arena[key] = project
        return key

    def _release(self, key: int) -> Project:
        return self._arena.pop(key)

    # --- state ---
    @property
    def current(self) -> Project:
        return self._current

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def past_size(self) -> int:
        return len(self._past)

    @property
    def future_size(self) -> int:
        return len(self._future)

    def reset(self, project: Project) -> None:
        """Adopt ``project`` and forget all history (e.g. after opening another project)."""
        with self.lock:
            self._current = project
            self._arena.clear()
            self._past.clear()
            self._future.clear()

    # --- transitions ---
    def commit(self, mutator: Mutator) -> bool:
        """
        Apply ``mutator`` as an undoable step. Returns False, and records
        nothing, when the mutator hands back the current object unchanged.
        """
        with self.lock:
            before = self._current
            after = mutator(before)
            if after is before:
                return False
            self._past.append(self._keep(before))
            while len(self._past) > self.limit:
                self._release(self._past.pop(0))
            for key in self._future:
                self._release(key)
            self._future.clear()
            self._current = after
            return True

    def patch(self, mutator: Mutator) -> bool:
        """Apply ``mutator`` without touching history. Not undoable."""
        with self.lock:
            after = mutator(self._current)
            if after is self._current:
                return False
            self._current = after
            return True

    def undo(self) -> bool:
        with self.lock:
            if not self._past:
                return False
            self._future.append(self._keep(self._current))
            self._current = self._release(self._past.pop())
            logger.debug(f"undo: past={len(self._past)} future={len(self._future)}")
            return True

    def redo(self) -> bool:
        with self.lock:
            if not self._future:
                return False
            self._past.append(self._keep(self._current))
            self._current = self._release(self._future.pop())
            logger.debug(f"redo: past={len(self._past)} future={len(self._future)}")
            return True
