from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class RejectReason(str, Enum):
    UNKNOWN_ID = "unknown_id"
    START_INSIDE_EFFECT = "start_inside_effect"
    TOO_SHORT = "too_short"
    WOULD_OVERLAP = "would_overlap"
    INVALID_PAYLOAD = "invalid_payload"
    LAST_SEGMENT = "last_segment"
    NOT_INSIDE_SEGMENT = "not_inside_segment"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class EditResult(Generic[T]):
    """
    Outcome of an editor operation.

    A rejected result carries the *same* object that was passed in, so callers
    relying on identity ("nothing happened") keep working.
    """

    value: T
    applied: bool
    reason: Optional[RejectReason] = None
    created_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.applied


def applied(value: T, created_id: Optional[str] = None) -> EditResult[T]:
    return EditResult(value=value, applied=True, created_id=created_id)


def rejected(value: T, reason: RejectReason) -> EditResult[T]:
    return EditResult(value=value, applied=False, reason=reason)
