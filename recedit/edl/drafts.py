from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

SELECTION_KINDS = ("segment", "zoom", "speed", "annotation")
TOOLS = ("cut", "zoom", "speed", "annotation")


@dataclass(frozen=True)
class ZoomDraft:
    scale: float
    x: float = 0.0
    y: float = 0.0

    def as_patch(self) -> dict:
        return {"scale": self.scale, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class SpeedDraft:
    speed: float

    def as_patch(self) -> dict:
        return {"speed": self.speed}


@dataclass
class DraftState:
    """
    Uncommitted editor state: the current tool, the single selected item and
    live slider values for the selected zoom or speed effect.

    Nothing here is part of the project or its history. Rendering reads the
    drafts; ``EditorSession.commit_*_draft`` folds them into the project.
    """

    tool: Optional[str] = None
    selected_kind: Optional[str] = None
    selected_id: Optional[str] = None
    zoom_draft: Optional[ZoomDraft] = None
    speed_draft: Optional[SpeedDraft] = None
    annotation_mode: str = "outline"

    def toggle_tool(self, tool: str) -> Optional[str]:
        if tool not in TOOLS:
            raise ValueError(f"unknown tool: {tool!r}")
        self.tool = None if self.tool == tool else tool
        return self.tool

    def select(self, kind: str, item_id: Optional[str]) -> None:
        if kind not in SELECTION_KINDS:
            raise ValueError(f"unknown selection kind: {kind!r}")
        if kind in ("zoom", "speed"):
            self.zoom_draft = None
            self.speed_draft = None
        self.selected_kind = kind if item_id is not None else None
        self.selected_id = item_id

    def selected(self, kind: str) -> Optional[str]:
        return self.selected_id if self.selected_kind == kind else None

    def clear_selection(self) -> None:
        self.selected_kind = None
        self.selected_id = None
        self.zoom_draft = None
        self.speed_draft = None
