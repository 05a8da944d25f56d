from __future__ import annotations

from typing import Dict, Iterable, List, Optional


class SelectionManager:
    """Set of recording ids marked for a bulk action.

    The selection is always a subset of the ids on the currently loaded page.
    Loading a page (`reset(visible_ids)`) empties it; ids that are not visible
    cannot be selected. Insertion order is kept so bulk requests list ids in
    the order the operator picked them.
    """

    def __init__(self) -> None:
        self._visible: Dict[str, None] = {}
        self._selected: Dict[str, None] = {}

    @property
    def visible_ids(self) -> List[str]:
        return list(self._visible)

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def __contains__(self, recording_id: object) -> bool:
        return recording_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    @property
    def all_selected(self) -> bool:
        """State of the header checkbox."""

        return bool(self._selected) and len(self._selected) == len(self._visible)

    def toggle(self, recording_id: str) -> None:
        if recording_id in self._selected:
            del self._selected[recording_id]
        elif recording_id in self._visible:
            self._selected[recording_id] = None

    def select_all_visible(self, ids: Iterable[str], checked: bool = True) -> None:
        if not checked:
            self._selected = {}
            return
        self._selected = {i: None for i in ids if i in self._visible}

    def reset(self, visible_ids: Optional[Iterable[str]] = None) -> None:
        """Empty the selection; with `visible_ids`, also replace the visible page."""

        if visible_ids is not None:
            self._visible = {i: None for i in visible_ids}
        self._selected = {}
