from __future__ import annotations

from typing import Callable, List, Optional

from .log_record import DisplayRecord

CaptureFn = Callable[[], List[DisplayRecord]]


class PauseController:
    """
    Live/Paused gate for the visible view.

    toggle() is the only state change; each call flips exactly once.
    While paused the controller holds a copy of what was visible at the
    pause instant and its length (the frozen "shown" count).
    """

    def __init__(self) -> None:
        self._paused = False
        self._snapshot: List[DisplayRecord] = []
        self._shown_count: Optional[int] = None

    @property
    def is_paused(self) -> bool:
        return self._paused

    def toggle(self, capture: Optional[CaptureFn] = None) -> bool:
        """Flip the state; returns the new paused flag."""
        self._paused = not self._paused
        if self._paused:
            self._snapshot = list(capture()) if capture is not None else []
            self._shown_count = len(self._snapshot)
        else:
            self._snapshot = []
            self._shown_count = None
        return self._paused

    def displayed_records(self) -> List[DisplayRecord]:
        return list(self._snapshot) if self._paused else []

    def shown_count(self) -> Optional[int]:
        return self._shown_count if self._paused else None

    def recapture(self, capture: CaptureFn) -> None:
        if self._paused:
            self._snapshot = list(capture())
            self._shown_count = len(self._snapshot)

    def reset_for_view_clear(self) -> None:
        # The view is now empty; stay paused.
        if self._paused:
            self._snapshot = []
            self._shown_count = 0
