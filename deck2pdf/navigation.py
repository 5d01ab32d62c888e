"""Slide navigation state: current index, bounds checks and key bindings."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Key name (as in KeyboardEvent.key) -> navigator action.  The viewer page
# embeds this table so browser and Python agree on the bindings.
KEY_BINDINGS: dict[str, str] = {
    "ArrowRight": "next",
    "ArrowDown": "next",
    " ": "next",
    "ArrowLeft": "previous",
    "ArrowUp": "previous",
    "Home": "first",
    "End": "last",
}


class Navigator:
    """Tracks the current slide of a deck with ``total_slides`` slides.

    Every transition is total: a request that would leave ``[1, total]`` is
    a no-op.
    """

    def __init__(self, total_slides: int, initial_slide: int = 1):
        self.total_slides = max(0, total_slides)
        if self.total_slides:
            self.current = min(max(initial_slide, 1), self.total_slides)
        else:
            self.current = 1

    @property
    def can_go_next(self) -> bool:
        return self.current < self.total_slides

    @property
    def can_go_previous(self) -> bool:
        return self.current > 1

    def go_to(self, slide_number: int) -> None:
        if 1 <= slide_number <= self.total_slides:
            self.current = slide_number

    def next(self) -> None:
        if self.can_go_next:
            self.current += 1

    def previous(self) -> None:
        if self.can_go_previous:
            self.current -= 1

    def first(self) -> None:
        if self.total_slides:
            self.current = 1

    def last(self) -> None:
        if self.total_slides:
            self.current = self.total_slides

    def handle_key(self, key: str, in_text_input: bool = False) -> bool:
        """Apply the action bound to *key*; returns whether the key was handled."""
        if in_text_input:
            return False
        action = KEY_BINDINGS.get(key)
        if action is None:
            return False
        getattr(self, action)()
        logger.debug("Key %r -> %s (slide %d/%d)", key, action, self.current, self.total_slides)
        return True
