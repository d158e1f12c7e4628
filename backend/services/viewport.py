"""
viewport.py — Scrollable message area abstraction.
The chat view only needs the three scroll metrics, a way to re-render and a way
to jump to the bottom; a UI layer adapts its widget to this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass


class Viewport(ABC):
    scroll_top: float = 0.0
    client_height: float = 0.0

    @property
    @abstractmethod
    def scroll_height(self) -> float:
        ...

    @abstractmethod
    def render(self, messages: list) -> None:
        """Lay out ``messages``; ``scroll_height`` reflects them afterwards."""
        ...

    def scroll_to_bottom(self):
        self.scroll_top = max(0.0, self.scroll_height - self.client_height)

    @property
    def scroll_fraction(self) -> float:
        """0.0 at the very top, 1.0 at the bottom."""
        scrollable = self.scroll_height - self.client_height
        if scrollable <= 0:
            return 0.0
        return self.scroll_top / scrollable


class ListViewport(Viewport):
    """Fixed row height layout, used headless and in tests."""

    def __init__(self, client_height: float = 600.0, row_height: float = 60.0):
        self.client_height = client_height
        self.row_height = row_height
        self.scroll_top = 0.0
        self._rows = 0

    @property
    def scroll_height(self) -> float:
        return max(self.client_height, self._rows * self.row_height)

    def render(self, messages: list) -> None:
        self._rows = len(messages)
        self.scroll_top = min(self.scroll_top, max(0.0, self.scroll_height - self.client_height))


@dataclass
class ScrollAnchor:
    """Content height and offset captured before a prepend."""

    height: float
    top: float

    @classmethod
    def capture(cls, viewport: Viewport) -> "ScrollAnchor":
        return cls(height=viewport.scroll_height, top=viewport.scroll_top)

    def restore(self, viewport: Viewport):
        viewport.scroll_top = self.top + (viewport.scroll_height - self.height)
