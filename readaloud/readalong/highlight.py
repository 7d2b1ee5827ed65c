"""
Highlight Publisher Module

Turns the controller's current-unit index into signals a renderer can act
on: which unit to highlight and whether it has drifted out of the
comfortable part of the viewport. Geometry comes from the renderer; this
module only decides when to ask for it.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from readaloud.utils import logger
from readaloud.utils.config import config


@dataclass(frozen=True)
class UnitGeometry:
    """Vertical extent of a rendered unit and of the visible viewport."""

    top: float
    bottom: float
    viewport_top: float
    viewport_bottom: float


@dataclass(frozen=True)
class HighlightSignal:
    """What the renderer should do after an index change."""

    index: int  # -1 clears the highlight
    should_scroll: bool = False


GeometryProvider = Callable[[int], Optional[UnitGeometry]]
HighlightListener = Callable[[HighlightSignal], None]


class HighlightPublisher:
    """
    Publish highlight changes to subscribed renderers.

    Only the last published index is kept, to drop repeats.
    """

    def __init__(
        self,
        geometry: Optional[GeometryProvider] = None,
        *,
        top_margin: Optional[float] = None,
        bottom_margin: Optional[float] = None,
    ):
        """
        Initialize the publisher.

        Args:
            geometry: Callback returning the rendered position of a unit
            top_margin: Distance from the viewport top that counts as off-screen
            bottom_margin: Distance from the viewport bottom that counts as off-screen
        """
        self.geometry = geometry
        self.top_margin = float(
            top_margin if top_margin is not None else config.get("highlight", "top_margin", default=100)
        )
        self.bottom_margin = float(
            bottom_margin if bottom_margin is not None else config.get("highlight", "bottom_margin", default=150)
        )
        self._listeners: List[HighlightListener] = []
        self._last_index = -1

    @property
    def last_index(self) -> int:
        return self._last_index

    def subscribe(self, listener: HighlightListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Forget the last published index (a new session is starting)."""
        self._last_index = -1

    def should_scroll(self, index: int) -> bool:
        """True if the unit sits outside the comfortable viewport band."""
        if index < 0 or self.geometry is None:
            return False

        rect = self.geometry(index)
        if rect is None:
            return False

        band_top = rect.viewport_top + self.top_margin
        band_bottom = rect.viewport_bottom - self.bottom_margin
        return rect.top < band_top or rect.bottom > band_bottom

    def on_index_changed(self, index: int) -> Optional[HighlightSignal]:
        """
        Publish a new current index.

        Args:
            index: Current unit index, or -1 when nothing is being spoken

        Returns:
            The published signal, or None if the index did not change
        """
        if index == self._last_index:
            return None

        self._last_index = index
        signal = HighlightSignal(index=index, should_scroll=self.should_scroll(index))

        for listener in list(self._listeners):
            try:
                listener(signal)
            except Exception as e:
                logger.error(f"Highlight listener failed for unit {index}: {e}")

        return signal
