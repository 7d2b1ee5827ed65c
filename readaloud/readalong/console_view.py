"""
Console View

Terminal renderer for the reader: lays the units out in rows, shows a
window of them in a rich panel with the current unit highlighted, and
answers geometry queries (in rows) for the highlight publisher.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from readaloud.readalong.highlight import HighlightSignal, UnitGeometry
from readaloud.readalong.segmenter import Unit
from readaloud.utils import logger

Row = List[Tuple[int, str]]  # (unit position, word and the space after it)


class ConsoleView:
    """Scrolling, highlighting view of an article in the terminal."""

    def __init__(
        self,
        units: Sequence[Unit],
        title: str = "",
        console: Optional[Console] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ):
        """
        Lay out the article.

        Args:
            units: Units to show
            title: Panel title
            console: rich console (the shared logger console by default)
            width: Text columns (console width minus the panel border by default)
            height: Visible rows (console height minus chrome by default)
        """
        self.units = list(units)
        self.title = title
        self.console = console or logger.console
        self.width = max(10, width or self.console.width - 4)
        self.height = max(3, height or self.console.height - 8)

        self.rows: List[Row] = []
        self._unit_rows: Dict[int, Tuple[int, int]] = {}
        self._layout()

        self.scroll_top = 0
        self.current_index = -1
        self.status = ""

    def _layout(self) -> None:
        """Greedy word wrap; a paragraph break leaves one empty row."""
        row: Row = []
        row_len = 0

        for position, unit in enumerate(self.units):
            if unit.paragraph_break_before and row:
                self.rows.append(row)
                self.rows.append([])
                row, row_len = [], 0

            # Sentence units may wrap over several rows
            words = unit.text.split(" ")
            first_row = None
            for i, word in enumerate(words):
                if row and row_len + len(word) > self.width:
                    self.rows.append(row)
                    row, row_len = [], 0
                if first_row is None:
                    first_row = len(self.rows)

                piece = word + (" " if i < len(words) - 1 else unit.trailing_separator)
                row.append((position, piece))
                row_len += len(piece)

            self._unit_rows[unit.index] = (first_row, len(self.rows))

        if row:
            self.rows.append(row)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def geometry(self, index: int) -> Optional[UnitGeometry]:
        """Row extent of unit ``index`` and of the visible window."""
        rows = self._unit_rows.get(index)
        if rows is None:
            return None
        first, last = rows
        return UnitGeometry(
            top=first,
            bottom=last + 1,
            viewport_top=self.scroll_top,
            viewport_bottom=self.scroll_top + self.height,
        )

    def scroll_to(self, index: int) -> None:
        """Scroll so unit ``index`` sits in the middle of the window."""
        rows = self._unit_rows.get(index)
        if rows is None:
            return
        target = rows[0] - self.height // 2
        self.scroll_top = max(0, min(target, self.total_rows - self.height))

    def on_highlight(self, signal: HighlightSignal) -> None:
        """Highlight publisher listener."""
        self.current_index = signal.index
        if signal.should_scroll:
            self.scroll_to(signal.index)

    def render(self) -> Panel:
        text = Text(no_wrap=True, overflow="crop")
        visible = self.rows[self.scroll_top:self.scroll_top + self.height]

        for row_number, row in enumerate(visible):
            if row_number:
                text.append("\n")
            for position, piece in row:
                if self.units[position].index == self.current_index:
                    text.append(piece.rstrip(" "), style="highlight")
                    text.append(piece[len(piece.rstrip(" ")):])
                else:
                    text.append(piece)

        return Panel(
            text,
            title=self.title or None,
            subtitle=self.status or None,
            border_style="blue",
        )

    def __rich__(self) -> Panel:
        return self.render()
