"""Arranging the header, tables and footer on the screen."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from bandwatch.display.frame import Frame, Rect

FIRST_HEIGHT_BREAKPOINT = 30
FIRST_WIDTH_BREAKPOINT = 120


class Direction(enum.Enum):
    """Axis along which an area is cut."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


def split_rect(rect: Rect, direction: Direction, sizes: Sequence[int]) -> List[Rect]:
    """Cut rect into consecutive parts of the given sizes, clipped to rect."""
    vertical = direction is Direction.VERTICAL
    start = rect.y if vertical else rect.x
    end = rect.bottom if vertical else rect.right
    parts = []
    for size in sizes:
        length = max(min(size, end - start), 0)
        if vertical:
            parts.append(Rect(rect.x, start, rect.width, length))
        else:
            parts.append(Rect(start, rect.y, length, rect.height))
        start += length
    return parts


def _halves(rect: Rect, direction: Direction) -> List[Rect]:
    total = rect.height if direction is Direction.VERTICAL else rect.width
    first = total // 2
    return split_rect(rect, direction, [first, total - first])


def top_app_and_bottom_split(rect: Rect) -> Tuple[Rect, Rect, Rect]:
    """A one-line header, the main area, and a one-line footer."""
    top, app, bottom = split_rect(
        rect, Direction.VERTICAL, [1, max(rect.height - 2, 0), 1]
    )
    return top, app, bottom


@dataclass
class Layout:
    """Places the tables, dropping some when space is short."""

    header: object
    children: list = field(default_factory=list)
    footer: object = None

    def _progressive_split(self, rect: Rect, splits: Sequence[Direction]) -> List[Rect]:
        layout = [rect]
        for direction in splits:
            layout.extend(_halves(layout.pop(), direction))
        return layout

    def _two_children_layout(self, rect: Rect) -> List[Rect]:
        if rect.height < FIRST_HEIGHT_BREAKPOINT and rect.width < FIRST_WIDTH_BREAKPOINT:
            return [rect]
        if rect.width < FIRST_WIDTH_BREAKPOINT:
            return self._progressive_split(rect, [Direction.VERTICAL])
        return self._progressive_split(rect, [Direction.HORIZONTAL])

    def _three_children_layout(self, rect: Rect) -> List[Rect]:
        if rect.height < FIRST_HEIGHT_BREAKPOINT and rect.width < FIRST_WIDTH_BREAKPOINT:
            return [rect]
        if rect.height < FIRST_HEIGHT_BREAKPOINT:
            return self._progressive_split(rect, [Direction.HORIZONTAL])
        if rect.width < FIRST_WIDTH_BREAKPOINT:
            return self._progressive_split(rect, [Direction.VERTICAL])
        top, bottom = _halves(rect, Direction.VERTICAL)
        left, right = _halves(top, Direction.HORIZONTAL)
        return [left, right, bottom]

    def build_layout(self, rect: Rect) -> List[Rect]:
        """The areas the tables go into, first slot first."""
        if len(self.children) == 1:
            return [rect]
        if len(self.children) == 2:
            return self._two_children_layout(rect)
        return self._three_children_layout(rect)

    def render(self, frame: Frame, rect: Rect, ui_offset: int) -> None:
        """Draw everything; ui_offset rotates which table goes in which slot."""
        top, app, bottom = top_app_and_bottom_split(rect)
        if self.children:
            for index, slot in enumerate(self.build_layout(app)):
                child = self.children[(index + ui_offset) % len(self.children)]
                child.render(frame, slot)
        self.header.render(frame, top)
        self.footer.render(frame, bottom)