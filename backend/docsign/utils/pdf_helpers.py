"""Coordinate helpers for placing fields on PDF pages.

Fields are captured in screen space (origin top-left, y grows downward) as
ratios of the rendered page. PDF user space has its origin at the bottom-left
of the mediabox with y growing upward. Everything here is plain arithmetic so
it can be tested without opening a PDF.
"""

from dataclasses import dataclass
from typing import Tuple, Union

Number = Union[int, float]

MAX_TEXT_FONT_SIZE = 10.0
TEXT_FONT_HEIGHT_FACTOR = 0.6
# Helvetica cap height is ~0.72 em; half of it centers a line visually.
TEXT_VERTICAL_CENTER_FACTOR = 0.36
TEXT_LEFT_INSET = 2.0


@dataclass(frozen=True)
class PageGeometry:
    """Actual size of a stored page, taken from its mediabox."""
    width: float
    height: float
    left: float = 0.0
    bottom: float = 0.0

    @classmethod
    def from_mediabox(cls, mediabox) -> "PageGeometry":
        return cls(
            width=float(mediabox.width),
            height=float(mediabox.height),
            left=float(mediabox.left),
            bottom=float(mediabox.bottom),
        )


@dataclass(frozen=True)
class FieldBox:
    """Field rectangle in PDF user space (lower-left corner + size)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def top(self) -> float:
        return self.y + self.height

    @property
    def right(self) -> float:
        return self.x + self.width


def map_to_pdf_space(
    x_ratio: Number,
    y_ratio: Number,
    width: Number,
    height: Number,
    page: PageGeometry,
) -> FieldBox:
    """Translate a top-left ratio position into a PDF-space box.

    pdf_x = x_ratio * page_width
    pdf_y = page_height - y_ratio * page_height - field_height
    Both are offset by the mediabox origin.
    """
    x = page.left + float(x_ratio) * page.width
    y = page.bottom + page.height - float(y_ratio) * page.height - float(height)
    return FieldBox(x=x, y=y, width=float(width), height=float(height))


def map_field_to_page(field, page: PageGeometry) -> FieldBox:
    """Map a SigningField onto the given page geometry."""
    return map_to_pdf_space(field.x_ratio, field.y_ratio, field.width, field.height, page)


def box_to_ratios(box: FieldBox, page: PageGeometry) -> Tuple[float, float]:
    """Inverse of map_to_pdf_space: recover (x_ratio, y_ratio) from a box."""
    x_ratio = (box.x - page.left) / page.width
    y_ratio = (page.bottom + page.height - box.top) / page.height
    return x_ratio, y_ratio


def page_in_range(page_number: int, page_count: int) -> bool:
    return 1 <= page_number <= page_count


def text_font_size(box_height: Number) -> float:
    """Font size for date/text fields, capped so the text fits the box."""
    return min(MAX_TEXT_FONT_SIZE, float(box_height) * TEXT_FONT_HEIGHT_FACTOR)


def text_baseline(box: FieldBox, font_size: Number) -> float:
    """Baseline y that vertically centers a single line in the box."""
    return box.y + box.height / 2 - float(font_size) * TEXT_VERTICAL_CENTER_FACTOR
