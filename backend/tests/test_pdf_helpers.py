"""Tests for coordinate mapping between screen ratios and PDF space"""

import pytest

from docsign.utils.pdf_helpers import (
    FieldBox,
    PageGeometry,
    box_to_ratios,
    map_to_pdf_space,
    page_in_range,
    text_baseline,
    text_font_size,
)

LETTER = PageGeometry(width=612.0, height=792.0)
A4_OFFSET = PageGeometry(width=595.0, height=842.0, left=10.0, bottom=20.0)


def test_top_left_origin_maps_to_page_top():
    box = map_to_pdf_space(0.0, 0.0, 100, 40, LETTER)
    assert box.x == 0.0
    assert box.y == pytest.approx(792.0 - 40)
    assert box.top == pytest.approx(792.0)
    print("[PASS] (0, 0) lands at the top-left corner")


def test_known_placement_on_letter_page():
    box = map_to_pdf_space(0.1, 0.8, 150, 50, LETTER)
    assert box.x == pytest.approx(61.2)
    assert box.y == pytest.approx(792.0 - 0.8 * 792.0 - 50)
    assert (box.width, box.height) == (150.0, 50.0)


def test_mediabox_origin_offset_is_applied():
    box = map_to_pdf_space(0.5, 0.5, 20, 10, A4_OFFSET)
    assert box.x == pytest.approx(10.0 + 0.5 * 595.0)
    assert box.y == pytest.approx(20.0 + 842.0 - 0.5 * 842.0 - 10)


@pytest.mark.parametrize("page", [LETTER, A4_OFFSET, PageGeometry(width=300.5, height=1000.25)])
@pytest.mark.parametrize("ratios", [(0.0, 0.0), (0.1, 0.8), (0.33, 0.67), (1.0, 1.0)])
def test_mapping_round_trips(page, ratios):
    x_ratio, y_ratio = ratios
    box = map_to_pdf_space(x_ratio, y_ratio, 150, 50, page)
    assert box_to_ratios(box, page) == pytest.approx(ratios, abs=1e-9)


def test_page_in_range():
    assert page_in_range(1, 1)
    assert page_in_range(3, 3)
    assert not page_in_range(0, 3)
    assert not page_in_range(4, 3)


def test_text_font_size_is_capped():
    assert text_font_size(50) == 10.0
    assert text_font_size(10) == pytest.approx(6.0)


def test_text_baseline_centers_line():
    box = FieldBox(x=0, y=100, width=80, height=20)
    size = text_font_size(box.height)
    baseline = text_baseline(box, size)
    assert box.y < baseline < box.top
    assert baseline == pytest.approx(100 + 10 - size * 0.36)
