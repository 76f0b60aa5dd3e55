from __future__ import annotations

import pytest

from pdftextx import GlyphRun, ParserConfig
from pdftextx.text.assembler import TextAssembler


def make_run(
    text: str,
    x: float,
    y: float,
    width: float,
    *,
    size: float = 10.0,
    font_size: float | None = None,
    line_break: bool = False,
    space_before: bool = False,
) -> GlyphRun:
    return GlyphRun(
        text=text,
        origin=(x, y),
        end=(x + width, y),
        font_size=size if font_size is None else font_size,
        effective_size=size,
        font_resource="F1",
        line_break=line_break,
        space_before=space_before,
        matrix=(size, 0.0, 0.0, size, x, y),
    )


@pytest.fixture()
def assembler() -> TextAssembler:
    return TextAssembler()


def test_adjacent_runs_are_joined(assembler) -> None:
    runs = [make_run("Hel", 0, 700, 20), make_run("lo", 20.5, 700, 10)]

    assert assembler.assemble(runs) == "Hello"


def test_word_gap_inserts_space(assembler) -> None:
    runs = [make_run("Hello", 0, 700, 25), make_run("World", 28, 700, 25)]

    assert assembler.assemble(runs) == "Hello World"


def test_wide_gap_inserts_tab(assembler) -> None:
    runs = [make_run("Name", 0, 700, 20), make_run("Value", 40, 700, 25)]

    assert assembler.assemble(runs) == "Name\tValue"


def test_vertical_move_inserts_newline(assembler) -> None:
    runs = [make_run("first", 0, 700, 25), make_run("second", 0, 688, 30)]

    assert assembler.assemble(runs) == "first\nsecond"


def test_small_vertical_shift_stays_on_the_line(assembler) -> None:
    runs = [make_run("x", 0, 700, 5), make_run("2", 5, 703, 3)]

    assert assembler.assemble(runs) == "x2"


def test_line_positioning_with_small_vertical_move_is_a_newline(assembler) -> None:
    runs = [make_run("a", 0, 700, 5), make_run("b", 0, 699, 5, line_break=True)]

    assert assembler.assemble(runs) == "a\nb"


def test_line_positioning_on_same_baseline_is_not_a_newline(assembler) -> None:
    runs = [make_run("Total", 0, 700, 25), make_run("42", 30, 700, 10, line_break=True)]

    assert assembler.assemble(runs) == "Total 42"


def test_existing_whitespace_suppresses_separator(assembler) -> None:
    runs = [make_run("Hello ", 0, 700, 28), make_run("World", 33, 700, 25)]

    assert assembler.assemble(runs) == "Hello World"


def test_wide_gap_after_encoded_space_is_still_a_tab(assembler) -> None:
    runs = [make_run("Due: ", 0, 700, 25), make_run("19 October", 150, 700, 50)]

    assert assembler.assemble(runs) == "Due: \t19 October"


def test_space_flag_from_text_adjustment(assembler) -> None:
    runs = [make_run("Hello", 0, 700, 25), make_run("World", 25, 700, 25, space_before=True)]

    assert assembler.assemble(runs) == "Hello World"


def test_custom_horizontal_offset() -> None:
    runs = [make_run("a", 0, 700, 5), make_run("b", 8, 700, 5)]

    assert TextAssembler(ParserConfig(horizontal_offset="_")).assemble(runs) == "a_b"


def test_thresholds_scale_with_effective_size(assembler) -> None:
    # Nominal size 1 scaled to 10 by the text matrix: a 3 unit gap is a word gap, not a tab.
    runs = [
        make_run("Merhaba", 0, 700, 40, font_size=1),
        make_run("Dünya", 43, 700, 30, font_size=1),
    ]

    assert assembler.assemble(runs) == "Merhaba Dünya"


def test_rotated_runs_measure_along_writing_direction(assembler) -> None:
    previous = GlyphRun(
        text="Up",
        origin=(100.0, 100.0),
        end=(100.0, 130.0),
        font_size=10.0,
        effective_size=10.0,
        matrix=(0.0, 10.0, -10.0, 0.0, 100.0, 100.0),
    )
    current = GlyphRun(
        text="wards",
        origin=(100.0, 135.0),
        end=(100.0, 160.0),
        font_size=10.0,
        effective_size=10.0,
        matrix=(0.0, 10.0, -10.0, 0.0, 100.0, 135.0),
    )

    assert assembler.displacement(previous, current) == pytest.approx((5.0, 0.0))
    assert assembler.assemble([previous, current]) == "Up wards"


def test_empty_page(assembler) -> None:
    assert assembler.assemble([]) == ""


def test_text_array(assembler) -> None:
    runs = [make_run("one", 0, 700, 15), make_run("two", 0, 680, 15)]

    assert assembler.text_array(runs) == ["one", "two"]


def test_data_tm_entries() -> None:
    runs = [make_run("one", 72, 700, 15)]

    assert TextAssembler().data_tm(runs) == [[[10.0, 0.0, 0.0, 10.0, 72.0, 700.0], "one"]]
    assert TextAssembler(ParserConfig(data_tm_font_info=True)).data_tm(runs) == [
        [[10.0, 0.0, 0.0, 10.0, 72.0, 700.0], "one", "F1", 10.0]
    ]
