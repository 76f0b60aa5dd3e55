"""Configuration shared by the parser, interpreter and text assembler."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ParserConfig:
    """Tunable extraction parameters.

    The gap factors are multiples of a run's effective font size (font size
    scaled by the text and transformation matrices).  They are heuristics
    tuned against real documents rather than values defined by the PDF format.
    """

    # TJ adjustments (thousandths of text space) below this value count as a
    # word break.
    font_space_limit: float = -50.0
    # String inserted for a word break that carries no encoded space.
    horizontal_offset: str = " "
    word_gap_factor: float = 0.15
    tab_gap_factor: float = 1.0
    line_break_factor: float = 0.5
    page_separator: str = "\n\n"
    # Maximum decoded size of a single stream in bytes, 0 disables the limit.
    decode_memory_limit: int = 0
    max_xobject_depth: int = 8
    # Include the font resource name and size in ``Page.get_data_tm`` entries.
    data_tm_font_info: bool = False

    def __post_init__(self) -> None:
        if self.decode_memory_limit < 0:
            raise ValueError("decode_memory_limit must be >= 0")
        if self.max_xobject_depth < 0:
            raise ValueError("max_xobject_depth must be >= 0")
        if not 0 <= self.word_gap_factor <= self.tab_gap_factor:
            raise ValueError("word_gap_factor must be between 0 and tab_gap_factor")
        if self.line_break_factor <= 0:
            raise ValueError("line_break_factor must be positive")
