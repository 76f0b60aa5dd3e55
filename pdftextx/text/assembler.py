"""Turn the glyph runs of a page into reading-order text."""

from __future__ import annotations

import math
from typing import Any, Iterable

from ..config import ParserConfig
from ..types import GlyphRun

__all__ = ["TextAssembler"]

# Vertical moves smaller than this fraction of the font size are treated as
# rounding noise when a line-positioning operator preceded the run.
_LINE_BREAK_EPSILON = 0.01


def _direction(run: GlyphRun) -> tuple[float, float]:
    a, b = run.matrix[0], run.matrix[1]
    length = math.hypot(a, b)
    if length == 0:
        return 1.0, 0.0
    return a / length, b / length


class TextAssembler:
    """Insert separators between consecutive runs from their geometry.

    Displacements are measured in the writing direction of the previous run,
    so rotated text is handled like horizontal text.  Thresholds scale with the
    effective font size, never the nominal ``Tf`` size.
    """

    def __init__(self, config: ParserConfig | None = None) -> None:
        self.config = config or ParserConfig()

    def displacement(self, previous: GlyphRun, current: GlyphRun) -> tuple[float, float]:
        """Gap along the writing direction and offset across it, from the end of ``previous``."""

        ux, uy = _direction(previous)
        dx = current.origin[0] - previous.end[0]
        dy = current.origin[1] - previous.end[1]
        gap = dx * ux + dy * uy
        vertical = dy * ux - dx * uy
        return gap, vertical

    def separator(self, previous: GlyphRun, current: GlyphRun) -> str:
        config = self.config
        size = max(previous.effective_size, current.effective_size) or 1.0
        gap, vertical = self.displacement(previous, current)

        if abs(vertical) > config.line_break_factor * size:
            return "\n"
        if current.line_break and abs(vertical) > _LINE_BREAK_EPSILON * size:
            return "\n"

        if gap > config.tab_gap_factor * size:
            return "\t"
        # Encoded whitespace already separates the words.
        if previous.text[-1:].isspace() or current.text[:1].isspace():
            return ""
        if gap > config.word_gap_factor * size or current.space_before:
            return config.horizontal_offset
        return ""

    def assemble(self, runs: Iterable[GlyphRun]) -> str:
        parts: list[str] = []
        previous: GlyphRun | None = None
        for run in runs:
            if previous is not None:
                parts.append(self.separator(previous, run))
            parts.append(run.text)
            previous = run
        return "".join(parts)

    def text_array(self, runs: Iterable[GlyphRun]) -> list[str]:
        return [run.text for run in runs]

    def data_tm(self, runs: Iterable[GlyphRun]) -> list[list[Any]]:
        """Positional entries ``[[a, b, c, d, e, f], text]``.

        The matrix is the text rendering matrix at the start of the run.  With
        ``data_tm_font_info`` enabled each entry also carries the font resource
        name and the nominal font size.
        """

        entries: list[list[Any]] = []
        for run in runs:
            entry: list[Any] = [[float(value) for value in run.matrix], run.text]
            if self.config.data_tm_font_info:
                entry.extend([run.font_resource, run.font_size])
            entries.append(entry)
        return entries
