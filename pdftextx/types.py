"""Result types shared by the interpreter, the assembler and the public API."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

Matrix = tuple[float, float, float, float, float, float]

IDENTITY_MATRIX: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


@dataclass(slots=True)
class GlyphRun:
    """Text shown by one string operand, positioned in device space.

    ``origin`` and ``end`` are the pen positions before and after the run.
    ``effective_size`` is the font size scaled by the text and transformation
    matrices, the unit all spacing heuristics are measured in.
    """

    text: str
    origin: tuple[float, float]
    end: tuple[float, float]
    font_size: float
    effective_size: float
    font_name: str | None = None
    font_resource: str | None = None
    line_break: bool = False
    space_before: bool = False
    matrix: Matrix = IDENTITY_MATRIX

    @property
    def x(self) -> float:
        return self.origin[0]

    @property
    def y(self) -> float:
        return self.origin[1]

    @property
    def width(self) -> float:
        return ((self.end[0] - self.origin[0]) ** 2 + (self.end[1] - self.origin[1]) ** 2) ** 0.5


@dataclass(slots=True)
class PageText:
    number: int
    text: str
    runs: list[GlyphRun] = field(default_factory=list)


@dataclass(slots=True)
class DocumentDetails:
    """Document information dictionary plus structural facts about the file."""

    producer: str | None = None
    creator: str | None = None
    title: str | None = None
    author: str | None = None
    subject: str | None = None
    keywords: str | None = None
    creation_date: str | None = None
    modification_date: str | None = None
    page_count: int = 0
    pdf_version: str | None = None
    xref_kind: str | None = None
    recovered: bool = False
    info: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
