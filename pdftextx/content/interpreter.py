"""Content stream interpreter producing positioned :class:`GlyphRun` objects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from ..config import ParserConfig
from ..core.objects import PdfDictionary, PdfName, PdfStream, PdfString
from ..exceptions import PdfTextError
from ..fonts.font import Font, fallback_font
from ..types import IDENTITY_MATRIX, GlyphRun, Matrix
from .operations import iter_operations
from .state import GraphicsState, matrix_apply, matrix_multiply, matrix_scale, translation

if TYPE_CHECKING:
    from ..core.document import Document

__all__ = ["ContentStreamInterpreter"]

LOGGER = logging.getLogger("pdftextx.content")


def _numbers(operands: list[Any], count: int) -> list[float] | None:
    """Last ``count`` operands as floats, ``None`` when they are not all numbers."""

    if len(operands) < count:
        return None
    values = operands[len(operands) - count :]
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
        return None
    return [float(v) for v in values]


class ContentStreamInterpreter:
    """Execute the text-relevant subset of content stream operators.

    One interpreter instance handles one page; nested form XObjects reuse it
    with their own resources and matrix.
    """

    def __init__(self, document: Document, config: ParserConfig | None = None) -> None:
        self.document = document
        self.config = config or ParserConfig()
        self.runs: list[GlyphRun] = []
        self.state = GraphicsState()
        self._stack: list[GraphicsState] = []
        self._text_matrix: Matrix = IDENTITY_MATRIX
        self._line_matrix: Matrix = IDENTITY_MATRIX
        self._resources: PdfDictionary = PdfDictionary()
        self._depth = 0
        self._active_forms: set[int] = set()
        self._pending_line_break = False
        self._pending_space = False
        self._missing_fonts: set[str] = set()
        self._handlers: dict[str, Callable[[list[Any]], None]] = {
            "q": self._op_save,
            "Q": self._op_restore,
            "cm": self._op_concat,
            "BT": self._op_begin_text,
            "ET": self._op_end_text,
            "Tf": self._op_font,
            "Td": self._op_move,
            "TD": self._op_move_set_leading,
            "T*": self._op_next_line,
            "Tm": self._op_text_matrix,
            "Tc": self._op_character_spacing,
            "Tw": self._op_word_spacing,
            "Tz": self._op_horizontal_scaling,
            "TL": self._op_leading,
            "Ts": self._op_rise,
            "Tr": self._op_render_mode,
            "Tj": self._op_show,
            "'": self._op_next_line_show,
            '"': self._op_spacing_next_line_show,
            "TJ": self._op_show_array,
            "Do": self._op_xobject,
        }

    # -- entry points ------------------------------------------------------

    def run(self, content: bytes, resources: PdfDictionary | None = None) -> list[GlyphRun]:
        """Interpret ``content`` and return every run emitted so far."""

        previous = self._resources
        self._resources = resources if resources is not None else PdfDictionary()
        try:
            for operands, operator in iter_operations(content):
                handler = self._handlers.get(operator)
                if handler is not None:
                    handler(operands)
        finally:
            self._resources = previous
        return self.runs

    # -- graphics state ----------------------------------------------------

    def _op_save(self, operands: list[Any]) -> None:
        self._stack.append(self.state.copy())

    def _op_restore(self, operands: list[Any]) -> None:
        if self._stack:
            self.state = self._stack.pop()
        else:
            LOGGER.debug("Unbalanced Q operator ignored")

    def _op_concat(self, operands: list[Any]) -> None:
        values = _numbers(operands, 6)
        if values is not None:
            self.state.ctm = matrix_multiply(self.state.ctm, tuple(values))

    # -- text objects and positioning -------------------------------------

    def _op_begin_text(self, operands: list[Any]) -> None:
        self._text_matrix = IDENTITY_MATRIX
        self._line_matrix = IDENTITY_MATRIX

    def _op_end_text(self, operands: list[Any]) -> None:
        self._pending_space = False

    def _op_font(self, operands: list[Any]) -> None:
        if len(operands) < 2 or not isinstance(operands[-2], PdfName):
            return
        size = _numbers(operands, 1)
        if size is None:
            return
        name = str(operands[-2])
        self.state.font = self._load_font(name)
        self.state.font_resource = name
        self.state.font_size = size[0]

    def _move_line(self, tx: float, ty: float) -> None:
        self._line_matrix = matrix_multiply(self._line_matrix, translation(tx, ty))
        self._text_matrix = self._line_matrix
        self._pending_line_break = True

    def _op_move(self, operands: list[Any]) -> None:
        values = _numbers(operands, 2)
        if values is not None:
            self._move_line(*values)

    def _op_move_set_leading(self, operands: list[Any]) -> None:
        values = _numbers(operands, 2)
        if values is not None:
            self.state.leading = -values[1]
            self._move_line(*values)

    def _op_next_line(self, operands: list[Any]) -> None:
        self._move_line(0.0, -self.state.leading)

    def _op_text_matrix(self, operands: list[Any]) -> None:
        values = _numbers(operands, 6)
        if values is not None:
            self._text_matrix = tuple(values)
            self._line_matrix = self._text_matrix

    def _op_character_spacing(self, operands: list[Any]) -> None:
        values = _numbers(operands, 1)
        if values is not None:
            self.state.character_spacing = values[0]

    def _op_word_spacing(self, operands: list[Any]) -> None:
        values = _numbers(operands, 1)
        if values is not None:
            self.state.word_spacing = values[0]

    def _op_horizontal_scaling(self, operands: list[Any]) -> None:
        values = _numbers(operands, 1)
        if values is not None:
            self.state.horizontal_scaling = values[0]

    def _op_leading(self, operands: list[Any]) -> None:
        values = _numbers(operands, 1)
        if values is not None:
            self.state.leading = values[0]

    def _op_rise(self, operands: list[Any]) -> None:
        values = _numbers(operands, 1)
        if values is not None:
            self.state.rise = values[0]

    def _op_render_mode(self, operands: list[Any]) -> None:
        values = _numbers(operands, 1)
        if values is not None:
            self.state.render_mode = int(values[0])

    # -- text showing ------------------------------------------------------

    def _op_show(self, operands: list[Any]) -> None:
        if operands and isinstance(operands[-1], PdfString):
            self._show(operands[-1].raw)

    def _op_next_line_show(self, operands: list[Any]) -> None:
        self._op_next_line([])
        self._op_show(operands)

    def _op_spacing_next_line_show(self, operands: list[Any]) -> None:
        if len(operands) >= 3:
            spacing = _numbers(operands[:2], 2)
            if spacing is not None:
                self.state.word_spacing, self.state.character_spacing = spacing
        self._op_next_line_show(operands)

    def _op_show_array(self, operands: list[Any]) -> None:
        if not operands or not isinstance(operands[-1], list):
            return
        state = self.state
        for item in operands[-1]:
            if isinstance(item, PdfString):
                self._show(item.raw)
            elif isinstance(item, (int, float)) and not isinstance(item, bool):
                tx = -item / 1000 * state.font_size * state.horizontal_scale
                if self._current_font().vertical:
                    self._text_matrix = matrix_multiply(self._text_matrix, translation(0.0, -item / 1000 * state.font_size))
                else:
                    self._text_matrix = matrix_multiply(self._text_matrix, translation(tx, 0.0))
                if item < self.config.font_space_limit:
                    self._pending_space = True

    def _current_font(self) -> Font:
        if self.state.font is None:
            self.state.font = fallback_font(self.state.font_resource or "")
        return self.state.font

    def _show(self, data: bytes) -> None:
        state = self.state
        font = self._current_font()
        glyphs = font.decode(data)
        size = state.font_size
        scale = state.horizontal_scale

        rendering = matrix_multiply(state.ctm, self._text_matrix)
        origin = matrix_apply(rendering, 0.0, state.rise)

        advance = 0.0
        for glyph in glyphs:
            spacing = state.character_spacing + (state.word_spacing if glyph.word_space else 0.0)
            if font.vertical:
                advance += -size + spacing
            else:
                advance += (glyph.width * size + spacing) * scale
        if font.vertical:
            self._text_matrix = matrix_multiply(self._text_matrix, translation(0.0, advance))
        else:
            self._text_matrix = matrix_multiply(self._text_matrix, translation(advance, 0.0))
        end = matrix_apply(matrix_multiply(state.ctm, self._text_matrix), 0.0, state.rise)

        text = "".join(glyph.text for glyph in glyphs)
        if not text:
            return
        self.runs.append(
            GlyphRun(
                text=text,
                origin=origin,
                end=end,
                font_size=size,
                effective_size=abs(size) * matrix_scale(rendering, vertical=font.vertical),
                font_name=font.display_name,
                font_resource=state.font_resource,
                line_break=self._pending_line_break,
                space_before=self._pending_space,
                matrix=rendering,
            )
        )
        self._pending_line_break = False
        self._pending_space = False

    # -- resources ---------------------------------------------------------

    def _resource(self, category: str, name: str) -> Any:
        document = self.document
        group = document.resolve_dictionary(self._resources.get(category))
        if group is None:
            return None
        return group.get(name)

    def _load_font(self, name: str) -> Font:
        value = self._resource("Font", name)
        if value is None:
            if name not in self._missing_fonts:
                self._missing_fonts.add(name)
                LOGGER.warning("Font resource /%s not found, using fallback", name)
            return fallback_font(name)
        return self.document.get_font(value, name)

    def _op_xobject(self, operands: list[Any]) -> None:
        if not operands or not isinstance(operands[-1], PdfName):
            return
        name = str(operands[-1])
        reference = self._resource("XObject", name)
        stream = self.document.resolve_stream(reference)
        if stream is None or stream.dictionary.get("Subtype") != "Form":
            return
        key = id(stream)
        if self._depth >= self.config.max_xobject_depth or key in self._active_forms:
            LOGGER.warning("Skipping nested form XObject /%s", name)
            return
        try:
            content = self.document.decode_stream(stream)
        except PdfTextError as exc:
            LOGGER.warning("Skipping form XObject /%s: %s", name, exc)
            return
        self._run_form(stream, content)

    def _run_form(self, stream: PdfStream, content: bytes) -> None:
        document = self.document
        resources = document.resolve_dictionary(stream.get("Resources")) or self._resources
        matrix = _numbers(document.resolve_array(stream.get("Matrix")) or [], 6)

        saved_stack, saved_text, saved_line = self._stack, self._text_matrix, self._line_matrix
        outer_state = self.state
        self.state = outer_state.copy()
        if matrix is not None:
            self.state.ctm = matrix_multiply(self.state.ctm, tuple(matrix))
        self._stack = []
        self._depth += 1
        self._active_forms.add(id(stream))
        try:
            self.run(content, resources)
        finally:
            self._active_forms.discard(id(stream))
            self._depth -= 1
            self.state = outer_state
            self._stack, self._text_matrix, self._line_matrix = saved_stack, saved_text, saved_line
