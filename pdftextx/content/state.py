"""Graphics state and affine matrix helpers for content stream interpretation."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from ..types import IDENTITY_MATRIX, Matrix

if TYPE_CHECKING:
    from ..fonts.font import Font

__all__ = [
    "GraphicsState",
    "matrix_multiply",
    "matrix_apply",
    "matrix_scale",
    "translation",
]


def matrix_multiply(lhs: Matrix, rhs: Matrix) -> Matrix:
    """Compose two matrices so that ``rhs`` is applied first."""

    a1, b1, c1, d1, e1, f1 = lhs
    a2, b2, c2, d2, e2, f2 = rhs
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def matrix_apply(matrix: Matrix, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, e, f = matrix
    return a * x + c * y + e, b * x + d * y + f


def translation(tx: float, ty: float) -> Matrix:
    return (1.0, 0.0, 0.0, 1.0, tx, ty)


def matrix_scale(matrix: Matrix, *, vertical: bool = False) -> float:
    """Length scale of ``matrix``: horizontal axis, vertical as fallback."""

    a, b, c, d, _e, _f = matrix
    sx = math.hypot(a, b)
    sy = math.hypot(c, d)
    if vertical and sy > 0:
        return sy
    return sx if sx > 0 else sy


@dataclass(slots=True)
class GraphicsState:
    """State saved by ``q`` and restored by ``Q``.

    The text matrix and text line matrix belong to the text object rather
    than the graphics state and are tracked by the interpreter.
    """

    ctm: Matrix = IDENTITY_MATRIX
    font: Font | None = None
    font_resource: str | None = None
    font_size: float = 0.0
    character_spacing: float = 0.0
    word_spacing: float = 0.0
    horizontal_scaling: float = 100.0
    leading: float = 0.0
    rise: float = 0.0
    render_mode: int = 0

    def copy(self) -> GraphicsState:
        return replace(self)

    @property
    def horizontal_scale(self) -> float:
        return self.horizontal_scaling / 100.0
