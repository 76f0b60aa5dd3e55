"""Font dictionaries, encodings and CMaps."""

from .cmap import CMap, parse_cmap, predefined_cmap
from .encodings import base_encoding, glyph_to_unicode
from .font import CompositeFont, Font, Glyph, SimpleFont, Type3Font, load_font

__all__ = [
    "CMap",
    "parse_cmap",
    "predefined_cmap",
    "base_encoding",
    "glyph_to_unicode",
    "CompositeFont",
    "Font",
    "Glyph",
    "SimpleFont",
    "Type3Font",
    "load_font",
]
