"""Content stream tokenizing and interpretation."""

from .interpreter import ContentStreamInterpreter
from .operations import iter_operations
from .state import GraphicsState

__all__ = ["ContentStreamInterpreter", "GraphicsState", "iter_operations"]
