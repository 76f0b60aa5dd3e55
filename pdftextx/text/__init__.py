from .assembler import TextAssembler

__all__ = ["TextAssembler"]
