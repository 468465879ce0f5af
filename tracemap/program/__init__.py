from .image import ProgramImage, StaticBlock
from .lief import load_program

__all__ = [
    "ProgramImage",
    "StaticBlock",
    "load_program",
]
