"""File loaders that turn statement exports into in-memory row grids."""

from .files import SUPPORTED_SUFFIXES, UnsupportedFileError, decode_text, load_rows

__all__ = ["SUPPORTED_SUFFIXES", "UnsupportedFileError", "decode_text", "load_rows"]
