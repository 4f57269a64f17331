"""Converts Creative Music Files (CMF) into id Software Music Format (IMF) files."""

__version__ = "1.0.0"
