"""Exceptions raised while reading CMF data.

All of them derive from `ValueError` so callers that already guard file loading with
`except (ValueError, IOError, OSError)` keep working.
"""


class CmfError(ValueError):
    """Base class for CMF loading and parsing errors."""


class BadMagic(CmfError):
    """The file does not start with the CTMF signature."""


class UnsupportedVersion(CmfError):
    """The CMF version is not 1.0 or 1.1."""


class TruncatedInput(CmfError):
    """The data ended before a fixed-size structure could be read."""


class CorruptStream(CmfError):
    """The MIDI event stream contains an invalid status byte or ends mid-event."""
