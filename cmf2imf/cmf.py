"""**Creative Music File**

Reads the CMF header and song tags.  The music itself is played by `cmf2imf.player.CmfPlayer`.

CMF layout (all values little-endian)::

    0x00  "CTMF"
    0x04  u16 version (0x0100 or 0x0101)
    0x06  u16 instrument block offset
    0x08  u16 music offset
    0x0a  u16 ticks per quarter note
    0x0c  u16 ticks per second
    0x0e  u16 title, composer, and remarks tag offsets (0 = no tag)
    0x14  16 bytes, channel in use flags
    0x24  v1.0: u8 instrument count
          v1.1: u16 instrument count, u16 tempo
"""
import io as _io
import logging as _logging
import typing as _typing
from ._binary import read as _read, read_cstring as _read_cstring, read_u8 as _read_u8, read_u16le as _read_u16le
from .errors import BadMagic, CmfError, UnsupportedVersion

MAGIC = b"CTMF"
VERSION_1_0 = 0x0100
VERSION_1_1 = 0x0101
SUPPORTED_VERSIONS = [VERSION_1_0, VERSION_1_1]
MIDI_CHANNELS = 16


class CmfHeader(_typing.NamedTuple):
    """The CMF file header.

    **arguments**: version, instrument_offset, music_offset, ticks_per_quarter_note, ticks_per_second,
    title_offset, composer_offset, remarks_offset, channels_in_use, instrument_count, tempo
    """
    version: int
    instrument_offset: int
    music_offset: int
    ticks_per_quarter_note: int
    ticks_per_second: int
    title_offset: int
    composer_offset: int
    remarks_offset: int
    channels_in_use: bytes
    instrument_count: int
    tempo: int = 0  # Only present in version 1.1.

    @property
    def channel_mask(self) -> int:
        """The channels in use as a bit mask.  Bit 0 is channel 0."""
        return sum(1 << ch for ch in range(MIDI_CHANNELS) if self.channels_in_use[ch])

    @property
    def version_text(self) -> str:
        return f"{self.version >> 8}.{self.version & 0xff}"


def read_header(fp: _typing.IO) -> CmfHeader:
    """Reads and validates the CMF header at the current position of `fp`.

    :exception BadMagic: The data does not start with "CTMF".
    :exception UnsupportedVersion: The version is not 1.0 or 1.1.
    :exception TruncatedInput: The header is incomplete.
    :exception CmfError: The tick rate is zero.
    """
    magic = fp.read(len(MAGIC))
    if magic != MAGIC:
        raise BadMagic("Input file is not a CMF file.  CTMF header missing.")
    version = _read_u16le(fp)
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(f"CMF file is not v1.0 or v1.1.  Found version 0x{version:04x}.")
    offsets = [_read_u16le(fp) for _ in range(7)]
    channels_in_use = _read(fp, MIDI_CHANNELS)
    if version == VERSION_1_0:
        instrument_count = _read_u8(fp)
        tempo = 0
    else:
        instrument_count = _read_u16le(fp)
        tempo = _read_u16le(fp)
    header = CmfHeader(version, *offsets, channels_in_use, instrument_count, tempo)
    if header.ticks_per_second == 0:
        raise CmfError("CMF ticks per second is zero.")
    _logging.debug(f"CMF v{header.version_text}, {header.instrument_count} instruments, "
                   f"{header.ticks_per_second} ticks per second, channel mask 0x{header.channel_mask:04x}.")
    return header


class CmfFile:
    """A CMF song loaded into memory.

    **fields**: file, data, header, title, composer, remarks
    """

    def __init__(self, data: bytes, file: str = None):
        self.file = file
        self.data = data
        fp = self.open()
        self.header = read_header(fp)
        self.title = _read_cstring(fp, self.header.title_offset)  # type: _typing.Optional[str]
        self.composer = _read_cstring(fp, self.header.composer_offset)  # type: _typing.Optional[str]
        self.remarks = _read_cstring(fp, self.header.remarks_offset)  # type: _typing.Optional[str]

    def open(self) -> _typing.BinaryIO:
        """Returns a new file object for the song data."""
        return _io.BytesIO(self.data)

    @classmethod
    def load_file(cls, f) -> "CmfFile":
        """Loads a CMF file.

        :param f: A filename or a binary file object.
        :exception CmfError: When the file is not a valid CMF file.
        """
        if type(f) is str:
            filename = f
            with open(filename, "rb") as fp:
                data = fp.read()
        else:
            filename = getattr(f, "name", None)
            data = f.read()
        _logging.info(f'Loading "{filename}".')
        try:
            song = cls(data, filename)
        except CmfError as ex:
            _logging.error(f'Error while loading "{filename}": {ex}')
            raise
        for name in ("title", "composer", "remarks"):
            if getattr(song, name):
                _logging.info(f"{name.capitalize()}: {getattr(song, name)}")
        return song
