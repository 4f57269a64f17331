"""Utility methods for unpacking byte data."""
import struct as _struct
import typing as _typing
from .errors import TruncatedInput

_MAX_VAR_LENGTH_BYTES = 4


def read(fp: _typing.IO, size: int) -> bytes:
    """Reads exactly `size` bytes or raises TruncatedInput."""
    data = fp.read(size)
    if len(data) != size:
        raise TruncatedInput(f"Expected {size} bytes at offset {fp.tell() - len(data)}, got {len(data)}.")
    return data


def u8(c):
    """Read an unsigned 8-bit integer."""
    try:
        return _struct.unpack("<B", c)[0]
    except TypeError:
        return _struct.unpack("<B", bytes([c]))[0]


def u16le(c):
    """Read an unsigned little-endian 16-bit integer."""
    return _struct.unpack("<H", c)[0]


def read_u8(fp: _typing.IO) -> int:
    """Read the next byte as an ordinal."""
    return u8(read(fp, 1))


def read_u16le(fp: _typing.IO) -> int:
    return u16le(read(fp, 2))


def skip(fp: _typing.IO, size: int):
    """Skips over `size` bytes, which must all be present."""
    read(fp, size)


def read_midi_var_length(fp: _typing.IO) -> int:
    """Reads a length using MIDI's variable length format.

    At most four bytes are read.  The high bit of each byte flags that another byte follows.
    """
    length = 0
    for _ in range(_MAX_VAR_LENGTH_BYTES):
        b = read_u8(fp)
        length = (length << 7) | (b & 0x7f)
        if b & 0x80 == 0:
            break
    return length


def encode_midi_var_length(value: int) -> bytes:
    """Encodes a value using MIDI's variable length format."""
    if not 0 <= value <= 0x0fffffff:
        raise ValueError(f"Value cannot be stored in a MIDI variable length number: {value}")
    data = [value & 0x7f]
    value >>= 7
    while value:
        data.append(0x80 | (value & 0x7f))
        value >>= 7
    return bytes(reversed(data))


def read_cstring(fp: _typing.IO, offset: int) -> _typing.Optional[str]:
    """Reads a null-terminated ASCII string at the given offset.  Offset 0 means no string."""
    if not offset:
        return None
    fp.seek(offset)
    text = bytearray()
    while True:
        c = fp.read(1)
        if not c or c == b"\x00":
            break
        text += c
    return text.decode("ascii", errors="replace")
