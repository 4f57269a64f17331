"""**Instrument Bank**

A CMF song carries up to 128 instruments.  Any patch slot the song does not define falls back to one of the
16 default patches built into Creative's player, repeating every 16 slots.  Some songs (the Word Rescue CMFs, for
example) rely on those defaults.

Use `load` to read a song's instrument block and `get_default` for a single default patch.
"""
import logging as _logging
import typing as _typing
from .adlib import AdlibInstrument as _AdlibInstrument, AdlibOperator as _AdlibOperator
from .errors import CmfError, TruncatedInput

BANK_SIZE = 128
RECORD_SIZE = 16  # 11 register bytes + 5 bytes of padding.


def _patch(mod: _typing.Tuple[int, int, int, int, int], car: _typing.Tuple[int, int, int, int, int],
           connection: int) -> _AdlibInstrument:
    return _AdlibInstrument(_AdlibOperator(*mod), _AdlibOperator(*car), connection)


# Operator values are: 0x20 tvskm, 0x40 ksl/output, 0x60 attack/decay, 0x80 sustain/release, 0xE0 waveform.
DEFAULT_PATCHES = [
    _patch((0x01, 0x4f, 0xf1, 0x53, 0x00), (0x11, 0x00, 0xd2, 0x74, 0x00), 0x06),
    _patch((0x07, 0x4f, 0xf2, 0x60, 0x00), (0x12, 0x00, 0xf2, 0x72, 0x00), 0x08),
    _patch((0x31, 0x1c, 0x51, 0x03, 0x00), (0xa1, 0x80, 0x54, 0x67, 0x00), 0x0e),
    _patch((0x31, 0x1c, 0x41, 0x0b, 0x00), (0xa1, 0x80, 0x92, 0x3b, 0x00), 0x0e),
    _patch((0x31, 0x87, 0xa1, 0x11, 0x00), (0x16, 0x80, 0x7d, 0x43, 0x00), 0x08),
    _patch((0x30, 0xc8, 0xd5, 0x19, 0x00), (0xb1, 0x80, 0x61, 0x1b, 0x00), 0x0c),
    _patch((0xf1, 0x01, 0x97, 0x17, 0x00), (0x21, 0x00, 0xf1, 0x18, 0x00), 0x08),
    _patch((0x32, 0x87, 0xa1, 0x10, 0x00), (0x16, 0x80, 0x7d, 0x33, 0x00), 0x08),
    _patch((0x01, 0x4f, 0x71, 0x53, 0x00), (0x12, 0x00, 0x52, 0x7c, 0x00), 0x0a),
    _patch((0x02, 0x8d, 0xd7, 0x37, 0x00), (0x03, 0x00, 0xf5, 0x18, 0x00), 0x04),
    _patch((0x21, 0xd1, 0xa3, 0x46, 0x00), (0x21, 0x00, 0xa4, 0x25, 0x00), 0x0a),
    _patch((0x22, 0x0f, 0xf6, 0x95, 0x00), (0x22, 0x00, 0xf6, 0x36, 0x00), 0x0a),
    _patch((0xe1, 0x00, 0x44, 0x24, 0x02), (0xe1, 0x00, 0x54, 0x34, 0x02), 0x07),
    _patch((0xa5, 0xd2, 0x81, 0x03, 0x00), (0xb1, 0x80, 0xf1, 0x05, 0x00), 0x02),
    _patch((0x71, 0xc5, 0x6e, 0x17, 0x00), (0x22, 0x00, 0x8b, 0x0e, 0x00), 0x02),
    _patch((0x32, 0x16, 0x73, 0x24, 0x00), (0x21, 0x80, 0x75, 0x57, 0x00), 0x0e),
]  # type: _typing.List[_AdlibInstrument]


def get_default(index: int) -> _AdlibInstrument:
    """Returns a copy of the default patch used for the given instrument slot."""
    return DEFAULT_PATCHES[index % len(DEFAULT_PATCHES)].copy()


def load(count: int, fp: _typing.IO) -> _typing.List[_AdlibInstrument]:
    """Reads `count` instruments from the current position of `fp` and fills the rest of the bank with defaults.

    :param count: The number of instruments declared in the CMF header.
    :param fp: A binary file object positioned at the instrument block.
    :exception TruncatedInput: When the data ends before all of the instruments are read.
    :return: A list of exactly 128 instruments.
    """
    if not 0 <= count <= BANK_SIZE:
        raise CmfError(f"Invalid instrument count: {count}.  Must be between 0 and {BANK_SIZE}.")
    bank = []  # type: _typing.List[_AdlibInstrument]
    for index in range(count):
        data = fp.read(RECORD_SIZE)
        # The padding after the final record is sometimes missing.
        is_last = index == count - 1
        if len(data) < (_AdlibInstrument.DATA_SIZE if is_last else RECORD_SIZE):
            raise TruncatedInput(f"Instrument block ended at instrument {index} of {count}.")
        bank.append(_AdlibInstrument.from_bytes(data[0:_AdlibInstrument.DATA_SIZE]))
    _logging.info(f"Found {count} instrument definitions.")
    bank.extend(get_default(index) for index in range(count, BANK_SIZE))
    return bank

