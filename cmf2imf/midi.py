"""MIDI status codes, CMF controllers, and the decoded event types returned by `reader.MidiEventReader`."""
import typing as _typing
from enum import IntEnum


class EventType(IntEnum):
    """MIDI status codes.

    Channel messages carry the channel number in the low nibble of the status byte.
    """
    NOTE_OFF = 0x80
    NOTE_ON = 0x90
    POLYPHONIC_KEY_PRESSURE = 0xa0
    CONTROLLER_CHANGE = 0xb0
    PROGRAM_CHANGE = 0xc0
    CHANNEL_KEY_PRESSURE = 0xd0
    PITCH_BEND = 0xe0
    # System messages.
    F0_SYSEX = 0xf0
    TIME_CODE_QUARTER_FRAME = 0xf1
    SONG_POSITION_POINTER = 0xf2
    SONG_SELECT = 0xf3
    TUNE_REQUEST = 0xf6
    F7_SYSEX = 0xf7  # End of exclusive.  Normally absorbed by the preceding F0 sysex.
    TIMING_CLOCK = 0xf8
    START = 0xfa
    CONTINUE = 0xfb
    STOP = 0xfc
    ACTIVE_SENSING = 0xfe
    META = 0xff  # System reset on the wire, meta-events in a file.

    @classmethod
    def is_channel_event(cls, status: int) -> bool:
        return 0x80 <= status < 0xf0


class MetaType(IntEnum):
    """Meta event types.  CMF songs only use END_OF_TRACK."""
    END_OF_TRACK = 0x2f


class ControllerType(IntEnum):
    """MIDI controller codes with special meaning in a CMF song."""
    AM_VIB_DEPTH = 0x63  # Bit 1 = AM depth, bit 0 = vibrato depth.
    MARKER = 0x66  # A song marker byte.  The player only logs it.
    RHYTHM_MODE = 0x67  # 0 = melodic mode, otherwise rhythm mode.
    TRANSPOSE_UP = 0x68  # In 1/128ths of a semitone.
    TRANSPOSE_DOWN = 0x69  # In 1/128ths of a semitone.


# System status bytes that carry no data and need no handling.
IGNORED_SYSTEM_EVENTS = [
    EventType.TUNE_REQUEST,
    EventType.F7_SYSEX,
    EventType.TIMING_CLOCK,
    EventType.START,
    EventType.CONTINUE,
    EventType.ACTIVE_SENSING,
]

# System status bytes followed by this many ignored data bytes.
SYSTEM_EVENT_DATA_LENGTHS = {
    EventType.TIME_CODE_QUARTER_FRAME: 1,
    EventType.SONG_POSITION_POINTER: 2,
    EventType.SONG_SELECT: 1,
}


class NoteEvent(_typing.NamedTuple):
    """A note on or off.  Note on with a velocity of 0 is returned as NOTE_OFF.

    **arguments**: delta, event_type, channel, note, velocity
    """
    delta: int
    event_type: EventType
    channel: int
    note: int
    velocity: int


class PressureEvent(_typing.NamedTuple):
    """Polyphonic or channel key pressure.  `note` is None for channel pressure.

    **arguments**: delta, event_type, channel, note, pressure
    """
    delta: int
    event_type: EventType
    channel: int
    note: _typing.Optional[int]
    pressure: int


class ControllerChangeEvent(_typing.NamedTuple):
    """**arguments**: delta, channel, controller, value"""
    delta: int
    channel: int
    controller: int
    value: int


class ProgramChangeEvent(_typing.NamedTuple):
    """**arguments**: delta, channel, program"""
    delta: int
    channel: int
    program: int


class PitchBendEvent(_typing.NamedTuple):
    """**arguments**: delta, channel, amount

    `amount` is the 14-bit bend value.  8192 is center.
    """
    delta: int
    channel: int
    amount: int


class SysexEvent(_typing.NamedTuple):
    """**arguments**: delta, data

    `data` includes the terminating byte.
    """
    delta: int
    data: bytes


class SystemEvent(_typing.NamedTuple):
    """A system message that is skipped.  `known` is False for undefined status bytes.

    **arguments**: delta, status, known
    """
    delta: int
    status: int
    known: bool = True


class MetaEvent(_typing.NamedTuple):
    """**arguments**: delta, meta_type"""
    delta: int
    meta_type: int


class EndOfTrackEvent(_typing.NamedTuple):
    """The end of the song."""
    delta: int


class StopEvent(_typing.NamedTuple):
    """A real time stop message.  Ends the song."""
    delta: int


MidiEvent = _typing.Union[NoteEvent, PressureEvent, ControllerChangeEvent, ProgramChangeEvent, PitchBendEvent,
                          SysexEvent, SystemEvent, MetaEvent, EndOfTrackEvent, StopEvent]

TERMINAL_EVENTS = (EndOfTrackEvent, StopEvent)


def is_terminal(event: MidiEvent) -> bool:
    """Returns True when the event ends the song."""
    return isinstance(event, TERMINAL_EVENTS)
