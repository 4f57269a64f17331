"""Reads the MIDI event stream of a CMF file one event at a time."""
import logging as _logging
import os as _os
import typing as _typing
import cmf2imf.midi as _midi
from ._binary import read as _read, read_u8 as _read_u8, read_midi_var_length as _read_midi_var_length, \
    skip as _skip
from .errors import CorruptStream, TruncatedInput


def midi_ticks_to_milliseconds(delta: int, ticks_per_second: int) -> int:
    """Converts a MIDI delta time to milliseconds, rounding down."""
    return delta * 1000 // ticks_per_second


class MidiEventReader:
    """Decodes MIDI events from a file object positioned at the start of the music data.

    The reader keeps the running status between calls to `read_event`.
    """

    def __init__(self, fp: _typing.IO):
        self.fp = fp
        self.running_status = 0

    def read_delta(self) -> int:
        """Reads the delta time that starts the next event.  Follow with `read_event(delta)`.

        :exception CorruptStream: When the stream ends before a complete delta time.
        """
        try:
            return _read_midi_var_length(self.fp)
        except TruncatedInput as ex:
            raise CorruptStream(f"Unexpected end of MIDI data.  {ex}") from ex

    def read_event(self, delta: int = None) -> _midi.MidiEvent:
        """Reads the next event.

        :param delta: The delta time when it has already been read with `read_delta`.
        :exception CorruptStream: When the data is not a valid event or the stream ends before a complete event.
        :return: One of the event types in `cmf2imf.midi`.
        """
        if delta is None:
            delta = self.read_delta()
        try:
            return self._read_event(delta)
        except TruncatedInput as ex:
            raise CorruptStream(f"Unexpected end of MIDI data.  {ex}") from ex

    def _read_event(self, delta: int) -> _midi.MidiEvent:
        status = _read_u8(self.fp)
        if status & 0x80:
            self.running_status = status
        else:
            # Running status.  This byte is data for the previous status.
            self.fp.seek(-1, _os.SEEK_CUR)
            status = self.running_status
            if not status & 0x80:
                raise CorruptStream(f"Invalid MIDI event 0x{status:02x} at offset 0x{self.fp.tell():x}.")
        if _midi.EventType.is_channel_event(status):
            return self._read_channel_event(delta, status & 0xf0, status & 0x0f)
        return self._read_system_event(delta, status)

    def _read_channel_event(self, delta: int, event_type: int, channel: int) -> _midi.MidiEvent:
        if event_type == _midi.EventType.NOTE_OFF:
            note, velocity = _read(self.fp, 2)
            return _midi.NoteEvent(delta, _midi.EventType.NOTE_OFF, channel, note, velocity)
        elif event_type == _midi.EventType.NOTE_ON:
            note, velocity = _read(self.fp, 2)
            return _midi.NoteEvent(delta, _midi.EventType.NOTE_ON if velocity else _midi.EventType.NOTE_OFF,
                                   channel, note, velocity)
        elif event_type == _midi.EventType.POLYPHONIC_KEY_PRESSURE:
            note, pressure = _read(self.fp, 2)
            return _midi.PressureEvent(delta, _midi.EventType.POLYPHONIC_KEY_PRESSURE, channel, note, pressure)
        elif event_type == _midi.EventType.CONTROLLER_CHANGE:
            controller, value = _read(self.fp, 2)
            return _midi.ControllerChangeEvent(delta, channel, controller, value)
        elif event_type == _midi.EventType.PROGRAM_CHANGE:
            return _midi.ProgramChangeEvent(delta, channel, _read_u8(self.fp))
        elif event_type == _midi.EventType.CHANNEL_KEY_PRESSURE:
            return _midi.PressureEvent(delta, _midi.EventType.CHANNEL_KEY_PRESSURE, channel, None,
                                       _read_u8(self.fp))
        # Pitch bend.  Only the lower seven bits of each byte are used.
        lsb, msb = _read(self.fp, 2)
        return _midi.PitchBendEvent(delta, channel, ((msb & 0x7f) << 7) | (lsb & 0x7f))

    def _read_system_event(self, delta: int, status: int) -> _midi.MidiEvent:
        if status == _midi.EventType.F0_SYSEX:
            # Read up to and including the terminating byte, usually F7.
            data = bytearray()
            while True:
                b = _read_u8(self.fp)
                data.append(b)
                if b & 0x80:
                    break
            return _midi.SysexEvent(delta, bytes(data))
        elif status in _midi.SYSTEM_EVENT_DATA_LENGTHS:
            _skip(self.fp, _midi.SYSTEM_EVENT_DATA_LENGTHS[status])
            if status == _midi.EventType.SONG_SELECT:
                _logging.warning("MIDI Song Select is not implemented.")
            return _midi.SystemEvent(delta, status)
        elif status in _midi.IGNORED_SYSTEM_EVENTS:
            return _midi.SystemEvent(delta, status)
        elif status == _midi.EventType.STOP:
            return _midi.StopEvent(delta)
        elif status == _midi.EventType.META:
            meta_type = _read_u8(self.fp)
            if meta_type == _midi.MetaType.END_OF_TRACK:
                return _midi.EndOfTrackEvent(delta)
            return _midi.MetaEvent(delta, meta_type)
        return _midi.SystemEvent(delta, status, known=False)

    def __iter__(self) -> _typing.Iterator[_midi.MidiEvent]:
        """Yields events up to and including the first end-of-track or stop event."""
        while True:
            event = self.read_event()
            yield event
            if _midi.is_terminal(event):
                return
