"""**CMF Player**

Plays the MIDI data of a CMF song on a virtual OPL2 chip.  The player does not render audio.  Instead, every
register write and every delay is passed to a `RegisterSink`, which can record them (see
`cmf2imf.plugins.imffileplugin`) or forward them to a real chip or an emulator.

Usage::

    player = CmfPlayer(fp, sink)
    player.init()
    while player.tick():
        pass

Voice allocation follows Creative's CMF player.  In melodic mode all nine OPL channels play notes.  In rhythm mode
only channels 0..5 play melodic notes and MIDI channels 11..15 play the five OPL rhythm instruments on channels 6..8.
"""
import logging as _logging
import math as _math
import typing as _typing
import cmf2imf.cmf as _cmf
import cmf2imf.instruments as _instruments
import cmf2imf.midi as _midi
from cmf2imf.adlib import *
from .errors import CorruptStream
from .reader import MidiEventReader, midi_ticks_to_milliseconds

BASS_DRUM_CHANNEL = 11
SNARE_DRUM_CHANNEL = 12
TOM_TOM_CHANNEL = 13
CYMBAL_CHANNEL = 14
HI_HAT_CHANNEL = 15

# MIDI channel -> OPL channel for rhythm mode instruments.
PERCUSSION_VOICES = {
    BASS_DRUM_CHANNEL: 6,
    SNARE_DRUM_CHANNEL: 7,
    TOM_TOM_CHANNEL: 8,
    CYMBAL_CHANNEL: 8,
    HI_HAT_CHANNEL: 7,
}

# MIDI channel -> (instrument operator, OPL operator) pairs loaded for each rhythm instrument.
# Only the bass drum uses both operators.  The others take their settings from the instrument's modulator.
PERCUSSION_OPERATORS = {
    BASS_DRUM_CHANNEL: [(MODULATOR, MODULATOR), (CARRIER, CARRIER)],
    SNARE_DRUM_CHANNEL: [(MODULATOR, CARRIER)],
    TOM_TOM_CHANNEL: [(MODULATOR, MODULATOR)],
    CYMBAL_CHANNEL: [(MODULATOR, CARRIER)],
    HI_HAT_CHANNEL: [(MODULATOR, MODULATOR)],
}

# Frequencies some songs expect the rhythm channels to start with: (OPL channel, block, f-num).
RHYTHM_FREQUENCY_PRESETS = [
    (8, 1, 514),
    (7, 2, 509),
    (6, 2, 432),
]

PERCUSSION_PRESET_COUNT = len(PERCUSSION_VOICES)


def get_rhythm_bit(channel: int) -> int:
    """Returns the 0xBD register bit for a rhythm instrument MIDI channel (11..15)."""
    return 1 << (15 - channel)


def get_percussion_level(velocity: int) -> int:
    """Converts a note velocity to a rhythm instrument output level.  0 is loudest.

    This approximates the levels written by Creative's player.
    """
    if velocity > 0x7b:
        return 0
    level = int(0x25 - _math.sqrt(velocity * 16))
    return max(0, min(level, OUTPUT_LEVEL_MASK))


class RegisterSink:
    """Receives the output of a `CmfPlayer`."""

    def write_register(self, reg: int, value: int):
        """Called for every OPL register write."""
        raise NotImplementedError()

    def advance_clock(self, milliseconds: int):
        """Called when time passes between events."""
        raise NotImplementedError()


class CallbackSink(RegisterSink):
    """A sink that forwards to two callables."""

    def __init__(self, set_register: _typing.Callable[[int, int], None], delay: _typing.Callable[[int], None]):
        self._set_register = set_register
        self._delay = delay

    def write_register(self, reg: int, value: int):
        self._set_register(reg, value)

    def advance_clock(self, milliseconds: int):
        self._delay(milliseconds)


class MidiChannelInfo:
    def __init__(self, number: int):
        self.number = number
        self.instrument = 0  # The patch index.
        self.pitch_bend = PITCH_BEND_CENTER

    def __repr__(self):
        return str(self.__dict__)


class OplChannelInfo:
    def __init__(self, number: int):
        self.number = number
        self.note_start = 0  # Value of the note counter when the current note started.  0 = free.
        self.note = 0
        self.midi_channel = 0
        self.instrument = -1  # The loaded patch index.  -1 = none.

    @property
    def is_free(self) -> bool:
        return self.note_start == 0

    def __repr__(self):
        return str(self.__dict__)


_CONTROLLER_HANDLERS = {}


def _controller_handler(*controllers):
    def _decorator(f):
        for cc in controllers:
            _CONTROLLER_HANDLERS[cc] = f
        return f
    return _decorator


class CmfPlayer:
    """Translates the MIDI data of a CMF song into OPL register writes.

    :param fp: A seekable binary file object positioned at the start of the CMF data.
    :param sink: Receives register writes and delays.
    :param preset_rhythm_frequencies: Give the rhythm channels a starting frequency during `init`.
    :param preset_percussion_patches: Load the last five song instruments onto MIDI channels 11..15 during `init`.
    :exception CmfError: When the header is invalid.
    """

    def __init__(self, fp: _typing.IO, sink: RegisterSink, preset_rhythm_frequencies: bool = False,
                 preset_percussion_patches: bool = False):
        self.fp = fp
        self.sink = sink
        self.preset_rhythm_frequencies = preset_rhythm_frequencies
        self.preset_percussion_patches = preset_percussion_patches
        self.header = _cmf.read_header(fp)
        self.instruments = []  # type: _typing.List[AdlibInstrument]
        self.midi_channels = [MidiChannelInfo(ch) for ch in range(_cmf.MIDI_CHANNELS)]
        self.opl_channels = [OplChannelInfo(ch) for ch in range(OPL_CHANNELS)]
        self.registers = bytearray(256)
        self.rhythm_mode = False
        self.transpose = 0  # In 1/128ths of a semitone.
        self.note_count = 0
        self._reader = MidiEventReader(fp)

    @property
    def melodic_voice_count(self) -> int:
        return RHYTHM_MODE_MELODIC_CHANNELS if self.rhythm_mode else OPL_CHANNELS

    def init(self):
        """Loads the instrument bank and writes the initial register values."""
        self.fp.seek(self.header.instrument_offset)
        self.instruments = _instruments.load(self.header.instrument_count, self.fp)
        if self.preset_percussion_patches:
            self._preset_percussion_patches()
        self.fp.seek(self.header.music_offset)
        self._set_register(TEST_MSG, WAVEFORM_SELECT_ENABLE_MASK)
        # Make sure CSM and keyboard split are off.
        self._set_register(COMP_SINE_WAVE_MODE_MSG, 0)
        if self.preset_rhythm_frequencies:
            for channel, block, fnum in RHYTHM_FREQUENCY_PRESETS:
                self._set_register(FREQ_MSG + channel, fnum & 0xff)
                self._set_register(BLOCK_MSG + channel, (block << 2) | (fnum >> 8))
        # Creative's player always turns on AM and vibrato depth.  Controller 0x63 can change this.
        self._set_register(DRUM_MSG, PERCUSSION_MODE_DEPTH_MASK)
        self._reader.running_status = 0

    def _preset_percussion_patches(self):
        count = self.header.instrument_count
        if count < PERCUSSION_PRESET_COUNT:
            _logging.warning(f"Cannot preset percussion patches.  The song only has {count} instruments.")
            return
        for patch, channel in enumerate(sorted(PERCUSSION_VOICES), count - PERCUSSION_PRESET_COUNT):
            _logging.info(f"Presetting MIDI channel {channel} to patch {patch}.")
            self.midi_channels[channel].instrument = patch
            self._bind_percussion_instrument(channel, patch)

    def tick(self) -> bool:
        """Processes the next event.

        :return: False when the song has ended or the data is corrupt; otherwise, True.
        """
        if not self.instruments:
            raise RuntimeError("init() must be called before tick().")
        try:
            delta = self._reader.read_delta()
            # The delay is passed on even when the event that follows is corrupt.
            if delta:
                self.sink.advance_clock(midi_ticks_to_milliseconds(delta, self.header.ticks_per_second))
            event = self._reader.read_event(delta)
        except CorruptStream as ex:
            _logging.error(f"Corrupt CMF file or bug in MIDI parser: {ex}")
            return False
        return self._process_event(event)

    def play(self) -> int:
        """Calls `tick` until the song ends.

        :return: The number of events processed before the song ended.
        """
        count = 0
        while self.tick():
            count += 1
        return count

    def _process_event(self, event: _midi.MidiEvent) -> bool:
        if isinstance(event, _midi.NoteEvent):
            if event.event_type == _midi.EventType.NOTE_ON:
                self.note_on(event.channel, event.note, event.velocity)
            else:
                self.note_off(event.channel, event.note)
        elif isinstance(event, _midi.ControllerChangeEvent):
            self.controller_change(event.channel, event.controller, event.value)
        elif isinstance(event, _midi.ProgramChangeEvent):
            self.program_change(event.channel, event.program)
        elif isinstance(event, _midi.PitchBendEvent):
            self.midi_channels[event.channel].pitch_bend = event.amount
            _logging.debug(f"Channel {event.channel} pitch bent to {event.amount} "
                           f"({(event.amount - PITCH_BEND_CENTER) / float(PITCH_BEND_CENTER):.3f}).")
        elif isinstance(event, _midi.PressureEvent):
            if event.event_type == _midi.EventType.POLYPHONIC_KEY_PRESSURE:
                _logging.warning("Key pressure is not implemented.")
            else:
                _logging.warning("Channel pressure is not implemented.")
        elif isinstance(event, _midi.SysexEvent):
            _logging.debug(f"Sysex message: {event.data.hex()}")
        elif isinstance(event, _midi.SystemEvent):
            if not event.known:
                _logging.warning(f"Unknown MIDI system command 0x{event.status:02x}.")
        elif isinstance(event, _midi.MetaEvent):
            _logging.warning(f"Unknown MIDI meta-event 0xff 0x{event.meta_type:02x}.")
        elif isinstance(event, _midi.EndOfTrackEvent):
            _logging.info("Reached MIDI end-of-track.")
            return False
        elif isinstance(event, _midi.StopEvent):
            _logging.info("Received real time stop message.")
            return False
        return True

    def _is_percussion_channel(self, channel: int) -> bool:
        return self.rhythm_mode and channel in PERCUSSION_VOICES

    def note_on(self, channel: int, note: int, velocity: int):
        midi_channel = self.midi_channels[channel]
        block, fnum = get_block_and_fnum(note, midi_channel.pitch_bend, self.transpose)
        if self._is_percussion_channel(channel):
            self._percussion_note_on(channel, note, velocity, block, fnum)
        else:
            self._melodic_note_on(channel, note, block, fnum)

    def _percussion_note_on(self, channel: int, note: int, velocity: int, block: int, fnum: int):
        voice = self.opl_channels[PERCUSSION_VOICES[channel]]
        # Always reload the instrument.  The channel's operators are shared between two rhythm instruments.
        self._bind_percussion_instrument(channel, self.midi_channels[channel].instrument)
        # Only the bass drum carrier is used for volume.  The other instruments have a single operator.
        operator = CARRIER if channel == BASS_DRUM_CHANNEL else MODULATOR
        reg = VOLUME_MSG + get_operator_offset(voice.number, operator)
        self._set_register(reg, (self.registers[reg] & ~OUTPUT_LEVEL_MASK) | get_percussion_level(velocity))
        self._set_register(FREQ_MSG + voice.number, fnum & 0xff)
        self._set_register(BLOCK_MSG + voice.number, (block << 2) | ((fnum >> 8) & 0x03))
        # Rhythm instruments can't play more than one note.  Retrigger.
        bit = get_rhythm_bit(channel)
        if self.registers[DRUM_MSG] & bit:
            self._set_register(DRUM_MSG, self.registers[DRUM_MSG] & ~bit)
        self._set_register(DRUM_MSG, self.registers[DRUM_MSG] | bit)
        self.note_count += 1
        voice.note_start = self.note_count
        voice.midi_channel = channel
        voice.note = note

    def _melodic_note_on(self, channel: int, note: int, block: int, fnum: int):
        playing = self._find_melodic_voice(channel, note)
        if playing:
            _logging.debug(f"Note {note} on MIDI channel {channel} is already playing on OPL channel "
                           f"{playing.number}.  Releasing it.")
            self._release_melodic_voice(playing)
        patch = self.midi_channels[channel].instrument
        voice = self._allocate_melodic_voice(patch)
        if voice.instrument != patch:
            self._bind_melodic_instrument(voice.number, channel, patch)
        self.note_count += 1
        voice.note_start = self.note_count
        voice.midi_channel = channel
        voice.note = note
        self._set_register(FREQ_MSG + voice.number, fnum & 0xff)
        self._set_register(BLOCK_MSG + voice.number, KEY_ON_MASK | (block << 2) | ((fnum & 0x300) >> 8))

    def _allocate_melodic_voice(self, patch: int) -> OplChannelInfo:
        """Finds an OPL channel for a new note.

        Free channels are searched from the top.  A free channel that already has the instrument loaded wins.
        When no channel is free, the channel with the oldest note is cut.
        """
        voices = self.opl_channels[0:self.melodic_voice_count]
        found = None
        for voice in reversed(voices):
            if voice.is_free:
                found = voice
                if voice.instrument == patch:
                    break
        if found is None:
            found = min(voices, key=lambda v: v.note_start)
            _logging.warning(f"Too many polyphonic notes.  Cutting note on OPL channel {found.number}.")
        return found

    def _find_melodic_voice(self, channel: int, note: int) -> _typing.Optional[OplChannelInfo]:
        return next((voice for voice in self.opl_channels[0:self.melodic_voice_count]
                     if voice.midi_channel == channel and voice.note == note and not voice.is_free), None)

    def _release_melodic_voice(self, voice: OplChannelInfo):
        voice.note_start = 0
        reg = BLOCK_MSG + voice.number
        self._set_register(reg, self.registers[reg] & ~KEY_ON_MASK)

    def note_off(self, channel: int, note: int):
        if self._is_percussion_channel(channel):
            voice = self.opl_channels[PERCUSSION_VOICES[channel]]
            if voice.note != note:
                # A different note is playing now.
                return
            self._set_register(DRUM_MSG, self.registers[DRUM_MSG] & ~get_rhythm_bit(channel))
            voice.note_start = 0
        else:
            voice = self._find_melodic_voice(channel, note)
            if voice is None:
                _logging.debug(f"Tried to turn off note {note} on MIDI channel {channel}, but it is not playing.")
                return
            self._release_melodic_voice(voice)

    def program_change(self, channel: int, program: int):
        if program >= _instruments.BANK_SIZE:
            _logging.warning(f"Invalid patch {program} on MIDI channel {channel}.  Using {program & 0x7f}.")
            program &= 0x7f
        self.midi_channels[channel].instrument = program
        _logging.debug(f"Remembering MIDI channel {channel} now uses patch {program}.")

    def _bind_melodic_instrument(self, voice: int, channel: int, patch: int):
        _logging.debug(f"OPL channel {voice} (MIDI channel {channel}) -> instrument {patch}.")
        for reg, value in self.instruments[patch].get_regs(voice):
            self._set_register(reg, value)
        self.opl_channels[voice].instrument = patch

    def _bind_percussion_instrument(self, channel: int, patch: int):
        voice = PERCUSSION_VOICES[channel]
        _logging.debug(f"OPL channel {voice} (MIDI channel {channel}) -> percussion instrument {patch}.")
        instrument = self.instruments[patch]
        for source, destination in PERCUSSION_OPERATORS[channel]:
            for reg, value in instrument.get_operator(source).get_regs(get_operator_offset(voice, destination)):
                self._set_register(reg, value)
        self._set_register(FEEDBACK_MSG + voice, instrument.connection)
        self.opl_channels[voice].instrument = patch

    def controller_change(self, channel: int, controller: int, value: int):
        handler = _CONTROLLER_HANDLERS.get(controller)
        if handler is None:
            _logging.warning(f"Unsupported MIDI controller 0x{controller:02x} on channel {channel}.  Ignoring.")
            return
        handler(self, value)

    @_controller_handler(_midi.ControllerType.AM_VIB_DEPTH)
    def _on_am_vib_depth(self, value: int):
        self._set_register(DRUM_MSG, (self.registers[DRUM_MSG] & ~PERCUSSION_MODE_DEPTH_MASK) | ((value & 3) << 6))
        _logging.info(f"AM+VIB depth change - "
                      f"AM {'on' if self.registers[DRUM_MSG] & PERCUSSION_MODE_TREMOLO_MASK else 'off'}, "
                      f"VIB {'on' if self.registers[DRUM_MSG] & PERCUSSION_MODE_VIBRATO_MASK else 'off'}")

    @_controller_handler(_midi.ControllerType.MARKER)
    def _on_marker(self, value: int):
        _logging.info(f"Song set marker to 0x{value:02x}.")

    @_controller_handler(_midi.ControllerType.RHYTHM_MODE)
    def _on_rhythm_mode(self, value: int):
        self.rhythm_mode = value != 0
        if self.rhythm_mode:
            self._set_register(DRUM_MSG, self.registers[DRUM_MSG] | PERCUSSION_MODE_PERCUSSION_MODE_MASK)
        else:
            self._set_register(DRUM_MSG, self.registers[DRUM_MSG] & ~PERCUSSION_MODE_PERCUSSION_MODE_MASK)
        _logging.info(f"Rhythm mode {'enabled' if self.rhythm_mode else 'disabled'}.")

    @_controller_handler(_midi.ControllerType.TRANSPOSE_UP)
    def _on_transpose_up(self, value: int):
        self.transpose = value
        _logging.info(f"Transposing all notes up by {value}/128ths of a semitone.")

    @_controller_handler(_midi.ControllerType.TRANSPOSE_DOWN)
    def _on_transpose_down(self, value: int):
        self.transpose = -value
        _logging.info(f"Transposing all notes down by {value}/128ths of a semitone.")

    def _set_register(self, reg: int, value: int):
        """Writes a register to the sink and records the value."""
        self.sink.write_register(reg, value)
        self.registers[reg] = value
