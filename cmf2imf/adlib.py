"""**Adlib Information**

This module contains fields and classes representing Adlib register values and instruments,
as well as the conversion from MIDI notes to OPL block/F-number pairs.
"""
import copy as _copy
import logging as _logging
import math as _math
import typing as _typing

OPL_CHANNELS = 9
RHYTHM_MODE_MELODIC_CHANNELS = 6

# OPERATORS
MODULATORS = [0, 1, 2, 8, 9, 10, 16, 17, 18]
CARRIERS = [m + 3 for m in MODULATORS]
MODULATOR = 0
CARRIER = 1

# REGISTERS
TEST_MSG = 0x1                  # Chip-wide
TIMER_1_COUNT_MSG = 0x2         # Chip-wide
TIMER_2_COUNT_MSG = 0x3         # Chip-wide
IRQ_RESET_MSG = 0x4             # Chip-wide
COMP_SINE_WAVE_MODE_MSG = 0x8   # Chip-wide
VIBRATO_MSG = 0x20              # Operator-based
VOLUME_MSG = 0x40               # Operator-based
ATTACK_DECAY_MSG = 0x60         # Operator-based
SUSTAIN_RELEASE_MSG = 0x80      # Operator-based
FREQ_MSG = 0xa0                 # Channel-based
BLOCK_MSG = 0xb0                # Channel-based
DRUM_MSG = 0xbd                 # Percussion mode: Tremolo / Vibrato / Percussion Mode / BD/SD/TT/CY/HH On
FEEDBACK_MSG = 0xc0             # Channel-based
WAVEFORM_SELECT_MSG = 0xe0      # Operator-based

# TEST_MSG bits
WAVEFORM_SELECT_ENABLE_MASK = 0x20

# BLOCK_MSG Bit Masks
KEY_ON_MASK = 0x20  # 0010 0000

# VOLUME_MSG Bit Masks
OUTPUT_LEVEL_MASK = 0x3f

MAX_BLOCK = 7
MAX_FNUM = 0x3ff

# PERCUSSION MODE
PERCUSSION_MODE_TREMOLO_MASK = 0b10000000
PERCUSSION_MODE_VIBRATO_MASK = 0b01000000
PERCUSSION_MODE_DEPTH_MASK = PERCUSSION_MODE_TREMOLO_MASK | PERCUSSION_MODE_VIBRATO_MASK
PERCUSSION_MODE_PERCUSSION_MODE_MASK = 0b00100000
PERCUSSION_MODE_BASS_DRUM_MASK = 0b00010000
PERCUSSION_MODE_SNARE_DRUM_MASK = 0b00001000
PERCUSSION_MODE_TOM_TOM_MASK = 0b00000100
PERCUSSION_MODE_CYMBAL_MASK = 0b00000010
PERCUSSION_MODE_HI_HAT_MASK = 0b00000001

# Pitch
PITCH_BEND_CENTER = 8192
TRANSPOSE_STEPS_PER_SEMITONE = 128


def get_operator_offset(channel: int, operator: int) -> int:
    """Returns the operator register offset for an OPL channel (0..8).  `operator` is MODULATOR or CARRIER."""
    return CARRIERS[channel] if operator == CARRIER else MODULATORS[channel]


def _create_bit_property(var_name: str, bits: int, shift: int):
    """Creates a property that is a bit-wise representation of a register.

    The property performs bitshifting and value range checks.
    """
    max_value = 2 ** bits - 1
    return property(
        fget=lambda self: (getattr(self, var_name) >> shift) & max_value,
        fset=lambda self, value: setattr(self, var_name,
                                         (getattr(self, var_name) & ~(max_value << shift))
                                         | (_check_range(value, max_value) << shift))
    )


class AdlibOperator(object):  # MUST inherit from object for properties to work.
    """Represents an adlib operator's register values."""

    def __init__(self, tvskm: int = 0, ksl_output: int = 0, attack_decay: int = 0, sustain_release: int = 0,
                 waveform_select: int = 0):
        self.tvskm = 0  # tvskffff = tremolo, vibrato, sustain, ksr, frequency multiplier
        self.ksl_output = 0  # kkoooooo = key scale level, output level
        self.attack_decay = 0  # aaaadddd = attack rate, decay rate
        self.sustain_release = 0  # ssssrrrr = sustain level, release rate
        self.waveform_select = 0  # -----www = waveform select
        self.set_regs(tvskm, ksl_output, attack_decay, sustain_release, waveform_select)

    # Bit-level properties.
    tremolo = _create_bit_property("tvskm", 1, 7)
    vibrato = _create_bit_property("tvskm", 1, 6)
    sustain = _create_bit_property("tvskm", 1, 5)
    ksr = _create_bit_property("tvskm", 1, 4)
    freq_mult = _create_bit_property("tvskm", 4, 0)
    key_scale_level = _create_bit_property("ksl_output", 2, 6)
    output_level = _create_bit_property("ksl_output", 6, 0)
    attack_rate = _create_bit_property("attack_decay", 4, 4)
    decay_rate = _create_bit_property("attack_decay", 4, 0)
    sustain_level = _create_bit_property("sustain_release", 4, 4)
    release_rate = _create_bit_property("sustain_release", 4, 0)

    def set_regs(self, tvskm: int, ksl_output: int, attack_decay: int, sustain_release: int,
                 waveform_select: int) -> None:
        """Sets all operator register values."""
        for name, value in (("tvskm", tvskm), ("ksl_output", ksl_output), ("attack_decay", attack_decay),
                            ("sustain_release", sustain_release), ("waveform_select", waveform_select)):
            setattr(self, name, _check_range(value, 0xff))

    def get_regs(self, offset: int) -> _typing.List[_typing.Tuple[int, int]]:
        """Returns the (register, value) pairs that load this operator into the given operator offset."""
        return [
            (VIBRATO_MSG + offset, self.tvskm),
            (VOLUME_MSG + offset, self.ksl_output),
            (ATTACK_DECAY_MSG + offset, self.attack_decay),
            (SUSTAIN_RELEASE_MSG + offset, self.sustain_release),
            (WAVEFORM_SELECT_MSG + offset, self.waveform_select),
        ]

    def __repr__(self):
        return str(self.__dict__)

    def __eq__(self, other):
        return isinstance(other, AdlibOperator) and self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self.__eq__(other)


class AdlibInstrument(object):
    """Represents a two-operator Adlib instrument as stored in a CMF file.

    The CMF (and SBI) layout interleaves the two operators register by register:
    modulator/carrier characteristic, scaling/output, attack/decay, sustain/release, wave select,
    and finally the shared feedback/connection byte.
    """
    DATA_SIZE = 11

    def __init__(self, modulator: AdlibOperator = None, carrier: AdlibOperator = None, connection: int = 0):
        self.modulator = modulator or AdlibOperator()
        self.carrier = carrier or AdlibOperator()
        self.connection = _check_range(connection, 0xff)  # ----fffc = feedback, connection

    @classmethod
    def from_bytes(cls, data: bytes) -> "AdlibInstrument":
        if len(data) < AdlibInstrument.DATA_SIZE:
            raise ValueError(f"Instrument data must be {AdlibInstrument.DATA_SIZE} bytes.  Got {len(data)}.")
        return cls(AdlibOperator(*data[0:10:2]), AdlibOperator(*data[1:10:2]), data[10])

    def to_bytes(self) -> bytes:
        data = bytearray()
        for name in ("tvskm", "ksl_output", "attack_decay", "sustain_release", "waveform_select"):
            data.append(getattr(self.modulator, name))
            data.append(getattr(self.carrier, name))
        data.append(self.connection)
        return bytes(data)

    def get_operator(self, operator: int) -> AdlibOperator:
        return self.carrier if operator == CARRIER else self.modulator

    def get_regs(self, channel: int) -> _typing.List[_typing.Tuple[int, int]]:
        """Returns the register writes that load both operators and the connection onto an OPL channel."""
        return (self.modulator.get_regs(MODULATORS[channel])
                + self.carrier.get_regs(CARRIERS[channel])
                + [(FEEDBACK_MSG + channel, self.connection)])

    def copy(self) -> "AdlibInstrument":
        return _copy.deepcopy(self)

    def __repr__(self):
        return str(self.__dict__)

    def __eq__(self, other):
        return isinstance(other, AdlibInstrument) and self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self.__eq__(other)


def _check_range(value: int, max_value: int):
    """Checks a value to verify that it is between 0 and maxvalue, inclusive."""
    if value is None:
        raise ValueError("Value is required.")
    if 0 <= value <= max_value:
        return value
    else:
        raise ValueError(f"Value should be between 0 and {max_value} inclusive. Got: {value}.")


def get_block_and_fnum(note: int, pitch_bend: int = PITCH_BEND_CENTER, transpose: int = 0) -> _typing.Tuple[int, int]:
    """Converts a MIDI note to an OPL (block, f-num) pair.

    The block is one octave lower than note // 12 for notes above the second octave, which matches
    Creative's CMF player.  Pitch bend covers one semitone either side of center, transpose is in
    1/128ths of a semitone.

    Creative's player divides the transpose amount by 128 using integer division, so controller values below 128
    never change its pitch.  Here the fraction is kept, so songs using controllers 0x68 and 0x69 can sound slightly
    different than they do in Creative's player.

    :param note: The MIDI note, 0..127.
    :param pitch_bend: The 14-bit MIDI pitch bend value.  8192 is center.
    :param transpose: The song transpose amount, in 1/128ths of a semitone.
    :return: A tuple of the block (0..7) and the 10-bit f-num.
    """
    block = note // 12
    if block > 1:
        block -= 1
    if block > MAX_BLOCK:
        _logging.warning(f"Note {note} is above the highest OPL block.  Using block {MAX_BLOCK}.")
        block = MAX_BLOCK
    semitones = (note
                 + (pitch_bend - PITCH_BEND_CENTER) / float(PITCH_BEND_CENTER)
                 + transpose / float(TRANSPOSE_STEPS_PER_SEMITONE))
    freq = 2 ** ((semitones - 9) / 12.0 - (block - 20)) * 440.0 / 32.0 / 50000.0
    fnum = int(_math.floor(freq + 0.5))
    if fnum > MAX_FNUM:
        _logging.warning(f"Note {note} is out of range (block {block}, f-num {fnum}).")
        fnum &= MAX_FNUM
    return block, fnum


def get_repr_adlib_reg(reg: int, value: int, delay: int):
    text = f"{delay:<5d}: {reg:#04x} <= {value:#04x} ({value:08b}): "

    def get_operator_str():
        r = reg % 0x20
        try:
            return f"ch {MODULATORS.index(r)} mod"
        except ValueError:
            try:
                return f"ch {CARRIERS.index(r)} car"
            except ValueError:
                return "no op"

    def get_channel_str():
        return f"ch {reg % 0x10}"

    def get_bits(shift: int, bit_count: int = 1):
        max_value = 2 ** bit_count - 1
        return (value >> shift) & max_value

    def get_on_off(bit: int, on_text="ON", off_text="OFF"):
        return on_text if get_bits(bit) else off_text

    if reg == 0 and value == 0:
        text += "Padding"
    elif reg == TEST_MSG:
        text += f"Test Register / Waveform Select: {get_on_off(5)}"
    elif reg == TIMER_1_COUNT_MSG:
        text += "Timer 1"
    elif reg == TIMER_2_COUNT_MSG:
        text += "Timer 2"
    elif reg == IRQ_RESET_MSG:
        text += "Timer Mask/Control / IRQ Reset"
    elif reg == COMP_SINE_WAVE_MODE_MSG:
        text += "CSM Mode / Keyboard Split"
    elif VIBRATO_MSG <= reg <= VIBRATO_MSG + 0x15:
        text += f"{get_operator_str()} - "
        text += f"AM: {get_on_off(7)}, Vibr: {get_on_off(6)}, Env: {get_on_off(5)}, " \
                f"KSR: {get_on_off(4)}, Freq Mult: {get_bits(0, 4)}"  # (avekffff)
    elif VOLUME_MSG <= reg <= VOLUME_MSG + 0x15:
        text += f"{get_operator_str()} - "
        text += f"Level: {get_bits(0, 6)}, KSL: {get_bits(6, 2)}"  # (kkoooooo)
    elif ATTACK_DECAY_MSG <= reg <= ATTACK_DECAY_MSG + 0x15:
        text += f"{get_operator_str()} - "
        text += f"Attack: {get_bits(4, 4)}, Decay: {get_bits(0, 4)}"  # (aaaadddd)
    elif SUSTAIN_RELEASE_MSG <= reg <= SUSTAIN_RELEASE_MSG + 0x15:
        text += f"{get_operator_str()} - "
        text += f"Sustain: {get_bits(4, 4)}, Release: {get_bits(0, 4)}"  # (ssssrrrr)
    elif FREQ_MSG <= reg <= FREQ_MSG + 0x08:
        text += f"{get_channel_str()} - "
        text += f"Freq: {value}"
    elif BLOCK_MSG <= reg <= BLOCK_MSG + 0x08:
        text += f"{get_channel_str()} - "
        text += f"Oct: {get_bits(2, 3)}, Freq (msb): {get_bits(0, 2)}, Key {get_on_off(5)}"  # (--koooff)
    elif reg == DRUM_MSG:
        text += f"{get_on_off(5, 'Percussion', 'Melodic')} mode, Trem: {get_bits(7)}, Vibr: {get_bits(6)}"
        text += "".join([get_on_off(4, ", BD", ""),
                         get_on_off(3, ", SD", ""),
                         get_on_off(2, ", TT", ""),
                         get_on_off(1, ", CY", ""),
                         get_on_off(0, ", HH", "")])  # (avrbstch)
    elif FEEDBACK_MSG <= reg <= FEEDBACK_MSG + 0x08:
        text += f"{get_channel_str()} - "
        text += f"Feedback: {get_bits(1, 3)}, {get_on_off(0, 'Additive', 'Freq Mod')} synthesis"  # (----fffc)
    elif WAVEFORM_SELECT_MSG <= reg <= WAVEFORM_SELECT_MSG + 0x15:
        text += f"{get_operator_str()} - "
        text += f"Waveform: {get_bits(0, 2)}"  # (------ww)
    else:
        text += "UNKNOWN"
    return text
