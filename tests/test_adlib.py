import unittest
from cmfsamples import LoggingTestCase
from cmf2imf import adlib
from cmf2imf.adlib import AdlibInstrument, AdlibOperator


class FrequencyTest(LoggingTestCase):
    def test_middle_c(self):
        self.assertEqual((4, 343), adlib.get_block_and_fnum(60))

    def test_a440(self):
        self.assertEqual((4, 577), adlib.get_block_and_fnum(69))

    def test_low_blocks_are_not_shifted(self):
        self.assertEqual((0, 171), adlib.get_block_and_fnum(0))
        self.assertEqual((1, 171), adlib.get_block_and_fnum(12))
        self.assertEqual((1, 343), adlib.get_block_and_fnum(24))

    def test_pitch_bend(self):
        self.assertEqual((4, 363), adlib.get_block_and_fnum(60, pitch_bend=16383))
        self.assertEqual((4, 324), adlib.get_block_and_fnum(60, pitch_bend=0))
        self.assertEqual((4, 343), adlib.get_block_and_fnum(60, pitch_bend=8192))

    def test_transpose(self):
        self.assertEqual((4, 363), adlib.get_block_and_fnum(60, transpose=128))
        self.assertEqual((4, 324), adlib.get_block_and_fnum(60, transpose=-128))

    def test_small_transpose_is_not_truncated(self):
        self.assertNotEqual(adlib.get_block_and_fnum(60), adlib.get_block_and_fnum(60, transpose=64))

    def test_high_note_is_clamped(self):
        block, fnum = adlib.get_block_and_fnum(127)
        self.assertEqual(7, block)
        self.assertLessEqual(fnum, 0x3ff)
        self.assertLogged("WARNING", "highest OPL block")
        self.assertLogged("WARNING", "out of range")

    def test_in_range_notes_do_not_warn(self):
        for note in range(0, 96):
            block, fnum = adlib.get_block_and_fnum(note)
            self.assertLessEqual(block, 7)
            self.assertLessEqual(fnum, 0x3ff)
        self.assertNotLogged("WARNING")


class OperatorTest(unittest.TestCase):
    def test_operator_offsets(self):
        self.assertEqual([0, 1, 2, 8, 9, 10, 16, 17, 18], adlib.MODULATORS)
        self.assertEqual(0x13, adlib.get_operator_offset(6, adlib.CARRIER))
        self.assertEqual(0x11, adlib.get_operator_offset(7, adlib.MODULATOR))

    def test_bit_properties(self):
        op = AdlibOperator(0x31, 0x8f, 0xf2, 0x53, 0x01)
        self.assertEqual(0, op.tremolo)
        self.assertEqual(0, op.vibrato)
        self.assertEqual(1, op.sustain)
        self.assertEqual(1, op.ksr)
        self.assertEqual(1, op.freq_mult)
        self.assertEqual(2, op.key_scale_level)
        self.assertEqual(0x0f, op.output_level)
        self.assertEqual(0xf, op.attack_rate)
        self.assertEqual(2, op.decay_rate)
        self.assertEqual(5, op.sustain_level)
        self.assertEqual(3, op.release_rate)
        op.output_level = 0x3f
        self.assertEqual(0xbf, op.ksl_output)

    def test_range_check(self):
        op = AdlibOperator()
        with self.assertRaises(ValueError):
            op.freq_mult = 16
        with self.assertRaises(ValueError):
            AdlibOperator(0x100)

    def test_get_regs(self):
        op = AdlibOperator(0x01, 0x4f, 0xf1, 0x53, 0x00)
        self.assertEqual([(0x28, 0x01), (0x48, 0x4f), (0x68, 0xf1), (0x88, 0x53), (0xe8, 0x00)], op.get_regs(8))


class InstrumentTest(unittest.TestCase):
    DATA = bytes([0x01, 0x11, 0x4f, 0x00, 0xf1, 0xd2, 0x53, 0x74, 0x00, 0x01, 0x06])

    def test_from_bytes_interleaved(self):
        instrument = AdlibInstrument.from_bytes(InstrumentTest.DATA)
        self.assertEqual(AdlibOperator(0x01, 0x4f, 0xf1, 0x53, 0x00), instrument.modulator)
        self.assertEqual(AdlibOperator(0x11, 0x00, 0xd2, 0x74, 0x01), instrument.carrier)
        self.assertEqual(0x06, instrument.connection)

    def test_to_bytes(self):
        self.assertEqual(InstrumentTest.DATA, AdlibInstrument.from_bytes(InstrumentTest.DATA).to_bytes())

    def test_from_bytes_too_short(self):
        with self.assertRaises(ValueError):
            AdlibInstrument.from_bytes(b"\x00" * 10)

    def test_get_regs_order(self):
        instrument = AdlibInstrument.from_bytes(InstrumentTest.DATA)
        self.assertEqual([
            (0x21, 0x01), (0x41, 0x4f), (0x61, 0xf1), (0x81, 0x53), (0xe1, 0x00),
            (0x24, 0x11), (0x44, 0x00), (0x64, 0xd2), (0x84, 0x74), (0xe4, 0x01),
            (0xc1, 0x06),
        ], instrument.get_regs(1))

    def test_copy_is_independent(self):
        instrument = AdlibInstrument.from_bytes(InstrumentTest.DATA)
        copy = instrument.copy()
        self.assertEqual(instrument, copy)
        copy.carrier.output_level = 0x3f
        self.assertNotEqual(instrument, copy)


class ReprTest(unittest.TestCase):
    def test_padding(self):
        self.assertEqual("0    : 0x00 <= 0x00 (00000000): Padding", adlib.get_repr_adlib_reg(0, 0, 0))

    def test_key_on(self):
        text = adlib.get_repr_adlib_reg(0xb0, 0x31, 5)
        self.assertIn("ch 0", text)
        self.assertIn("Oct: 4", text)
        self.assertIn("Key ON", text)

    def test_rhythm(self):
        text = adlib.get_repr_adlib_reg(0xbd, 0xf0, 0)
        self.assertIn("Percussion mode", text)
        self.assertIn("BD", text)

    def test_operator(self):
        self.assertIn("ch 6 car", adlib.get_repr_adlib_reg(0x53, 0x00, 0))


if __name__ == "__main__":
    unittest.main()
