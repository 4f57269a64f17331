import io
import unittest
from cmf2imf import _binary
from cmf2imf.errors import CmfError, TruncatedInput


class VarLengthTest(unittest.TestCase):
    def test_single_byte_values(self):
        for value in [0, 1, 0x40, 0x7f]:
            with self.subTest(value=value):
                self.assertEqual(bytes([value]), _binary.encode_midi_var_length(value))
                self.assertEqual(value, _binary.read_midi_var_length(io.BytesIO(bytes([value]))))

    def test_128_uses_two_bytes(self):
        self.assertEqual(b"\x81\x00", _binary.encode_midi_var_length(128))
        self.assertEqual(128, _binary.read_midi_var_length(io.BytesIO(b"\x81\x00")))

    def test_maximum_value(self):
        fp = io.BytesIO(b"\xff\xff\xff\x7f")
        self.assertEqual(0x0fffffff, _binary.read_midi_var_length(fp))
        self.assertEqual(4, fp.tell())

    def test_stops_after_four_bytes(self):
        fp = io.BytesIO(b"\x81\x80\x80\x80\x05")
        self.assertEqual(0x200000, _binary.read_midi_var_length(fp))
        self.assertEqual(4, fp.tell())

    def test_leaves_following_data(self):
        fp = io.BytesIO(b"\x83\x60\x90")
        self.assertEqual(480, _binary.read_midi_var_length(fp))
        self.assertEqual(b"\x90", fp.read())

    def test_truncated(self):
        with self.assertRaises(TruncatedInput):
            _binary.read_midi_var_length(io.BytesIO(b"\x81"))

    def test_encode_out_of_range(self):
        with self.assertRaises(ValueError):
            _binary.encode_midi_var_length(0x10000000)


class ReadTest(unittest.TestCase):
    def test_u16le(self):
        self.assertEqual(0x0101, _binary.read_u16le(io.BytesIO(b"\x01\x01")))
        self.assertEqual(0x1234, _binary.u16le(b"\x34\x12"))

    def test_u8_from_int_and_bytes(self):
        self.assertEqual(0xfe, _binary.u8(b"\xfe"))
        self.assertEqual(0xfe, _binary.u8(0xfe))

    def test_short_read_raises(self):
        with self.assertRaises(TruncatedInput):
            _binary.read(io.BytesIO(b"\x00"), 2)

    def test_truncated_is_cmf_error(self):
        self.assertTrue(issubclass(TruncatedInput, CmfError))
        self.assertTrue(issubclass(TruncatedInput, ValueError))

    def test_cstring(self):
        fp = io.BytesIO(b"xxTitle\x00Other")
        self.assertEqual("Title", _binary.read_cstring(fp, 2))

    def test_cstring_without_terminator(self):
        fp = io.BytesIO(b"xxEnd")
        self.assertEqual("End", _binary.read_cstring(fp, 2))

    def test_cstring_offset_zero(self):
        self.assertIsNone(_binary.read_cstring(io.BytesIO(b"abc"), 0))


if __name__ == "__main__":
    unittest.main()
