import io
import unittest
from cmfsamples import LoggingTestCase, END_OF_TRACK, note_on, pitch_bend
from cmf2imf import midi
from cmf2imf.errors import CorruptStream
from cmf2imf.reader import MidiEventReader, midi_ticks_to_milliseconds


def _read_all(data: bytes):
    return list(MidiEventReader(io.BytesIO(data)))


class ReaderTest(LoggingTestCase):
    def test_end_of_track(self):
        self.assertEqual([midi.EndOfTrackEvent(0)], _read_all(END_OF_TRACK))

    def test_note_on_and_off(self):
        events = _read_all(note_on(2, 60, 100, delta=5) + b"\x00\x82\x3c\x40" + END_OF_TRACK)
        self.assertEqual(midi.NoteEvent(5, midi.EventType.NOTE_ON, 2, 60, 100), events[0])
        self.assertEqual(midi.NoteEvent(0, midi.EventType.NOTE_OFF, 2, 60, 0x40), events[1])

    def test_note_on_with_zero_velocity_is_note_off(self):
        events = _read_all(note_on(0, 60, 0) + END_OF_TRACK)
        self.assertEqual(midi.EventType.NOTE_OFF, events[0].event_type)

    def test_running_status(self):
        events = _read_all(b"\x00\x91\x3c\x7f" + b"\x10\x3e\x7f" + b"\x00\x3c\x00" + END_OF_TRACK)
        self.assertEqual(midi.NoteEvent(0x10, midi.EventType.NOTE_ON, 1, 0x3e, 0x7f), events[1])
        self.assertEqual(midi.NoteEvent(0, midi.EventType.NOTE_OFF, 1, 0x3c, 0), events[2])

    def test_running_status_without_status(self):
        reader = MidiEventReader(io.BytesIO(b"\x00\x3c\x7f"))
        with self.assertRaises(CorruptStream):
            reader.read_event()

    def test_controller_and_program(self):
        events = _read_all(b"\x00\xb3\x67\x01" + b"\x00\xc3\x05" + END_OF_TRACK)
        self.assertEqual(midi.ControllerChangeEvent(0, 3, 0x67, 1), events[0])
        self.assertEqual(midi.ProgramChangeEvent(0, 3, 5), events[1])

    def test_pitch_bend(self):
        events = _read_all(pitch_bend(4, 0x2345) + b"\x00\xe0\xff\xff" + END_OF_TRACK)
        self.assertEqual(midi.PitchBendEvent(0, 4, 0x2345), events[0])
        # Only the lower seven bits of each byte are used.
        self.assertEqual(16383, events[1].amount)

    def test_pressure(self):
        events = _read_all(b"\x00\xa1\x3c\x10" + b"\x00\xd1\x20" + END_OF_TRACK)
        self.assertEqual(midi.PressureEvent(0, midi.EventType.POLYPHONIC_KEY_PRESSURE, 1, 0x3c, 0x10), events[0])
        self.assertEqual(midi.PressureEvent(0, midi.EventType.CHANNEL_KEY_PRESSURE, 1, None, 0x20), events[1])

    def test_sysex_includes_terminator(self):
        events = _read_all(b"\x00\xf0\x43\x10\x4c\xf7" + END_OF_TRACK)
        self.assertEqual(midi.SysexEvent(0, b"\x43\x10\x4c\xf7"), events[0])
        self.assertIsInstance(events[1], midi.EndOfTrackEvent)

    def test_system_messages_skip_data(self):
        events = _read_all(b"\x00\xf1\x01" + b"\x00\xf2\x01\x02" + b"\x00\xf3\x01" + b"\x00\xf8" + END_OF_TRACK)
        self.assertEqual([0xf1, 0xf2, 0xf3, 0xf8], [e.status for e in events[0:4]])
        self.assertTrue(all(e.known for e in events[0:4]))
        self.assertIsInstance(events[4], midi.EndOfTrackEvent)
        self.assertLogged("WARNING", "Song Select")

    def test_unknown_system_message(self):
        events = _read_all(b"\x00\xf4" + END_OF_TRACK)
        self.assertEqual(midi.SystemEvent(0, 0xf4, False), events[0])

    def test_unknown_meta_event_reads_no_length(self):
        events = _read_all(b"\x00\xff\x51" + END_OF_TRACK)
        self.assertEqual(midi.MetaEvent(0, 0x51), events[0])
        self.assertIsInstance(events[1], midi.EndOfTrackEvent)

    def test_stop(self):
        events = _read_all(b"\x05\xfc" + note_on(0, 60))
        self.assertEqual([midi.StopEvent(5)], events)

    def test_truncated_event(self):
        reader = MidiEventReader(io.BytesIO(b"\x00\x90\x3c"))
        with self.assertRaises(CorruptStream):
            reader.read_event()

    def test_delta_read_separately(self):
        reader = MidiEventReader(io.BytesIO(note_on(3, 60, delta=200) + b"\x3c\x90"))
        delta = reader.read_delta()
        self.assertEqual(200, delta)
        self.assertEqual(midi.NoteEvent(200, midi.EventType.NOTE_ON, 3, 60, 0x7f), reader.read_event(delta))
        self.assertEqual(0x3c, reader.read_delta())
        with self.assertRaises(CorruptStream):
            reader.read_event(0x3c)

    def test_end_of_data(self):
        reader = MidiEventReader(io.BytesIO(note_on(0, 60)))
        reader.read_event()
        with self.assertRaises(CorruptStream):
            reader.read_event()


class TimingTest(unittest.TestCase):
    def test_milliseconds(self):
        self.assertEqual(500, midi_ticks_to_milliseconds(60, 120))
        self.assertEqual(0, midi_ticks_to_milliseconds(0, 120))

    def test_rounds_down(self):
        self.assertEqual(333, midi_ticks_to_milliseconds(1, 3))


if __name__ == "__main__":
    unittest.main()
