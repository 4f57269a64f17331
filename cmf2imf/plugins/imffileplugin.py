import logging as _logging
import struct as _struct
import typing as _typing
from cmf2imf.adlib import get_repr_adlib_reg
from cmf2imf.cmf import CmfFile
from cmf2imf.player import CmfPlayer, RegisterSink
from . import AdlibSongFile, FileTypeInfo, FileTypeSetting, plugin

_MAXIMUM_DELAY = 0xffff


class _ImfCommandRecorder(RegisterSink):
    """Records player output as IMF commands: (reg, value, delay).

    Each command's delay is the number of IMF ticks to wait *after* the command.  Millisecond delays are converted
    using the total elapsed time so that rounding errors don't accumulate.
    """

    def __init__(self, ticks: int):
        self.ticks = ticks
        self.commands = [(0, 0, 0)]  # type: _typing.List[_typing.Tuple[int, int, int]]  # Always start with 0, 0, 0
        self._total_milliseconds = 0
        self._total_ticks = 0

    def write_register(self, reg: int, value: int):
        assert 0 <= reg <= 0xff
        assert 0 <= value <= 0xff
        self.commands.append((reg, value, 0))

    def advance_clock(self, milliseconds: int):
        self._total_milliseconds += milliseconds
        ticks = self._total_milliseconds * self.ticks // 1000
        reg, value, delay = self.commands[-1]
        delay += ticks - self._total_ticks
        self._total_ticks = ticks
        # Delays that don't fit into 16 bits are spread across padding commands.
        while delay > _MAXIMUM_DELAY:
            self.commands[-1] = (reg, value, _MAXIMUM_DELAY)
            self.commands.append((0, 0, 0))
            reg, value = 0, 0
            delay -= _MAXIMUM_DELAY
        self.commands[-1] = (reg, value, delay)


@plugin
class ImfSong(AdlibSongFile):
    """Writes an IMF file.

    There are two IMF formats:

    * Type 0 format is older and does not start with a data length nor can it contain metadata.
      It is used in Bio Menace, Commander Keen, Cosmo's Cosmic Adventures, Monster Bash, Major Stryker, and
      Duke Nukem II.
      Typically these are played at 560 Hz except for Duke Nukem II, which plays them at 280 Hz.
    * Type 1 format starts with a 16-bit unsigned data length and can contain meta data after the song data.
      It is used in Wolfenstein 3-D, Blake Stone, Operation Body Count, Corridor 7, etc, and plays at 700 Hz.

    Type 1 files can have some unofficial tags.  These default to the CMF title, composer, and remarks.
    """
    _MAXIMUM_COMMAND_COUNT = 65535 // 4
    _TAG_BYTE = b"\x1a"
    _DEFAULT_PROGRAM = "cmf2imf"
    _DEFAULT_TICKS = {
        "imf0": 560,
        "imf0dn2": 280,
        "imf0wlf": 700,
        "imf1": 700,
    }

    def __init__(self, cmf_song: CmfFile, filetype: str = "imf1", title: str = None, composer: str = None,
                 remarks: str = None, program: str = None):
        super().__init__(cmf_song, filetype)
        self.ticks = ImfSong._DEFAULT_TICKS[filetype]
        if filetype == "imf1":
            self.title = title if title is not None else cmf_song.title
            self.composer = composer if composer is not None else cmf_song.composer
            self.remarks = remarks if remarks is not None else cmf_song.remarks
            self.program = program if program else ImfSong._DEFAULT_PROGRAM \
                if (self.title or self.composer or self.remarks) else None
        else:
            if title or composer or remarks or program:
                _logging.warning(f"The title, composer, remarks, and program settings are not used by type "
                                 f"'{filetype}'.")
            self.title = self.composer = self.remarks = self.program = None
        self._commands = []  # type: _typing.List[_typing.Tuple[int, int, int]]  # reg, value, delay

    @property
    def commands(self) -> _typing.List[_typing.Tuple[int, int, int]]:
        return self._commands

    @property
    def command_count(self):
        """Returns the number of commands."""
        return len(self._commands)

    @classmethod
    def _get_filetypes(cls) -> _typing.List[FileTypeInfo]:
        return [
            FileTypeInfo("imf0", "IMF Type 0 at 560 Hz (Bio Menace, Commander Keen, Cosmo's Cosmic Adventures, "
                                 "Monster Bash, Major Stryker)", "imf"),
            FileTypeInfo("imf0dn2", "IMF Type 0 at 280 Hz (Duke Nukem II)", "imf"),
            FileTypeInfo("imf0wlf", "IMF Type 0 at 700 Hz (Wolfenstein 3-D for DOS/4GW)", "wlf"),
            FileTypeInfo("imf1", "IMF Type 1 at 700 Hz (Wolfenstein 3-D, Blake Stone, Operation Body Count, "
                                 "Corridor 7)", "wlf"),
        ]

    @classmethod
    def _get_filetype_settings(cls, filetype) -> _typing.Optional[_typing.List[FileTypeSetting]]:
        if filetype == "imf1":
            return [
                FileTypeSetting("title", "The song title.  Limited to 255 characters.  "
                                         "Defaults to the CMF title."),
                FileTypeSetting("composer", "The song composer.  Limited to 255 characters.  "
                                            "Defaults to the CMF composer."),
                FileTypeSetting("remarks", "The song remarks.  Limited to 255 characters.  "
                                           "Defaults to the CMF remarks."),
                FileTypeSetting("program", "The program used to make the song.  Limited to 8 characters.  "
                                           f"Defaults to '{cls._DEFAULT_PROGRAM}' if title, composer, or remarks "
                                           f"are set."),
            ]
        return None

    def _save_file(self, fp, filename):
        command_count = self.command_count
        if command_count > ImfSong._MAXIMUM_COMMAND_COUNT:
            _logging.warning(f"IMF file overflow.  Total commands: {command_count}.  "
                             f"Maximum supported: {ImfSong._MAXIMUM_COMMAND_COUNT}")
        if self._filetype == "imf1":
            # IMF Type 1 is limited to a 2-byte unsigned data length.
            if command_count > ImfSong._MAXIMUM_COMMAND_COUNT:
                _logging.warning(f"Truncating commands list for '{self._filetype}'.")
                command_count = ImfSong._MAXIMUM_COMMAND_COUNT
            fp.write(_struct.pack("<H", command_count * 4))
        _logging.info(f"Writing {command_count} commands.")
        for command in self._commands[0:command_count]:
            fp.write(_struct.pack("<BBH", *command))
        # Add unofficial tag for type 1 files.
        if self._filetype == "imf1" and (self.title or self.composer or self.remarks or self.program):
            fp.write(ImfSong._TAG_BYTE)
            for text in (self.title, self.composer, self.remarks):
                if text:
                    fp.write(text.encode("ascii", errors="replace")[0:255])
                fp.write(b"\x00")
            # Padded to 8 bytes + 1 null terminator.
            fp.write(((self.program or "").encode("ascii", errors="replace") + b"\x00" * 8)[0:8])
            fp.write(b"\x00")

    @classmethod
    def _convert_from(cls, cmf_song: CmfFile, filetype: str, settings: _typing.Dict,
                      player_options: _typing.Dict) -> "ImfSong":
        song = cls(cmf_song, filetype, **settings)
        recorder = _ImfCommandRecorder(song.ticks)
        player = CmfPlayer(cmf_song.open(), recorder, **player_options)
        player.init()
        event_count = player.play()
        song._commands = recorder.commands
        _logging.info(f"Processed {event_count} events into {song.command_count} commands at {song.ticks} Hz.")
        return song

    def get_debug_info(self) -> _typing.List[str]:
        """Returns a description of each command."""
        return [get_repr_adlib_reg(*command) for command in self._commands]
