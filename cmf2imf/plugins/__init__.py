import importlib as _importlib
import io as _io
import logging as _logging
import os as _os
import typing as _typing
from cmf2imf.cmf import CmfFile as _CmfFile


_PLUGIN_TYPES = []  # List of plugin type classes.


def _plugin_type(cls):
    """Plugin type decorator.  Registers a class as a plugin type.

    This adds a _PLUGINS list to the class definition.   As plugins are registered, they are added to this list.
    """
    _logging.debug(f"Registering plugin type: {cls.__name__}")
    cls._PLUGINS = []
    _PLUGIN_TYPES.append(cls)
    return cls


def plugin(cls):
    """Plugin decorator.  Registers a class as a plugin."""
    _logging.debug(f"Registering plugin: {cls.__name__}")
    plugin_type = next((c for c in _PLUGIN_TYPES if issubclass(cls, c)), None)
    if not plugin_type:
        raise ValueError(f"Unrecognized plugin type.  Valid types: {_PLUGIN_TYPES}")

    def validate_name(n):
        invalid_chars = [c for c in n if not c.isalnum()]
        if invalid_chars:
            raise ValueError(f"Text must be alphanumeric only.  Invalid characters: {invalid_chars}")

    # A rejected plugin leaves the registry unchanged.
    entries = []
    for filetype in cls._get_filetypes():
        # filetypes can only be alphanumeric.
        validate_name(filetype.name)
        # filetypes must be unique across all plugins
        # noinspection PyProtectedMember
        current_filetype_class = next((c.cls for c in plugin_type._FILETYPES + entries
                                       if c.info.name == filetype.name), None)
        if current_filetype_class:
            raise ValueError(f"A plugin for filetype {filetype.name} already exists.  "
                             f"Existing: {current_filetype_class.__name__}, "
                             f"Current: {cls.__name__}")
        for setting in cls._get_filetype_settings(filetype.name) or []:
            validate_name(setting.name)
        entries.append(_FileTypeEntry(cls, filetype))
    # noinspection PyProtectedMember
    plugin_type._PLUGINS.append(cls)
    for entry in entries:
        _logging.debug(f"Registering filetype: {entry.info.name} -> {cls.__name__}")
        # noinspection PyProtectedMember
        plugin_type._FILETYPES.append(entry)
    return cls


class FileTypeInfo(_typing.NamedTuple):
    """Represents a file type that music can be converted to.
    Each file type's `name` must be unique.

    **arguments**: name, description, default_extension
    """
    name: str
    description: str
    default_extension: str


class FileTypeSetting(_typing.NamedTuple):
    """Represents a user-modifiable setting for a file type.

    **arguments**: name, description, [kwargs]

    `kwargs` are the keyword arguments passed into `argparser`.
    """
    name: str
    description: str
    kwargs: _typing.Dict[str, _typing.Any] = {}


class _FileTypeEntry(_typing.NamedTuple):
    cls: _typing.Type["AdlibSongFile"]
    info: FileTypeInfo


@_plugin_type
class AdlibSongFile:
    """The base class from which all song converter plugin classes should inherit.

    Converters run a `cmf2imf.player.CmfPlayer` over the CMF song and record the register writes it makes.
    """

    _FILETYPES = []  # type: _typing.List[_FileTypeEntry]

    def __init__(self, cmf_song: _CmfFile, filetype: str):
        self._default_outfile = _os.path.splitext(cmf_song.file)[0] if cmf_song.file else None
        self._filetype = filetype

    @property
    def filetype(self) -> str:
        return self._filetype

    @classmethod
    def _get_filetypes(cls) -> _typing.List["FileTypeInfo"]:
        """A list of FileTypeInfo instances representing valid filetypes for the class.
        File type names must be unique among ALL AdlibSongFile plugins.
        """
        raise NotImplementedError()

    @classmethod
    def _get_filetype_settings(cls, filetype) -> _typing.Optional[_typing.List["FileTypeSetting"]]:
        """A list of FileTypeSettings for the given filetype name."""
        raise NotImplementedError()

    def _save_file(self, fp, filename):
        """Saves the song data to the given file object.

        :param fp: A file object opened with "wb" mode.
        :param filename: The filename.
        """
        raise NotImplementedError()

    @classmethod
    def _convert_from(cls, cmf_song: _CmfFile, filetype: str, settings: _typing.Dict,
                      player_options: _typing.Dict) -> "AdlibSongFile":
        """Converts a CMF song to the given file type.

        :param cmf_song: The CMF song to convert from.
        :param filetype: The file type to convert the events to.
        :param settings: Any additional settings for the conversion.
        :param player_options: Keyword arguments for `CmfPlayer`.
        :exception ValueError: When the given data is not valid.
        """
        raise NotImplementedError()

    def save_file(self, filename: str = None) -> str:
        """Saves the file data to the given filename.  Returns the filename used."""
        if not filename:
            filename = self._default_outfile
        if not filename:
            raise ValueError("An output filename is required.")
        filename, ext = _os.path.splitext(filename)
        if not ext:
            ext = AdlibSongFile.get_default_extension(self._filetype)
        filename = f"{filename}{ext}"
        with open(filename, "wb") as fp:
            self._save_file(fp, filename)
            _logging.info(f'Converted music saved as "{filename}".')
        return filename

    def to_bytes(self) -> bytes:
        """Returns the file data that `save_file` would write."""
        with _io.BytesIO() as fp:
            self._save_file(fp, None)
            return fp.getvalue()

    @classmethod
    def convert_from(cls, cmf_song: _CmfFile, filetype: str, settings: _typing.Dict = None,
                     **player_options) -> "AdlibSongFile":
        """Converts a CMF song to the given file type.

        Implementing classes must override `_convert_from`.

        :param cmf_song: The CMF song to convert from.
        :param filetype: The file type to convert the events to.
        :param settings: Any additional settings for the conversion.
        :param player_options: Keyword arguments for `CmfPlayer`, ie: preset_rhythm_frequencies.
        :exception ValueError: When the given data is not valid.
        """
        settings = settings or {}
        filetype_class = cls.get_filetype_class(filetype)
        valid_settings = [s.name for s in filetype_class._get_filetype_settings(filetype) or []]
        for setting in settings:
            if setting not in valid_settings:
                raise ValueError(f"Unexpected setting: {setting}.  Valid settings are: {', '.join(valid_settings)}")
        return filetype_class._convert_from(cmf_song, filetype, settings, player_options)

    @classmethod
    def get_filetypes(cls) -> _typing.List["FileTypeInfo"]:
        return [c.info for c in cls._FILETYPES]

    @classmethod
    def _get_filetype_entry(cls, filetype) -> _typing.Optional[_FileTypeEntry]:
        return next((entry for entry in cls._FILETYPES if entry.info.name == filetype), None)

    @classmethod
    def get_filetype_class(cls, filetype: str) -> _typing.Type["AdlibSongFile"]:
        entry = cls._get_filetype_entry(filetype)
        if not entry:
            raise ValueError(f"Could not find a song converter for the given file type: {filetype}")
        return entry.cls

    @classmethod
    def get_filetype_settings(cls, filetype) -> _typing.List["FileTypeSetting"]:
        return cls.get_filetype_class(filetype)._get_filetype_settings(filetype) or []

    @classmethod
    def get_default_extension(cls, filetype: str) -> _typing.Optional[str]:
        ext = cls._get_filetype_entry(filetype).info.default_extension
        return ext if ext.startswith(".") else f".{ext}"


def load_plugins():
    """Loads the plugin modules in this package.  Plugin module names end with "fileplugin.py"."""
    dirname = _os.path.dirname(__file__)
    plugins = [f[0:-3] for f in sorted(_os.listdir(dirname))
               if _os.path.isfile(_os.path.join(dirname, f)) and f.lower().endswith("fileplugin.py")]
    for p in plugins:
        _importlib.import_module(f"{__name__}.{p}")
