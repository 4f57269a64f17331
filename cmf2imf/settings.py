import json
import logging as _logging
import os


class Settings:
    """Conversion defaults stored in a JSON file.  Command line arguments override these."""
    CONFIG_FILE = "cmf2imf.json"
    DEFAULT_FILETYPE = "imf1"

    def __init__(self, filename: str = None):
        self.filename = filename or Settings.CONFIG_FILE
        self.filetype = Settings.DEFAULT_FILETYPE
        self.preset_rhythm_frequencies = False
        self.preset_percussion_patches = False

    def load(self) -> bool:
        """Loads the settings file if it exists.  Returns True when a file was loaded."""
        if not os.path.exists(self.filename):
            return False
        with open(self.filename, "r") as f:
            self._fromdict(json.load(f))
        _logging.debug(f'Loaded settings from "{self.filename}".')
        return True

    def save(self):
        with open(self.filename, "w") as f:
            json.dump(self._todict(), f, indent=4, separators=(",", ": "))

    def _todict(self):
        settings = {
            "filetype": self.filetype,
            "preset_rhythm_frequencies": self.preset_rhythm_frequencies,
            "preset_percussion_patches": self.preset_percussion_patches,
        }
        return settings

    def _fromdict(self, settings):
        self.filetype = settings.get("filetype", Settings.DEFAULT_FILETYPE)
        self.preset_rhythm_frequencies = bool(settings.get("preset_rhythm_frequencies", False))
        self.preset_percussion_patches = bool(settings.get("preset_percussion_patches", False))

    def get_player_options(self):
        """Returns the keyword arguments for `CmfPlayer`."""
        return {
            "preset_rhythm_frequencies": self.preset_rhythm_frequencies,
            "preset_percussion_patches": self.preset_percussion_patches,
        }
