"""Command line tool to convert Creative Music Files (CMF) to IMF files."""
import argparse
import logging
import sys

_EXIT_LOAD_ERROR = 2
_EXIT_USAGE_ERROR = 1


class _ArgumentParser(argparse.ArgumentParser):
    """Exits with status 1 on usage errors."""
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(_EXIT_USAGE_ERROR, f"{self.prog}: error: {message}\n")


class FileTypeHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """For filetype help, don't show usage or the 'help' argument."""
    def add_usage(self, usage, actions, groups, prefix=None):
        pass

    def add_argument(self, action: argparse.Action) -> None:
        if action.dest != "help":
            super().add_argument(action)


# noinspection PyProtectedMember
class HelpFormatter(argparse.RawDescriptionHelpFormatter):
    """A combination of argparse.RawDescriptionHelpFormatter and ArgumentDefaultsHelpFormatter."""
    _get_help_string = argparse.ArgumentDefaultsHelpFormatter._get_help_string

    def add_argument(self, action):
        # noinspection PyUnresolvedReferences
        if isinstance(action, argparse._SubParsersAction):
            # List each file type with its settings.
            # noinspection PyUnresolvedReferences
            for choice_action in action._choices_actions:
                argparse.HelpFormatter.add_argument(self, choice_action)
                # noinspection PyUnresolvedReferences
                subparser = action.choices[choice_action.dest]
                formatter = subparser._get_formatter()
                formatter._indent()
                for action_group in subparser._action_groups:
                    formatter.start_section(action_group.title)
                    formatter.add_text(action_group.description)
                    formatter.add_arguments(action_group._group_actions)
                    formatter.end_section()
                formatter._dedent()
                self.add_text(formatter.format_help())
        else:
            argparse.HelpFormatter.add_argument(self, action)


def main(argv=None) -> int:
    logging_parser = _ArgumentParser(add_help=False)
    logging_parser.add_argument("-v", "--verbose", metavar="level", nargs="?", type=int, default=2, const=2,
                                choices=[1, 2, 3, 4], help="Logging verbosity.  1=DEBUG, 2=INFO, 3=WARNING, 4=ERROR")
    logging_parser.add_argument("-c", "--config", metavar="CONFIGFILE", type=str, default=None,
                                help="Settings file with conversion defaults.  (default: cmf2imf.json)")
    # Pre-parse to get the logger level and the settings file.
    args, _ = logging_parser.parse_known_args(argv)
    logging.basicConfig(format="%(levelname)s\t%(message)s")
    logging.getLogger().setLevel(args.verbose * 10)
    # These can be imported now that the logger level has been set.
    from cmf2imf.cmf import CmfFile
    from cmf2imf.plugins import AdlibSongFile, load_plugins
    from cmf2imf.settings import Settings
    load_plugins()
    settings = Settings(args.config)
    try:
        settings.load()
    except (ValueError, IOError, OSError) as ex:
        logging.error(f'Could not read settings file "{settings.filename}": {ex}')
        return _EXIT_USAGE_ERROR
    # noinspection PyTypeChecker
    parser = _ArgumentParser(description="A tool to convert Creative Music Files (CMF) to IMF files.",
                             formatter_class=HelpFormatter, parents=[logging_parser])
    parser.add_argument("infile", type=str, help="The input CMF file path.")
    parser.add_argument("-o", "--outfile", type=str, help="The output file.  "
                                                          "Defaults to the input file with the file type's extension.")
    parser.add_argument("--preset-rhythm-frequencies", action="store_true", default=None,
                        help="Give the rhythm channels a starting frequency.  Some songs need this for the hi-hat.")
    parser.add_argument("--preset-percussion-patches", action="store_true", default=None,
                        help="Load the last five song instruments onto the rhythm channels before playing.")
    parser.add_argument("--save-config", action="store_true",
                        help="Save the file type and preset options as the new defaults.")
    parser.add_argument("--debug-commands", action="store_true", help="Log every output command at DEBUG level.")
    # Add file types as subparsers
    subparsers = parser.add_subparsers(title="output file types", dest="type", metavar="filetype")
    for info in AdlibSongFile.get_filetypes():
        subparser = subparsers.add_parser(info.name, description=info.description, help=info.description,
                                          formatter_class=FileTypeHelpFormatter)
        group = subparser.add_argument_group("settings")
        for setting in AdlibSongFile.get_filetype_settings(info.name):
            group.add_argument(f"--{setting.name}", help=setting.description, **setting.kwargs)
    parser.set_defaults(type=settings.filetype)
    args = parser.parse_args(argv)
    # Process args
    if args.preset_rhythm_frequencies is not None:
        settings.preset_rhythm_frequencies = args.preset_rhythm_frequencies
    if args.preset_percussion_patches is not None:
        settings.preset_percussion_patches = args.preset_percussion_patches
    settings.filetype = args.type
    if args.save_config:
        settings.save()
        logging.info(f'Saved settings to "{settings.filename}".')
    filetype_settings = {}
    for setting in AdlibSongFile.get_filetype_settings(args.type):
        value = getattr(args, setting.name, None)
        if value is not None:
            filetype_settings[setting.name] = value
    try:
        cmf_song = CmfFile.load_file(args.infile)
        adlib_song = AdlibSongFile.convert_from(cmf_song, args.type, filetype_settings,
                                                **settings.get_player_options())
        if args.debug_commands:
            for line in adlib_song.get_debug_info():
                logging.debug(line)
        adlib_song.save_file(args.outfile)
    except (ValueError, IOError, OSError) as ex:
        logging.error(str(ex))
        return _EXIT_LOAD_ERROR
    return 0


if __name__ == "__main__":
    sys.exit(main())
