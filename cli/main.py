import argparse
import os
import sys

from loguru import logger

from dll2lib.core import Options, StageError, convert_dll
from dll2lib.utils import IS_64, configure_logging

HELP_FLAGS = ("/help", "-help", "--help")
FLAGS = {"/noclean", "/x64", "/verbose", *HELP_FLAGS}


class UsageError(ValueError):
    pass


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="dll2lib",
        description="Create an import library (.lib) from a DLL's exports",
        prefix_chars="-/",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("/noclean", dest="clean", action="store_false", help="don't delete intermediate files")
    parser.add_argument("/x64", dest="x64", action="store_true", default=IS_64, help="use x64 version of dumpbin.exe")
    parser.add_argument("/verbose", action="store_true", help="produce some additional output")
    parser.add_argument(*HELP_FLAGS, dest="help", action="store_true", help="show this message")
    parser.add_argument("dll", nargs="*", help="DLL to process")
    return parser


def normalize_args(argv: list[str]) -> list[str]:
    """
    Lower-case known flags and move input paths behind ``--``.

    A token starting with '/' is a flag unless it names an existing file,
    so absolute POSIX paths still work as the input. Flags must match in
    full; argparse would otherwise accept prefixes such as /x for /x64.
    """
    flags, paths = [], []
    for arg in argv:
        lowered = arg.lower()
        if lowered in FLAGS:
            flags.append(lowered)
        elif arg.startswith("/") and not os.path.isfile(arg):
            raise UsageError(f"Unknown command line argument: {arg}")
        else:
            paths.append(arg)
    return flags + (["--", *paths] if paths else [])


def usage(parser: ArgumentParser, message: str = "") -> int:
    if message:
        print(message)
    parser.print_help(sys.stdout)
    return -1


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    configure_logging()

    if not argv:
        return usage(parser)

    try:
        args, unknown = parser.parse_known_args(normalize_args(argv))
    except UsageError as e:
        return usage(parser, str(e))

    if args.help:
        return usage(parser)
    if unknown:
        return usage(parser, f"Unknown command line argument: {unknown[0]}")

    dll_path = args.dll[-1] if args.dll else ""
    if not os.path.isfile(dll_path):
        print(f"Could not find input file {dll_path}")
        return -1

    configure_logging(args.verbose)
    options = Options(clean=args.clean, x64=args.x64, verbose=args.verbose)
    try:
        convert_dll(dll_path, options)
    except StageError as e:
        logger.error(str(e))
        return -1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
