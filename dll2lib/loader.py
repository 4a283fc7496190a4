import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from dll2lib.utils import strip_extension


@dataclass(frozen=True)
class OutputPaths:
    dump: str
    definition: str
    library: str


def derive_paths(dll_path: str) -> OutputPaths:
    stem = strip_extension(dll_path)
    return OutputPaths(dump=stem + ".dmp", definition=stem + ".def", library=stem + ".lib")


def read_dump_lines(path: str | Path) -> list[str]:
    path = Path(path)
    # dumpbin writes the ANSI code page; undecodable bytes become U+FFFD
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        lines = [line.rstrip("\n") for line in f]

    for lineno, line in enumerate(lines, 1):
        if "\ufffd" in line:
            logger.debug(f"'{path}' line {lineno}: non UTF-8 bytes replaced: {line.strip()!r}")
    return lines


def write_definition(path: str | Path, listing: list[str]) -> None:
    """
    Write ``listing`` one entry per line. The file only appears under
    ``path`` once it has been written completely.
    """
    path = Path(path)
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        # text mode turns "\n" into the platform line ending
        with open(fd, "w", encoding="utf-8") as f:
            for line in listing:
                f.write(line + "\n")
        os.replace(tmp, path)
    except BaseException:
        os.remove(tmp)
        raise


def read_definition(path: str | Path) -> list[str]:
    """Exported names from a .def file, PRIVATE qualifiers dropped."""
    path = Path(path)
    names = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line == "EXPORTS":
                continue
            names.append(line.split()[0])
    return names
