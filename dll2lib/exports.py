from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from dll2lib.loader import read_dump_lines, write_definition

EXPORTS_MARKER = "EXPORTS"
PRIVATE_QUALIFIER = "PRIVATE"
NONAME = "[NONAME]"
FILE_TYPE_DLL = "File Type: DLL"

HEADER_LINES = 3
INFO_LINES = 10

# Exports the linker refuses to put in an import library unless marked PRIVATE
PRIVATE_SYMBOLS = frozenset({
    "DllCanUnloadNow",
    "DllGetClassObject",
    "DllGetClassFactoryFromClassString",
    "DllGetDocumentation",
    "DllInitialize",
    "DllInstall",
    "DllRegisterServer",
    "DllRegisterServerEx",
    "DllRegisterServerExW",
    "DllUnload",
    "DllUnregisterServer",
    "RasCustomDeleteEntryNotify",
    "RasCustomDial",
    "RasCustomDialDlg",
    "RasCustomEntryDlg",
})


class ExportFormatError(ValueError):
    def __init__(self, message: str, lineno: Optional[int] = None):
        self.lineno = lineno
        if lineno is not None:
            message = f"{message} (line {lineno})"
        super().__init__(message)


class Section(Enum):
    HEADER = auto()
    FILE_TYPE = auto()
    INFO = auto()
    COLUMN_HEADER = auto()
    SEPARATOR = auto()
    ROWS = auto()
    TRAILER = auto()
    DONE = auto()


@dataclass
class ExportRecord:
    name: str
    ordinal: Optional[int] = None
    hint: Optional[str] = None
    rva: Optional[str] = None
    forwarder: Optional[str] = None

    @property
    def is_forwarded(self) -> bool:
        return self.forwarder is not None

    @property
    def has_name(self) -> bool:
        return self.name != NONAME

    @property
    def is_private(self) -> bool:
        return self.name in PRIVATE_SYMBOLS

    def definition_line(self) -> str:
        if self.is_private:
            return f"{self.name} {PRIVATE_QUALIFIER}"
        return self.name


def parse_export_row(line: str, lineno: Optional[int] = None) -> ExportRecord:
    """
    Parse one row of the export table.

    Rows look like ``ordinal hint RVA name`` with any of hint/RVA missing.
    A forwarded export ends with ``name (forwarded to MODULE.Symbol)``, so
    its name sits three tokens before the last one.

    :param line: Raw row text (no line terminator)
    :param lineno: Line number, used in error messages only
    :return: Parsed record
    """
    words = line.split(" ")
    index = len(words) - 1
    forwarded = words[index].endswith(")")
    if forwarded:
        index -= 3
        if index < 0:
            raise ExportFormatError(f"Unexpected input; malformed forwarder row: {line!r}", lineno)

    name = words[index]
    forwarder = None
    if forwarded:
        target = " ".join(words[index + 1:]).strip()
        forwarder = target[1:-1]
        if forwarder.startswith("forwarded to "):
            forwarder = forwarder[len("forwarded to "):]

    # ordinal/hint/RVA are separated by runs of spaces
    fields = " ".join(words[:index]).split()
    ordinal = int(fields[0]) if fields and fields[0].isdigit() else None
    rest = fields[1:] if ordinal is not None else fields
    hint = rva = None
    if len(rest) >= 2:
        hint, rva = rest[0], rest[1]
    elif len(rest) == 1:
        if forwarded:
            hint = rest[0]
        else:
            rva = rest[0]

    return ExportRecord(name=name, ordinal=ordinal, hint=hint, rva=rva, forwarder=forwarder)


class ExportListingParser:
    """
    Line-fed state machine over a ``dumpbin /exports`` report.

    Each section of the report is one state; a line that does not fit the
    current state raises ExportFormatError immediately.
    """

    def __init__(self):
        self.section = Section.HEADER
        self.records: list[ExportRecord] = []
        self.lineno = 0
        self._remaining = HEADER_LINES

    def feed(self, line: str) -> None:
        self.lineno += 1
        handler = getattr(self, f"_on_{self.section.name.lower()}")
        handler(line)

    def finish(self) -> list[ExportRecord]:
        if self.section is not Section.DONE:
            raise ExportFormatError(
                f"Unexpected end of file while reading {self.section.name.lower().replace('_', ' ')}"
            )
        return self.records

    def _on_header(self, line: str) -> None:
        self._remaining -= 1
        if self._remaining == 0:
            self.section = Section.FILE_TYPE

    def _on_file_type(self, line: str) -> None:
        value = line.strip()
        if value != FILE_TYPE_DLL:
            raise ExportFormatError(f"Unexpected file type: {value}", self.lineno)
        self._remaining = INFO_LINES
        self.section = Section.INFO

    def _on_info(self, line: str) -> None:
        self._remaining -= 1
        if self._remaining == 0:
            self.section = Section.COLUMN_HEADER

    def _on_column_header(self, line: str) -> None:
        if not line.lstrip().startswith("ordinal"):
            raise ExportFormatError("Unexpected input; expected 'ordinal'", self.lineno)
        self.section = Section.SEPARATOR

    def _on_separator(self, line: str) -> None:
        if line.strip():
            raise ExportFormatError("Unexpected input; expected empty line", self.lineno)
        self.section = Section.ROWS

    def _on_rows(self, line: str) -> None:
        # only a truly empty line ends the table
        if len(line) == 0:
            self.section = Section.TRAILER
            return
        self.records.append(parse_export_row(line, self.lineno))

    def _on_trailer(self, line: str) -> None:
        if not line.strip().startswith("Summary"):
            raise ExportFormatError("Unexpected input; expected 'Summary'", self.lineno)
        self.section = Section.DONE

    def _on_done(self, line: str) -> None:
        pass


def parse_export_listing(lines: Iterable[str]) -> list[ExportRecord]:
    parser = ExportListingParser()
    for line in lines:
        parser.feed(line)
        if parser.section is Section.DONE:
            break
    return parser.finish()


def build_definition(records: Iterable[ExportRecord]) -> list[str]:
    """Module-definition lines for ``records``, in input order."""
    listing = [EXPORTS_MARKER]
    for record in records:
        if not record.has_name:
            continue
        listing.append(record.definition_line())
    return listing


def translate_listing(lines: Iterable[str]) -> list[str]:
    return build_definition(parse_export_listing(lines))


def dump_to_def(dump_path: str | Path, def_path: str | Path) -> int:
    """
    Translate a dump file into a .def file.

    Nothing is written unless the whole dump parses.

    :return: Number of symbols written after the EXPORTS line
    """
    listing = translate_listing(read_dump_lines(dump_path))
    write_definition(def_path, listing)
    logger.debug(f"Wrote {len(listing) - 1} exports to '{def_path}'")
    return len(listing) - 1
