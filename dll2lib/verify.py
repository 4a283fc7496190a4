from dataclasses import dataclass, field
from pathlib import Path

import pefile

from dll2lib.loader import read_definition


@dataclass
class ExportComparison:
    missing: list[str] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.extra


def pe_export_names(dll_path: str | Path) -> list[str]:
    pe = pefile.PE(str(dll_path), fast_load=True)
    pe.parse_data_directories(directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_EXPORT"]])

    if not hasattr(pe, "DIRECTORY_ENTRY_EXPORT"):
        return []

    names = []
    for exp in pe.DIRECTORY_ENTRY_EXPORT.symbols:
        if exp.name:
            names.append(exp.name.decode("utf-8"))
    return names


def compare_exports(definition: list[str], exported: list[str]) -> ExportComparison:
    """
    :param definition: Names declared in the .def file
    :param exported: Named exports of the DLL
    :return: Exports absent from the .def, and .def names the DLL does not export
    """
    declared = set(definition)
    available = set(exported)
    return ExportComparison(
        missing=[n for n in exported if n not in declared],
        extra=[n for n in definition if n not in available],
    )


def check_definition(def_path: str | Path, dll_path: str | Path) -> ExportComparison:
    return compare_exports(read_definition(def_path), pe_export_names(dll_path))
