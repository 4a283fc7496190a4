import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from dll2lib.exports import dump_to_def
from dll2lib.loader import OutputPaths, derive_paths
from dll2lib.locator import find_executable
from dll2lib.utils import IS_64

from dll2lib.execution.base import ToolRunner
from dll2lib.execution.process import ProcessRunner

DUMP_TOOL = "dumpbin"
ARCHIVE_TOOL = "lib"
# lib.exe always targets this machine; /x64 only picks the dumpbin build
ARCHIVE_MACHINE = "arm"


@dataclass
class Options:
	clean: bool = True
	x64: bool = IS_64
	verbose: bool = False


class StageError(RuntimeError):
	def __init__(self, stage: str, cause: BaseException):
		self.stage = stage
		self.cause = cause
		super().__init__(f"{stage}: {cause}")


def dumpbin_arguments(dll_path: str, dump_path: str) -> list[str]:
	return [f"/out:{dump_path}", "/exports", dll_path]


def lib_arguments(def_path: str, lib_path: str) -> list[str]:
	return [f"/machine:{ARCHIVE_MACHINE}", f"/def:{def_path}", f"/out:{lib_path}"]


def run_dumpbin(runner: ToolRunner, dll_path: str, dump_path: str, x64: bool = IS_64) -> None:
	runner.run(find_executable(DUMP_TOOL, x64=x64), dumpbin_arguments(dll_path, dump_path))


def run_lib(runner: ToolRunner, def_path: str, lib_path: str, x64: bool = IS_64) -> None:
	runner.run(find_executable(ARCHIVE_TOOL, x64=x64), lib_arguments(def_path, lib_path))


def discard(path: str, clean: bool = True) -> None:
	if clean and os.path.exists(path):
		try:
			os.remove(path)
		except OSError as e:
			logger.debug(f"Could not remove '{path}': {e}")


@contextmanager
def intermediate(path: str, clean: bool = True):
	"""
	Scope an intermediate file: it is removed on exit, whether the body
	raised or not, when ``clean`` is set. Removal failures are ignored.
	"""
	try:
		yield path
	finally:
		discard(path, clean)


def convert_dll(dll_path: str, options: Optional[Options] = None, runner: Optional[ToolRunner] = None) -> OutputPaths:
	"""
	Build an import library for a DLL.

	:param dll_path: Input DLL
	:param options: Cleanup / dumpbin flavour / verbosity
	:param runner: Tool runner, a ProcessRunner unless given
	:return: Paths of the dump, definition and library files
	:raises StageError: When any of RunDumpbin, Dump2Def or RunLib fails
	"""

	options = options or Options()
	runner = runner or ProcessRunner()
	paths = derive_paths(dll_path)

	if options.verbose:
		logger.debug(f"Use '{'x64' if options.x64 else 'x86'}' dumpbin.exe")
		logger.debug(f"File to process: '{dll_path}'")

	try:
		run_dumpbin(runner, dll_path, paths.dump, options.x64)
	except Exception as e:
		raise StageError("RunDumpbin", e) from e

	with intermediate(paths.dump, options.clean):
		try:
			dump_to_def(paths.dump, paths.definition)
		except Exception as e:
			# a half-written .def is never handed to lib
			discard(paths.definition, options.clean)
			raise StageError("Dump2Def", e) from e

	with intermediate(paths.definition, options.clean):
		try:
			run_lib(runner, paths.definition, paths.library, options.x64)
		except Exception as e:
			raise StageError("RunLib", e) from e

	if options.verbose:
		logger.debug(f"File '{dll_path}' processed successfully")
	return paths
