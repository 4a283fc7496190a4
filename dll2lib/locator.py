import ctypes
import os
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from dll2lib.utils import IS_64

VENDOR_DIR = os.path.join("Program Files (x86)", "Microsoft Visual Studio")
DRIVE_FIXED = 3


def fixed_drive_roots() -> list[str]:
    """Root directories of the fixed (non-removable, non-network) drives."""
    if os.name != "nt":
        return []

    kernel32 = ctypes.windll.kernel32
    buf = ctypes.create_unicode_buffer(512)
    size = kernel32.GetLogicalDriveStringsW(len(buf), buf)
    drives = buf[:size].split("\x00")
    return [d for d in drives if d and kernel32.GetDriveTypeW(d) == DRIVE_FIXED]


def _raise(err: OSError):
    raise err


def search_vendor_dir(root: str, filename: str, marker: str, vendor_dir: str = VENDOR_DIR) -> Optional[str]:
    base = os.path.join(root, vendor_dir)
    if not os.path.isdir(base):
        return None

    for dirpath, _, files in os.walk(base, onerror=_raise):
        if filename not in files:
            continue
        if dirpath.find(marker) > 0:
            return os.path.join(dirpath, filename)
    return None


def find_executable(
    name: str,
    x64: bool = IS_64,
    search_path: Optional[str] = None,
    roots: Optional[Iterable[str]] = None,
    vendor_dir: str = VENDOR_DIR,
) -> str:
    """
    Resolve a tool name to something that can be launched.

    :param name: Executable name without the .exe suffix
    :param x64: Prefer the x64 build when scanning the install tree
    :param search_path: PATH-like string, defaults to the PATH environment variable
    :param roots: Drive roots to scan, defaults to the fixed drives
    :param vendor_dir: Install tree searched below each root
    :return: ``name`` if it is on PATH, the full path found on disk, or ``name`` as a last resort
    """
    filename = name + ".exe"
    if search_path is None:
        search_path = os.environ.get("PATH", "")

    for entry in search_path.split(os.pathsep):
        if entry and os.path.isdir(entry) and Path(entry, filename).is_file():
            logger.debug(f"{name} found in PATH at: '{entry}'")
            return name

    logger.debug(f"No {name} present in PATH - trying '{vendor_dir}'")
    marker = os.sep + ("x64" if x64 else "x86")
    try:
        for root in (fixed_drive_roots() if roots is None else roots):
            found = search_vendor_dir(root, filename, marker, vendor_dir)
            if found:
                logger.debug(f"{name} detected at: '{os.path.dirname(found)}'")
                return found
    except OSError as e:
        logger.warning(f"Unable to find {name} on local drives: {e}")

    return name
