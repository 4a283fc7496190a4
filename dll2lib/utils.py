import ctypes
import sys

from loguru import logger

IS_64 = ctypes.sizeof(ctypes.c_void_p) == 8


def strip_extension(path: str) -> str:
    """Drop everything from the last '.' on; the whole string if there is none."""
    index = path.rfind(".")
    return path[:index] if index >= 0 else path


def configure_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(sys.stdout, level="DEBUG" if verbose else "INFO", format="{message}")
