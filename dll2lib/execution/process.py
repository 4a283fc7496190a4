import subprocess

from loguru import logger

from dll2lib.execution.base import ToolFailedError, ToolRunner


class ProcessRunner(ToolRunner):
    """Runs a tool to completion and checks its exit code. Output is not captured."""

    def run(self, executable: str, arguments: list[str]) -> None:
        cmd = [executable, *arguments]
        logger.debug(f"Running: {subprocess.list2cmdline(cmd)}")

        proc = subprocess.run(cmd)
        if proc.returncode != 0:
            raise ToolFailedError(self.tool_name(executable), proc.returncode)
