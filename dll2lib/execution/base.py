from abc import ABC, abstractmethod


class ToolFailedError(RuntimeError):
    def __init__(self, tool: str, exit_code: int):
        self.tool = tool
        self.exit_code = exit_code
        super().__init__(f"{tool} failed with exit code {exit_code}")


class ToolRunner(ABC):
    # Interface
    @abstractmethod
    def run(self, executable: str, arguments: list[str]) -> None: ...

    # Shared
    def tool_name(self, executable: str) -> str:
        name = executable.replace("\\", "/").rsplit("/", 1)[-1]
        return name[:-4] if name.lower().endswith(".exe") else name
