import os

import pytest

from loguru import logger

from dll2lib import core, exports
from dll2lib.core import Options, StageError, convert_dll, intermediate
from dll2lib.execution.base import ToolFailedError, ToolRunner

from dumps import make_dump

ROWS = [
    "          1    0 00001000 Foo",
    "          2    1 00001010 DllGetClassObject",
]


class FakeRunner(ToolRunner):
    def __init__(self, dump_lines=None, fail=None):
        self.dump_lines = make_dump(ROWS) if dump_lines is None else dump_lines
        self.fail = fail or {}
        self.calls = []

    def run(self, executable, arguments):
        self.calls.append((executable, arguments))
        if executable in self.fail:
            raise ToolFailedError(executable, self.fail[executable])

        out = next(a[len("/out:"):] for a in arguments if a.startswith("/out:"))
        if executable == "dumpbin":
            with open(out, "w") as f:
                f.write("\n".join(self.dump_lines) + "\n")
        else:
            with open(out, "wb") as f:
                f.write(b"!<arch>\n")


@pytest.fixture
def located(monkeypatch):
    seen = []

    def find(name, x64=False):
        seen.append((name, x64))
        return name

    monkeypatch.setattr(core, "find_executable", find)
    return seen


@pytest.fixture
def dll(tmp_path):
    path = tmp_path / "foo.dll"
    path.write_bytes(b"MZ")
    return str(path)


def test_convert_cleans_up(dll, located, tmp_path):
    runner = FakeRunner()
    paths = convert_dll(dll, Options(clean=True, x64=False), runner)

    assert paths.library == str(tmp_path / "foo.lib")
    assert os.path.exists(paths.library)
    assert not os.path.exists(paths.dump)
    assert not os.path.exists(paths.definition)

    assert runner.calls == [
        ("dumpbin", [f"/out:{paths.dump}", "/exports", dll]),
        ("lib", ["/machine:arm", f"/def:{paths.definition}", f"/out:{paths.library}"]),
    ]


def test_noclean_keeps_intermediates(dll, located):
    paths = convert_dll(dll, Options(clean=False, x64=False), FakeRunner())

    assert os.path.exists(paths.dump)
    with open(paths.definition) as f:
        assert f.read().splitlines() == ["EXPORTS", "Foo", "DllGetClassObject PRIVATE"]


def test_x64_only_selects_dumpbin(dll, located):
    runner = FakeRunner()
    convert_dll(dll, Options(x64=True), runner)

    assert ("dumpbin", True) in located
    assert runner.calls[1][1][0] == "/machine:arm"


def test_dumpbin_failure(dll, located):
    runner = FakeRunner(fail={"dumpbin": 2})
    with pytest.raises(StageError) as exc_info:
        convert_dll(dll, Options(), runner)

    assert exc_info.value.stage == "RunDumpbin"
    assert str(exc_info.value) == "RunDumpbin: dumpbin failed with exit code 2"
    assert len(runner.calls) == 1


def test_bad_dump_removes_dump(dll, located):
    runner = FakeRunner(dump_lines=make_dump(ROWS, file_type="File Type: EXECUTABLE IMAGE"))
    with pytest.raises(StageError) as exc_info:
        convert_dll(dll, Options(clean=True), runner)

    paths = core.derive_paths(dll)
    assert exc_info.value.stage == "Dump2Def"
    assert "Unexpected file type" in str(exc_info.value)
    assert not os.path.exists(paths.dump)
    assert not os.path.exists(paths.definition)
    assert len(runner.calls) == 1


def test_bad_dump_noclean(dll, located):
    runner = FakeRunner(dump_lines=make_dump(ROWS, trailer=[""]))
    with pytest.raises(StageError):
        convert_dll(dll, Options(clean=False), runner)

    paths = core.derive_paths(dll)
    assert os.path.exists(paths.dump)
    assert not os.path.exists(paths.definition)


def test_lib_failure_removes_definition(dll, located):
    runner = FakeRunner(fail={"lib": 1})
    with pytest.raises(StageError) as exc_info:
        convert_dll(dll, Options(clean=True), runner)

    paths = core.derive_paths(dll)
    assert exc_info.value.stage == "RunLib"
    assert isinstance(exc_info.value.cause, ToolFailedError)
    assert not os.path.exists(paths.dump)
    assert not os.path.exists(paths.definition)


def test_intermediate_ignores_remove_errors(tmp_path, monkeypatch):
    path = tmp_path / "foo.dmp"
    path.write_text("x")

    def broken(p):
        raise PermissionError(p)

    monkeypatch.setattr(core.os, "remove", broken)
    with intermediate(str(path)):
        pass
    assert path.exists()


def test_intermediate_removes_on_error(tmp_path):
    path = tmp_path / "foo.def"
    path.write_text("x")

    with pytest.raises(RuntimeError):
        with intermediate(str(path)):
            raise RuntimeError("boom")
    assert not path.exists()


@pytest.mark.parametrize("verbose", [True, False])
def test_verbose_diagnostics(dll, located, verbose):
    messages = []
    sink = logger.add(messages.append, level="DEBUG", format="{message}")
    try:
        convert_dll(dll, Options(verbose=verbose), FakeRunner())
    finally:
        logger.remove(sink)

    progress = [m for m in messages if "File to process" in m or "processed successfully" in m]
    assert len(progress) == (2 if verbose else 0)


def test_definition_write_failure(dll, located, monkeypatch):
    def broken(path, listing):
        with open(path, "w") as f:
            f.write("EXPORTS\n")
        raise OSError("disk full")

    monkeypatch.setattr(exports, "write_definition", broken)
    with pytest.raises(StageError) as exc_info:
        convert_dll(dll, Options(clean=True), FakeRunner())

    paths = core.derive_paths(dll)
    assert exc_info.value.stage == "Dump2Def"
    assert not os.path.exists(paths.dump)
    assert not os.path.exists(paths.definition)
