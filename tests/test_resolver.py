import os
import sys
from pathlib import Path

import pytest

from compdiff.resolver import (
    InterpretedScript,
    InterpreterNotFound,
    NativeExecutable,
    UnsupportedProgramType,
    build_invocation,
    resolve,
)


def test_script_is_bound_to_first_available_interpreter(tmp_path: Path) -> None:
    script = tmp_path / "solve.py"
    script.write_text("print(1)\n", encoding="utf-8")
    ref = resolve(script, {".py": ["compdiff-no-such-interpreter", sys.executable]})
    assert isinstance(ref.kind, InterpretedScript)
    assert Path(ref.kind.interpreter) == Path(sys.executable)
    assert ref.path == script.absolute()


def test_missing_interpreter_is_reported(tmp_path: Path) -> None:
    script = tmp_path / "solve.py"
    script.write_text("print(1)\n", encoding="utf-8")
    with pytest.raises(InterpreterNotFound) as excinfo:
        resolve(script, {".py": ["compdiff-no-such-interpreter"]})
    assert excinfo.value.failure_atom == "INTERPRETER_NOT_FOUND:.py"
    assert excinfo.value.candidates == ("compdiff-no-such-interpreter",)


def test_unknown_extension_is_unsupported(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("hello\n", encoding="utf-8")
    with pytest.raises(UnsupportedProgramType) as excinfo:
        resolve(notes)
    assert excinfo.value.extension == ".txt"
    assert excinfo.value.failure_atom == "UNSUPPORTED_PROGRAM_TYPE:.txt"
    assert "unsupported file type .txt" in str(excinfo.value)


@pytest.mark.parametrize("name", ["solution", "solution.exe", "SOLUTION.EXE"])
def test_native_conventions_run_directly(tmp_path: Path, name: str) -> None:
    binary = tmp_path / name
    binary.write_bytes(b"")
    ref = resolve(binary)
    assert ref.kind == NativeExecutable()
    invocation = build_invocation(ref, cwd=tmp_path)
    assert invocation.argv == (str(binary.absolute()),)
    assert invocation.executable == str(binary.absolute())


def test_script_invocation_passes_path_to_interpreter(tmp_path: Path) -> None:
    script = tmp_path / "solve.py"
    script.write_text("print(1)\n", encoding="utf-8")
    ref = resolve(script, {".py": [sys.executable]})
    invocation = build_invocation(ref, cwd=tmp_path)
    assert invocation.argv[1] == str(script.absolute())
    assert invocation.cwd == tmp_path
    assert invocation.label == str(script.absolute())


def test_invocation_defaults_to_current_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    ref = resolve(tmp_path / "solution")
    assert build_invocation(ref).cwd == Path(os.getcwd())


def test_resolution_never_spawns(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import subprocess

    def _forbidden(*args: object, **kwargs: object) -> None:
        raise AssertionError("resolve must not start processes")

    monkeypatch.setattr(subprocess, "Popen", _forbidden)
    script = tmp_path / "solve.py"
    script.write_text("print(1)\n", encoding="utf-8")
    resolve(script, {".py": [sys.executable]})
