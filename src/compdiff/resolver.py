from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

DEFAULT_INTERPRETERS: Dict[str, Tuple[str, ...]] = {
    ".py": ("python", "python3"),
    ".sh": ("bash", "sh"),
    ".js": ("node", "nodejs"),
    ".rb": ("ruby",),
}
DEFAULT_NATIVE_EXTENSIONS: Tuple[str, ...] = ("", ".exe")


class ResolutionError(Exception):
    def __init__(self, failure_atom: str, message: str) -> None:
        super().__init__(message)
        self.failure_atom = failure_atom


class UnsupportedProgramType(ResolutionError):
    def __init__(self, path: Path, extension: str) -> None:
        super().__init__(
            f"UNSUPPORTED_PROGRAM_TYPE:{extension}",
            f"unsupported file type {extension} ({path})",
        )
        self.path = path
        self.extension = extension


class InterpreterNotFound(ResolutionError):
    def __init__(self, path: Path, extension: str, candidates: Sequence[str]) -> None:
        super().__init__(
            f"INTERPRETER_NOT_FOUND:{extension}",
            f"cannot find an interpreter for {path} (tried: {', '.join(candidates)})",
        )
        self.path = path
        self.extension = extension
        self.candidates = tuple(candidates)


@dataclass(frozen=True)
class NativeExecutable:
    pass


@dataclass(frozen=True)
class InterpretedScript:
    interpreter: str


ProgramKind = Union[NativeExecutable, InterpretedScript]


@dataclass(frozen=True)
class ProgramRef:
    path: Path
    kind: ProgramKind

    @property
    def label(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class Invocation:
    executable: str
    argv: Tuple[str, ...]
    cwd: Path
    label: str = field(default="")


def _find_interpreter(candidates: Iterable[str]) -> Optional[str]:
    for name in candidates:
        found = shutil.which(name)
        if found:
            return found
    return None


def _normalize_path(path: Path) -> Path:
    # Bare names without a directory part are left for the PATH lookup at spawn time.
    if path.exists() or path.parent != Path("."):
        return path.absolute()
    return path


def resolve(
    path: Union[str, Path],
    interpreters: Optional[Mapping[str, Sequence[str]]] = None,
    native_extensions: Optional[Sequence[str]] = None,
) -> ProgramRef:
    """Decide how a program file is run, based on its extension.

    Script extensions are bound to the first interpreter found on PATH.
    Native extensions (including no extension) run the file directly.
    Anything else raises UnsupportedProgramType.
    """
    program = Path(path)
    table = DEFAULT_INTERPRETERS if interpreters is None else interpreters
    natives = DEFAULT_NATIVE_EXTENSIONS if native_extensions is None else native_extensions
    extension = program.suffix.lower()
    if extension in table:
        candidates = list(table[extension])
        interpreter = _find_interpreter(candidates)
        if interpreter is None:
            raise InterpreterNotFound(program, extension, candidates)
        return ProgramRef(path=_normalize_path(program), kind=InterpretedScript(interpreter))
    if extension in natives:
        return ProgramRef(path=_normalize_path(program), kind=NativeExecutable())
    raise UnsupportedProgramType(program, extension)


def build_invocation(ref: ProgramRef, cwd: Optional[Path] = None) -> Invocation:
    workdir = Path(cwd) if cwd is not None else Path(os.getcwd())
    kind = ref.kind
    if isinstance(kind, InterpretedScript):
        return Invocation(
            executable=kind.interpreter,
            argv=(kind.interpreter, str(ref.path)),
            cwd=workdir,
            label=ref.label,
        )
    if isinstance(kind, NativeExecutable):
        return Invocation(
            executable=str(ref.path),
            argv=(str(ref.path),),
            cwd=workdir,
            label=ref.label,
        )
    raise TypeError(f"unknown program kind: {kind!r}")
