from __future__ import annotations

import contextlib
import logging
import os
import signal
import subprocess
import threading
import time
from typing import Any, Dict, Optional

from .limits import LimitEnforcer, ResourceLimits, enforcer_for
from .resolver import Invocation
from .schemas import ExecutionOutcome, Failure, Success

logger = logging.getLogger(__name__)

DEFAULT_KILL_GRACE_S = 0.5

# Held across Popen so no other thread forks while a preexec_fn runs in a child.
_SPAWN_LOCK = threading.Lock()


def _popen_kwargs(enforcer: LimitEnforcer) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if os.name == "posix":
        # Own process group, so a deadline kill also reaches grandchildren.
        kwargs["start_new_session"] = True
        preexec = enforcer.preexec()
        if preexec is not None:
            kwargs["preexec_fn"] = preexec
    return kwargs


def _signal_group(proc: subprocess.Popen[bytes], sig: int) -> None:
    if os.name == "posix":
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(proc.pid, sig)
        return
    with contextlib.suppress(OSError):
        if sig == signal.SIGTERM:
            proc.terminate()
        else:
            proc.kill()


def _terminate(proc: subprocess.Popen[bytes], grace: float) -> None:
    """Stop a process politely, then forcefully, and reap it."""
    _signal_group(proc, signal.SIGTERM)
    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.debug("pid %d ignored SIGTERM, sending SIGKILL", proc.pid)
        _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
    try:
        proc.communicate(timeout=grace)
    except subprocess.TimeoutExpired:
        # Something outside the process group still holds the pipes open.
        for stream in (proc.stdin, proc.stdout, proc.stderr):
            if stream is not None:
                with contextlib.suppress(OSError):
                    stream.close()
        proc.kill()
        proc.wait()


def _decode(data: Optional[bytes]) -> str:
    # Plain decode, no newline translation: "\r\n" stays "\r\n".
    return (data or b"").decode("utf-8", errors="replace")


def describe_status(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = f"signal {-returncode}"
        return f"killed by {name}"
    return f"exit status {returncode}"


def run(
    invocation: Invocation,
    input_text: str,
    limits: Optional[ResourceLimits] = None,
    kill_grace_s: float = DEFAULT_KILL_GRACE_S,
) -> ExecutionOutcome:
    """Run one program to completion on ``input_text``.

    Input is written while stdout and stderr are drained, so programs that
    answer before reading all of their input cannot stall the pipes. A
    wall-clock deadline kills the process and discards whatever it printed.
    Errors never escape: every path yields a Success or a Failure, and the
    child is always reaped.

    Pipes are binary and decoded here without newline translation, so
    output comparison sees exactly the bytes the program wrote. Spawning
    is serialized through a lock because the memory ceiling is applied by
    a preexec_fn, which is unsafe if another thread forks concurrently;
    only the fork/exec is serialized, the programs still run in parallel.
    """
    limits = limits or ResourceLimits.unbounded()
    enforcer = enforcer_for(limits)
    label = invocation.label or invocation.executable
    start = time.monotonic_ns()
    try:
        with _SPAWN_LOCK:
            proc = subprocess.Popen(
                list(invocation.argv),
                cwd=str(invocation.cwd),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **_popen_kwargs(enforcer),
            )
    except (OSError, subprocess.SubprocessError) as exc:
        return Failure(
            program=label,
            failure_kind="NON_ZERO_EXIT",
            detail=f"could not start: {exc}",
            duration_ns=time.monotonic_ns() - start,
        )
    logger.debug("spawned %s as pid %d", label, proc.pid)
    try:
        stdout, stderr = proc.communicate(
            input=input_text.encode("utf-8"), timeout=limits.wall_clock_s
        )
    except subprocess.TimeoutExpired:
        logger.debug("pid %d hit the %.3fs deadline", proc.pid, limits.wall_clock_s)
        _terminate(proc, kill_grace_s)
        return Failure(
            program=label,
            failure_kind="TIME_LIMIT_EXCEEDED",
            detail=f"did not finish within {limits.wall_clock_s}s",
            exit_code=proc.returncode,
            duration_ns=time.monotonic_ns() - start,
        )
    except BaseException:
        _terminate(proc, kill_grace_s)
        raise
    duration_ns = time.monotonic_ns() - start
    returncode = proc.returncode
    logger.debug("pid %d finished with %s", proc.pid, describe_status(returncode))
    out_text = _decode(stdout)
    err_text = _decode(stderr)

    if returncode != 0:
        detail = describe_status(returncode)
        hint = enforcer.explain(returncode)
        if hint:
            detail = f"{detail} ({hint})"
        return Failure(
            program=label,
            failure_kind="NON_ZERO_EXIT",
            detail=detail,
            exit_code=returncode,
            stderr=err_text,
            duration_ns=duration_ns,
        )
    if err_text:
        return Failure(
            program=label,
            failure_kind="DIAGNOSTIC_OUTPUT",
            detail="wrote to the diagnostic stream",
            exit_code=returncode,
            stderr=err_text,
            duration_ns=duration_ns,
        )
    return Success(program=label, text=out_text, duration_ns=duration_ns)
