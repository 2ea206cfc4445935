import sys
from pathlib import Path

import orjson

from compdiff.driver import RoundRecord, RunSummary
from compdiff.ledger import RoundLedger, read_events
from compdiff.limits import ResourceLimits
from compdiff.resolver import resolve
from compdiff.schemas import AllMatch, CandidateFailure, Completed, Failure, Success


def _start(ledger: RoundLedger, tmp_path: Path) -> str:
    script = tmp_path / "solve.py"
    script.write_text("print(1)\n", encoding="utf-8")
    ref = resolve(script, {".py": [sys.executable]})
    return ledger.start_run(ref, ref, [ref], ResourceLimits(wall_clock_s=1.0), 2, "test")


def _records() -> list[RoundRecord]:
    completed = Completed(
        input_text="1\r\n",
        candidate=Success(program="p", text="a"),
        references=[Success(program="r", text="a")],
    )
    timeout = CandidateFailure(
        input_text="2\n",
        failure=Failure(program="p", failure_kind="TIME_LIMIT_EXCEEDED"),
    )
    return [
        RoundRecord(index=0, result=completed, verdict=AllMatch(), category="all_match"),
        RoundRecord(index=1, result=timeout, verdict=None, category="time_limit_exceeded"),
    ]


def _write_run(path: Path, tmp_path: Path) -> None:
    ledger = RoundLedger(path)
    _start(ledger, tmp_path)
    summary = RunSummary()
    for record in _records():
        ledger.append_round(record)
        summary.record(record.category)
    ledger.end_run(summary)


def test_run_events_are_chained(tmp_path: Path) -> None:
    path = tmp_path / "rounds.jsonl"
    _write_run(path, tmp_path)
    events = read_events(path)
    assert [event["type"] for event in events] == ["RUN_START", "ROUND", "ROUND", "RUN_END"]
    assert events[1]["payload"]["result"]["input_text"] == "1\r\n"
    assert events[1]["payload"]["verdict"] == {"kind": "all_match"}
    assert events[2]["payload"]["verdict"] is None
    assert events[3]["payload"]["time_limit_exceeded"] == 1
    assert events[3]["payload"]["ok"] is False
    check = RoundLedger.verify(path)
    assert check.ok
    assert (check.runs, check.rounds) == (1, 2)


def test_tampered_round_is_detected(tmp_path: Path) -> None:
    path = tmp_path / "rounds.jsonl"
    _write_run(path, tmp_path)
    lines = path.read_bytes().splitlines()
    event = orjson.loads(lines[1])
    event["payload"]["category"] = "candidate_mismatch"
    lines[1] = orjson.dumps(event, option=orjson.OPT_SORT_KEYS)
    path.write_bytes(b"\n".join(lines) + b"\n")
    check = RoundLedger.verify(path)
    assert not check.ok
    assert check.reason == "hash mismatch at 1"


def test_dropped_round_breaks_the_chain(tmp_path: Path) -> None:
    path = tmp_path / "rounds.jsonl"
    _write_run(path, tmp_path)
    lines = path.read_bytes().splitlines()
    del lines[1]
    path.write_bytes(b"\n".join(lines) + b"\n")
    check = RoundLedger.verify(path)
    assert not check.ok
    assert check.reason == "prev_hash mismatch at 1"


def test_unfinished_run_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "rounds.jsonl"
    ledger = RoundLedger(path)
    _start(ledger, tmp_path)
    ledger.append_round(_records()[0])
    check = RoundLedger.verify(path)
    assert not check.ok
    assert check.reason == "last run has no RUN_END"


def test_second_run_resumes_the_chain(tmp_path: Path) -> None:
    path = tmp_path / "rounds.jsonl"
    _write_run(path, tmp_path)
    last_hash = read_events(path)[-1]["hash"]
    second = RoundLedger(path)
    _start(second, tmp_path)
    second.end_run(RunSummary())
    events = read_events(path)
    assert events[4]["prev_hash"] == last_hash
    check = RoundLedger.verify(path)
    assert check.ok
    assert (check.runs, check.rounds) == (2, 2)
