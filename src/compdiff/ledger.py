"""Hash-chained JSONL record of a compdiff run.

A run is written as one ``RUN_START`` event, one ``ROUND`` event per round
and a closing ``RUN_END`` event. Every line carries the blake3 hash of its
canonical orjson encoding together with the hash of the previous line, so
editing, dropping or reordering rounds breaks the chain.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import orjson
from blake3 import blake3

from .driver import RoundRecord, RunSummary
from .limits import ResourceLimits
from .resolver import ProgramRef

RUN_START = "RUN_START"
ROUND = "ROUND"
RUN_END = "RUN_END"
EVENT_TYPES = (RUN_START, ROUND, RUN_END)


def _event_hash(event: Dict[str, Any]) -> str:
    body = {key: event.get(key) for key in ("ts", "type", "payload", "prev_hash")}
    return blake3(orjson.dumps(body, option=orjson.OPT_SORT_KEYS)).hexdigest()


def read_events(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    return [orjson.loads(line) for line in path.read_bytes().splitlines() if line]


@dataclass(frozen=True)
class LedgerCheck:
    ok: bool
    reason: str
    runs: int = 0
    rounds: int = 0


class RoundLedger:
    def __init__(self, path: Path) -> None:
        self.path = path
        events = read_events(path)
        self._last_hash = events[-1].get("hash", "") if events else ""

    def _append(self, event_type: str, payload: Dict[str, Any]) -> str:
        event: Dict[str, Any] = {
            "ts": time.time_ns(),
            "type": event_type,
            "payload": payload,
            "prev_hash": self._last_hash,
        }
        event["hash"] = _event_hash(event)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("ab") as handle:
            handle.write(orjson.dumps(event, option=orjson.OPT_SORT_KEYS) + b"\n")
        self._last_hash = event["hash"]
        return event["hash"]

    def start_run(
        self,
        generator: ProgramRef,
        candidate: ProgramRef,
        references: Sequence[ProgramRef],
        limits: ResourceLimits,
        rounds: int,
        version: str,
    ) -> str:
        return self._append(
            RUN_START,
            {
                "version": version,
                "generator": generator.label,
                "program": candidate.label,
                "references": [ref.label for ref in references],
                "rounds": rounds,
                "time_limit_s": limits.wall_clock_s,
                "memory_bytes": limits.memory_bytes,
            },
        )

    def append_round(self, record: RoundRecord) -> str:
        verdict: Optional[Dict[str, Any]] = None
        if record.verdict is not None:
            verdict = record.verdict.model_dump(mode="json")
        return self._append(
            ROUND,
            {
                "index": record.index,
                "category": record.category,
                "result": record.result.model_dump(mode="json"),
                "verdict": verdict,
            },
        )

    def end_run(self, summary: RunSummary) -> str:
        return self._append(RUN_END, {**summary.model_dump(mode="json"), "ok": summary.ok})

    @staticmethod
    def verify(path: Path) -> LedgerCheck:
        """Check the hash chain and the run structure of a ledger file."""
        prev_hash = ""
        runs = rounds = 0
        in_run = False
        for idx, event in enumerate(read_events(path)):
            event_type = event.get("type")
            if event_type not in EVENT_TYPES:
                return LedgerCheck(False, f"unknown event type {event_type!r} at {idx}", runs, rounds)
            if event.get("prev_hash") != prev_hash:
                return LedgerCheck(False, f"prev_hash mismatch at {idx}", runs, rounds)
            if _event_hash(event) != event.get("hash", ""):
                return LedgerCheck(False, f"hash mismatch at {idx}", runs, rounds)
            if event_type == RUN_START:
                if in_run:
                    return LedgerCheck(False, f"run started twice at {idx}", runs, rounds)
                in_run = True
                runs += 1
            elif not in_run:
                return LedgerCheck(False, f"{event_type} outside a run at {idx}", runs, rounds)
            elif event_type == ROUND:
                rounds += 1
            else:
                in_run = False
            prev_hash = event["hash"]
        if in_run:
            return LedgerCheck(False, "last run has no RUN_END", runs, rounds)
        return LedgerCheck(True, "ok", runs, rounds)
