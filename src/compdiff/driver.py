from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from .consensus import classify
from .limits import ResourceLimits
from .resolver import ProgramRef
from .rounds import run_round
from .runner import DEFAULT_KILL_GRACE_S
from .schemas import (
    CandidateFailure,
    Completed,
    GeneratorFailure,
    ReferenceFailures,
    RoundResult,
    Verdict,
)

logger = logging.getLogger(__name__)

CLEAN_CATEGORIES = {"all_match", "unchecked"}


@dataclass(frozen=True)
class RoundRecord:
    index: int
    result: RoundResult
    verdict: Optional[Verdict]
    category: str

    @property
    def ok(self) -> bool:
        return self.category in CLEAN_CATEGORIES


class RunSummary(BaseModel):
    rounds: int = 0
    all_match: int = 0
    candidate_mismatch: int = 0
    reference_inconsistency: int = 0
    generator_failure: int = 0
    candidate_failure: int = 0
    time_limit_exceeded: int = 0
    reference_failure: int = 0
    unchecked: int = 0

    @property
    def ok(self) -> bool:
        return self.rounds == self.all_match + self.unchecked

    def record(self, category: str) -> None:
        self.rounds += 1
        setattr(self, category, getattr(self, category) + 1)


def categorize(result: RoundResult, verdict: Optional[Verdict]) -> str:
    if isinstance(result, GeneratorFailure):
        return "generator_failure"
    if isinstance(result, CandidateFailure):
        if result.failure.failure_kind == "TIME_LIMIT_EXCEEDED":
            return "time_limit_exceeded"
        return "candidate_failure"
    if isinstance(result, ReferenceFailures):
        return "reference_failure"
    if verdict is None:
        return "unchecked"
    return verdict.kind


def judge(result: RoundResult) -> Optional[Verdict]:
    if isinstance(result, Completed) and result.references:
        return classify(result.candidate.text, [ref.text for ref in result.references])
    return None


def drive(
    generator: ProgramRef,
    candidate: ProgramRef,
    references: Sequence[ProgramRef],
    limits: Optional[ResourceLimits] = None,
    rounds: int = 1,
    kill_grace_s: float = DEFAULT_KILL_GRACE_S,
    on_round: Optional[Callable[[RoundRecord], None]] = None,
    stop_on_failure: bool = False,
) -> RunSummary:
    summary = RunSummary()
    for index in range(rounds):
        logger.debug("starting round %d", index)
        result = run_round(generator, candidate, references, limits, kill_grace_s)
        verdict = judge(result)
        record = RoundRecord(
            index=index,
            result=result,
            verdict=verdict,
            category=categorize(result, verdict),
        )
        summary.record(record.category)
        if on_round is not None:
            on_round(record)
        if stop_on_failure and not record.ok:
            logger.debug("stopping after round %d (%s)", index, record.category)
            break
    return summary
