from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .limits import ResourceLimits
from .resolver import ProgramRef, build_invocation
from .runner import DEFAULT_KILL_GRACE_S, run
from .schemas import (
    CandidateFailure,
    Completed,
    Failure,
    GeneratorFailure,
    ReferenceFailures,
    RoundResult,
    Success,
)

logger = logging.getLogger(__name__)


def run_round(
    generator: ProgramRef,
    candidate: ProgramRef,
    references: Sequence[ProgramRef],
    limits: Optional[ResourceLimits] = None,
    kill_grace_s: float = DEFAULT_KILL_GRACE_S,
) -> RoundResult:
    """Generate one input and run every participant on it.

    The generator and the references always run without limits; ``limits``
    applies to the candidate alone. The candidate and all references are
    started together, one worker each, before any result is awaited. The
    pool is drained before returning, so no process outlives its round.
    """
    generated = run(build_invocation(generator), "", ResourceLimits.unbounded(), kill_grace_s)
    if isinstance(generated, Failure):
        logger.debug("generator failed: %s", generated.detail)
        return GeneratorFailure(failure=generated)
    input_text = generated.text

    with ThreadPoolExecutor(
        max_workers=1 + len(references), thread_name_prefix="compdiff-round"
    ) as pool:
        candidate_future = pool.submit(
            run, build_invocation(candidate), input_text, limits, kill_grace_s
        )
        reference_futures = [
            pool.submit(
                run, build_invocation(ref), input_text, ResourceLimits.unbounded(), kill_grace_s
            )
            for ref in references
        ]
        candidate_outcome = candidate_future.result()
        if isinstance(candidate_outcome, Failure):
            return CandidateFailure(input_text=input_text, failure=candidate_outcome)
        reference_outcomes = [future.result() for future in reference_futures]

    failures: List[Failure] = [out for out in reference_outcomes if isinstance(out, Failure)]
    if failures:
        return ReferenceFailures(input_text=input_text, failures=failures)
    successes: List[Success] = [out for out in reference_outcomes if isinstance(out, Success)]
    return Completed(input_text=input_text, candidate=candidate_outcome, references=successes)
