from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

FailureKind = Literal["NON_ZERO_EXIT", "DIAGNOSTIC_OUTPUT", "TIME_LIMIT_EXCEEDED"]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class Success(FrozenModel):
    kind: Literal["success"] = "success"
    program: str
    text: str
    duration_ns: int = 0


class Failure(FrozenModel):
    kind: Literal["failure"] = "failure"
    program: str
    failure_kind: FailureKind
    detail: str = ""
    exit_code: Optional[int] = None
    stderr: str = ""
    duration_ns: int = 0

    def describe(self) -> str:
        if self.failure_kind == "TIME_LIMIT_EXCEEDED":
            return f'program "{self.program}" exceeded the time limit!'
        status = self.detail or "unknown"
        error = self.stderr.rstrip() or "<no diagnostic output>"
        return f'program "{self.program}" failed with status "{status}" and the error: {error}'


ExecutionOutcome = Annotated[Union[Success, Failure], Field(discriminator="kind")]


class GeneratorFailure(FrozenModel):
    kind: Literal["generator_failure"] = "generator_failure"
    failure: Failure


class CandidateFailure(FrozenModel):
    kind: Literal["candidate_failure"] = "candidate_failure"
    input_text: str
    failure: Failure


class ReferenceFailures(FrozenModel):
    kind: Literal["reference_failures"] = "reference_failures"
    input_text: str
    failures: List[Failure]


class Completed(FrozenModel):
    kind: Literal["completed"] = "completed"
    input_text: str
    candidate: Success
    references: List[Success] = Field(default_factory=list)


RoundResult = Annotated[
    Union[GeneratorFailure, CandidateFailure, ReferenceFailures, Completed],
    Field(discriminator="kind"),
]


class AllMatch(FrozenModel):
    kind: Literal["all_match"] = "all_match"


class CandidateMismatch(FrozenModel):
    kind: Literal["candidate_mismatch"] = "candidate_mismatch"
    candidate_output: str
    reference_outputs: List[str]


class ReferenceInconsistency(FrozenModel):
    kind: Literal["reference_inconsistency"] = "reference_inconsistency"
    reference_outputs: List[str]


Verdict = Annotated[
    Union[AllMatch, CandidateMismatch, ReferenceInconsistency],
    Field(discriminator="kind"),
]
