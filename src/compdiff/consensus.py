from __future__ import annotations

from typing import Sequence

from .schemas import AllMatch, CandidateMismatch, ReferenceInconsistency, Verdict


def classify(candidate_output: str, reference_outputs: Sequence[str]) -> Verdict:
    """Compare the candidate's output with the reference outputs.

    References that agree with the candidate are ignored. If the rest agree
    with each other they are a single alternative answer and the candidate
    is wrong. If they do not, the references contradict each other and the
    round cannot be judged. Comparison is exact; normalize before calling.

    Output lists in the verdict are sorted, so the verdict does not depend
    on the order of the references.
    """
    if not reference_outputs:
        raise ValueError("classify needs at least one reference output")
    disagreeing = [output for output in reference_outputs if output != candidate_output]
    if not disagreeing:
        return AllMatch()
    if len(set(disagreeing)) == 1:
        return CandidateMismatch(
            candidate_output=candidate_output,
            reference_outputs=sorted(disagreeing),
        )
    return ReferenceInconsistency(reference_outputs=sorted(reference_outputs))
