"""Differential stress-testing harness.

Feeds generator output to a candidate program and to reference programs,
then compares the candidate against the consensus of the references.
"""

from .consensus import classify
from .rounds import run_round

__all__ = ["classify", "run_round"]
__version__ = "0.1.0"
