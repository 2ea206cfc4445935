import os
import sys
from pathlib import Path
from typing import Callable

import pytest

from compdiff.resolver import ProgramRef, resolve

PROGRAMS_DIR = Path(__file__).resolve().parent / "programs"
TEST_INTERPRETERS = {".py": [sys.executable]}


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    _ = config
    run_slow = os.getenv("RUN_SLOW_TESTS", "") or os.getenv("COMPDIFF_RUN_SLOW", "")
    if str(run_slow).strip().lower() in {"1", "true", "yes"}:
        return
    skip_slow = pytest.mark.skip(reason="set RUN_SLOW_TESTS=1 to run slow tests")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def program() -> Callable[[str], ProgramRef]:
    def _program(name: str) -> ProgramRef:
        return resolve(PROGRAMS_DIR / name, TEST_INTERPRETERS)

    return _program
