import pytest
from pydantic import ValidationError

from compdiff.config import Settings
from compdiff.limits import ResourceLimits


def test_defaults_are_unbounded() -> None:
    settings = Settings()
    assert settings.rounds == 1
    assert settings.limits() == ResourceLimits.unbounded()
    assert not settings.limits().is_bounded
    assert ".py" in settings.interpreters


def test_memory_limit_is_given_in_kilobytes() -> None:
    settings = Settings(memory_limit_kb=2048, time_limit_s=1.5)
    assert settings.limits() == ResourceLimits(wall_clock_s=1.5, memory_bytes=2048 * 1024)


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMPDIFF_ROUNDS", "7")
    monkeypatch.setenv("COMPDIFF_TIME_LIMIT_S", "0.25")
    settings = Settings()
    assert settings.rounds == 7
    assert settings.limits().wall_clock_s == 0.25


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(rounds=0)
    with pytest.raises(ValidationError):
        Settings(time_limit_s=-1)
