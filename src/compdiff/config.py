from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .limits import ResourceLimits
from .resolver import DEFAULT_INTERPRETERS, DEFAULT_NATIVE_EXTENSIONS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COMPDIFF_")

    rounds: int = Field(default=1, ge=1)
    time_limit_s: Optional[float] = Field(default=None, gt=0)
    memory_limit_kb: Optional[int] = Field(default=None, gt=0)
    kill_grace_s: float = Field(default=0.5, ge=0)
    interpreters: Dict[str, List[str]] = Field(
        default_factory=lambda: {ext: list(names) for ext, names in DEFAULT_INTERPRETERS.items()}
    )
    native_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_NATIVE_EXTENSIONS))

    def limits(self) -> ResourceLimits:
        memory_bytes = self.memory_limit_kb * 1024 if self.memory_limit_kb is not None else None
        return ResourceLimits(wall_clock_s=self.time_limit_s, memory_bytes=memory_bytes)
