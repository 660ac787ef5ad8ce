"""Error kinds raised by the simulation engine."""
from __future__ import annotations

from typing import List


class ConfigError(ValueError):
    """Invalid run configuration, detected before any sampling starts."""


class DegenerateStatisticError(ValueError):
    """A statistic was asked to reduce too few observations."""


class DomainError(ArithmeticError):
    """Diagnostics would divide by zero or have nothing to summarize."""


class TaskError(RuntimeError):
    def __init__(self, label: str, sample_size: int, cause: BaseException) -> None:
        super().__init__(f"{label} n={sample_size}: {type(cause).__name__}: {cause}")
        self.label = label
        self.sample_size = sample_size
        self.cause = cause

    @property
    def key(self):
        return self.label, self.sample_size


class BatchError(RuntimeError):
    def __init__(self, failures: List[TaskError]) -> None:
        keys = ", ".join(f"{f.label} n={f.sample_size}" for f in failures)
        super().__init__(f"{len(failures)} task(s) failed: {keys}")
        self.failures = failures
