"""
harmonicxplorer - Error taxonomy
Recoverable problems travel as values (ParamResult / SeriesResult /
WaveformResult carry them); only engine construction raises.
"""

from dataclasses import dataclass
from typing import Any, Optional


class EngineError(Exception):
    """Base class for every engine error."""


class ParameterError(EngineError):
    """Out-of-range or unknown input, recovered by clamping or a default."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(f"{key}={value!r}: {reason}")
        self.key = key
        self.value = value
        self.reason = reason


class ComputationError(EngineError):
    """Unexpected failure inside a generator, replaced by a fallback artifact."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause


class CollaboratorError(EngineError):
    """A registered module raised from one of its hooks."""

    def __init__(self, module_name: str, hook: str, cause: BaseException):
        super().__init__(f"{module_name}.{hook} raised {type(cause).__name__}: {cause}")
        self.module_name = module_name
        self.hook = hook
        self.cause = cause


class EngineConstructionError(EngineError):
    """The engine cannot be built with the supplied host or configuration."""


@dataclass(frozen=True)
class ParamResult:
    """Outcome of coercing one incoming parameter value."""
    value: Any
    error: Optional[ParameterError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
