"""Error taxonomy and structured phase results.

Numeric phases never raise for data-dependent conditions. Workers return
their local findings, the phase merges them after every worker has joined,
and the caller receives a :class:`PhaseResult` to decide whether the cycle
can continue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple


class ErrorKind(str, Enum):
    DEGENERATE_TRANSITION_KERNEL = "degenerate_transition_kernel"
    EMPTY_NEIGHBORHOOD = "empty_neighborhood"
    DEGENERATE_MASS = "degenerate_mass"
    TOTAL_WEIGHT_COLLAPSE = "total_weight_collapse"
    SENSOR_MODEL_RANGE = "sensor_model_range"


# Kinds that abort the current cycle.
FATAL_KINDS = frozenset(
    {
        ErrorKind.DEGENERATE_TRANSITION_KERNEL,
        ErrorKind.TOTAL_WEIGHT_COLLAPSE,
    }
)


class ConfigurationError(ValueError):
    """Raised when model or grid parameters are invalid."""


class LocalizationError(RuntimeError):
    """Raised by :meth:`PhaseResult.raise_for_errors` for fatal conditions."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class LocalizationWarning(UserWarning):
    """Category for recoverable conditions reported at the cycle boundary."""


@dataclass(frozen=True)
class PhaseError:
    """One condition found during a phase.

    `count` is the number of occurrences folded into this entry and
    `indices` optionally lists the affected sample indices (or heading
    pairs for kernel errors).
    """

    kind: ErrorKind
    message: str
    count: int = 1
    indices: Tuple = ()

    @property
    def fatal(self) -> bool:
        return self.kind in FATAL_KINDS


@dataclass
class PhaseResult:
    phase: str
    total_weight: float = 0.0
    processed: int = 0
    errors: List[PhaseError] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(e.fatal for e in self.errors)

    def errors_of(self, kind: ErrorKind) -> List[PhaseError]:
        return [e for e in self.errors if e.kind == kind]

    def count_of(self, kind: ErrorKind) -> int:
        return sum(e.count for e in self.errors_of(kind))

    def add(self, kind: ErrorKind, message: str, *, count: int = 1, indices: Sequence = ()) -> None:
        self.errors.append(PhaseError(kind=kind, message=message, count=int(count), indices=tuple(indices)))

    def raise_for_errors(self) -> None:
        for error in self.errors:
            if error.fatal:
                raise LocalizationError(error.kind, f"{self.phase}: {error.message}")


__all__ = [
    "ConfigurationError",
    "ErrorKind",
    "FATAL_KINDS",
    "LocalizationError",
    "LocalizationWarning",
    "PhaseError",
    "PhaseResult",
]
