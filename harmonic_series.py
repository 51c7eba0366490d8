"""
harmonicxplorer - Harmonic Series
Maps (count, series type, phase policy) to an ordered list of harmonics.
Bad parameters never raise: callers get a fallback series and a logged error.
"""

import math
import random
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from config import (
    PARAM_RANGE_LIMITS,
    SERIES_TYPES,
    TWO_PI,
    normalize_phase_policy,
)
from errors import ComputationError, EngineError, ParameterError
from logging_utils import log_event


PRIMES: tuple[int, ...] = (
    2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53,
    59, 61, 67, 71, 73, 79, 83, 89, 97, 101, 103, 107, 109, 113, 127, 131,
)
GEOMETRIC_RATIO = (1.0 + math.sqrt(5.0)) / 2.0
FIFTH_RATIO = 1.5


@dataclass(frozen=True)
class Harmonic:
    """One weighted sine term: frequency multiplier and phase (radians)."""
    ratio: float
    phase: float = 0.0


FALLBACK_SERIES: tuple[Harmonic, ...] = (Harmonic(1.0, 0.0),)


@dataclass(frozen=True)
class SeriesResult:
    harmonics: list[Harmonic]
    error: Optional[EngineError] = None


def _fibonacci(count: int) -> list[int]:
    values = []
    a, b = 1, 1
    for _ in range(count):
        values.append(a)
        a, b = b, a + b
    return values


@lru_cache(maxsize=128)
def series_ratios(count: int, series_type: str) -> tuple[float, ...]:
    """Frequency ratios for a validated count; unknown types use the natural series."""
    indices = range(count)
    if series_type == 'octave':
        ratios = [2.0 ** i for i in indices]
    elif series_type == 'odd':
        ratios = [2 * i + 1 for i in indices]
    elif series_type == 'even':
        ratios = [2 * (i + 1) for i in indices]
    elif series_type == 'prime':
        ratios = list(PRIMES[:count])
    elif series_type == 'fibonacci':
        ratios = _fibonacci(count)
    elif series_type == 'upper':
        ratios = [FIFTH_RATIO ** i for i in indices]
    elif series_type == 'lower':
        ratios = [FIFTH_RATIO ** -i for i in indices]
    elif series_type in ('under', 'harmonic'):
        ratios = [1.0 / (i + 1) for i in indices]
    elif series_type == 'geometric':
        ratios = [GEOMETRIC_RATIO ** i for i in indices]
    elif series_type == 'singular':
        ratios = [count]
    else:
        ratios = [i + 1 for i in indices]
    return tuple(float(r) for r in ratios)


def phase_for(policy: str, index: int, count: int, rng=None) -> float:
    """Phase (radians) of entry `index` under a resolved phase policy."""
    if policy == 'ascending':
        return (index / count) * TWO_PI
    if policy == 'descending':
        return ((count - index) / count) * TWO_PI
    if policy == 'alternating':
        return (index % 2) * math.pi
    if policy == 'random':
        # Non-deterministic by design of the policy; inject rng for repeatability
        return (rng or random).uniform(0.0, TWO_PI)
    if policy == 'quarter':
        return math.pi / 2.0
    if policy == 'half':
        return math.pi
    if policy == 'three_quarter':
        return math.pi * 3.0 / 2.0
    if policy == 'incremental':
        return (index * math.pi / 4.0) % TWO_PI
    return 0.0


def _validate_count(count) -> Optional[ParameterError]:
    low, high = PARAM_RANGE_LIMITS['harmonic_count']
    if isinstance(count, bool) or not isinstance(count, (int, float)):
        return ParameterError('harmonic_count', count, "not a number")
    if isinstance(count, float) and (not math.isfinite(count) or not count.is_integer()):
        return ParameterError('harmonic_count', count, "not an integer")
    if not low <= count <= high:
        return ParameterError('harmonic_count', count, f"outside [{low}, {high}]")
    return None


def generate_series_checked(
    count,
    series_type='natural',
    phase_policy='flat',
    rng=None,
) -> SeriesResult:
    """Result-style generator: returns the series plus any recovered error."""
    count_error = _validate_count(count)
    if count_error is not None:
        return SeriesResult(list(FALLBACK_SERIES), count_error)
    if not isinstance(series_type, str):
        return SeriesResult(
            list(FALLBACK_SERIES),
            ParameterError('harmonic_type', series_type, "not a series name"),
        )

    error: Optional[EngineError] = None
    count = int(count)
    if series_type not in SERIES_TYPES:
        error = ParameterError('harmonic_type', series_type, "unknown series, using natural")
        series_type = 'natural'

    policy = normalize_phase_policy(phase_policy)
    if policy is None:
        if error is None:
            error = ParameterError('harmonic_phase', phase_policy, "unknown phase policy, using flat")
        policy = 'flat'

    try:
        ratios = series_ratios(count, series_type)
        harmonics = [
            Harmonic(ratio=ratio, phase=phase_for(policy, i, count, rng))
            for i, ratio in enumerate(ratios)
        ]
    except Exception as e:
        return SeriesResult(list(FALLBACK_SERIES), ComputationError('harmonic series', e))
    return SeriesResult(harmonics, error)


def generate_series(count, series_type='natural', phase_policy='flat', rng=None) -> list[Harmonic]:
    """Generate harmonics; problems are logged and degrade to a safe series.

    The 'random' phase policy is the one non-deterministic case.
    """
    result = generate_series_checked(count, series_type, phase_policy, rng)
    if result.error is not None:
        log_event("WARN", "HarmonicSeries", "Recovered from bad input", error=result.error)
    return result.harmonics
