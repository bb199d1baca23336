"""Vote tally engine.

Pure functions over a collection of numeric votes. Callers guarantee the
collection is non-empty (``spin`` refuses to run without votes).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from planning_roulette.config import ALLOWED_POINTS

logger = logging.getLogger(__name__)

Number = Union[int, float]

POLICY_NEAREST = "nearest"
POLICY_EXACT = "exact"


@dataclass(frozen=True)
class TallyResult:
    exact_average: float
    nearest_point: int
    count: int
    policy: str

    @property
    def result(self) -> Number:
        if self.policy == POLICY_EXACT:
            return self.exact_average
        return self.nearest_point


def _finite(votes: Iterable[Number]) -> List[float]:
    values: List[float] = []
    for vote in votes:
        try:
            number = float(vote)
        except (TypeError, ValueError):
            logger.warning("Dropping non-numeric vote %r from tally", vote)
            continue
        if not math.isfinite(number):
            logger.warning("Dropping non-finite vote %r from tally", vote)
            continue
        values.append(number)
    return values


def exact_average(votes: Iterable[Number]) -> float:
    values = _finite(votes)
    if not values:
        raise ValueError("exact_average() requires at least one numeric vote")
    return sum(values) / len(values)


def nearest_allowed_point(average: float, allowed: Sequence[int] = ALLOWED_POINTS) -> int:
    """Round ``average`` to the closest member of ``allowed``.

    ``allowed`` is scanned in ascending order and a candidate only replaces the
    current best when strictly closer, so an exact tie resolves to the lower
    point: 4 -> 3, 2.5 -> 2.
    """
    if not allowed:
        raise ValueError("allowed point set is empty")
    best = None
    best_distance = math.inf
    for point in sorted(allowed):
        distance = abs(point - average)
        if distance < best_distance:
            best, best_distance = point, distance
    return best  # type: ignore[return-value]


def tally(
    votes: Iterable[Number],
    *,
    policy: str = POLICY_NEAREST,
    allowed: Sequence[int] = ALLOWED_POINTS,
) -> TallyResult:
    if policy not in (POLICY_NEAREST, POLICY_EXACT):
        raise ValueError(f"unknown result policy: {policy}")
    values = _finite(votes)
    average = exact_average(values)
    return TallyResult(
        exact_average=average,
        nearest_point=nearest_allowed_point(average, allowed),
        count=len(values),
        policy=policy,
    )
