"""Bottleneck aggregation of component scores."""

from dataclasses import dataclass
from typing import Iterable

from pwrzv.errors import NoMetricsAvailable
from pwrzv.models import ComponentScore, Metric

# Scores closer than this are treated as a tie.
TIE_EPSILON = 1e-9


@dataclass(slots=True, frozen=True)
class Aggregate:
    """Minimum score and every metric that reaches it."""

    value: float
    bottleneck: tuple[Metric, ...]

    @property
    def bottleneck_names(self) -> tuple[str, ...]:
        return tuple(m.label for m in self.bottleneck)


def aggregate(components: Iterable[ComponentScore]) -> Aggregate:
    """
    Reduce component scores to the worst one.

    Raises:
        NoMetricsAvailable: If ``components`` is empty.
    """
    scores = list(components)
    if not scores:
        raise NoMetricsAvailable()

    minimum = min(c.score for c in scores)
    tied = {c.metric for c in scores if c.score - minimum <= TIE_EPSILON}
    bottleneck = tuple(sorted(tied, key=lambda m: m.rank))
    return Aggregate(value=minimum, bottleneck=bottleneck)
