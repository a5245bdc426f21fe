"""Scoring pipeline: normalize, transform, aggregate and map to a level."""

import logging
import platform

from pwrzv.aggregator import aggregate
from pwrzv.errors import UnsupportedPlatform
from pwrzv.levels import map_level
from pwrzv.models import ComponentScore, DetailedResult, Platform, RawSnapshot
from pwrzv.normalizer import normalize
from pwrzv.params import OverridePolicy, ParamsCache, ParamsTable, resolve_params
from pwrzv.sigmoid import reserve_score
from pwrzv.source import DEFAULT_TIMEOUT, MetricSource, collect_snapshot, create_source

logger = logging.getLogger(__name__)


def score_components(snapshot: RawSnapshot, table: ParamsTable) -> tuple[list[ComponentScore], list[str]]:
    """Score every available metric; also return the labels of skipped ones."""
    normalized = normalize(snapshot)
    components = []
    for metric, pressure in normalized.pressures:
        score = reserve_score(pressure, table[metric])
        components.append(
            ComponentScore(
                metric=metric,
                raw_value=pressure,
                score=score,
                description=f"{metric.label}: {pressure:.3f} (score {score:.3f})",
            )
        )
    return components, [m.label for m in normalized.skipped]


def evaluate(snapshot: RawSnapshot, table: ParamsTable) -> DetailedResult:
    """
    Evaluate a captured snapshot with an already resolved parameter table.

    Raises:
        NoMetricsAvailable: If no metric in ``snapshot`` could be scored.
    """
    components, skipped = score_components(snapshot, table)
    result = aggregate(components)
    level, tier = map_level(result.value)
    logger.debug(
        "Reserve %.4f -> level %d, bottleneck %s",
        result.value,
        level,
        ", ".join(result.bottleneck_names),
    )
    return DetailedResult(
        component_scores=tuple(components),
        overall_value=result.value,
        overall_score=level,
        bottleneck=result.bottleneck_names,
        level_description=tier.description,
        platform=snapshot.platform,
        warnings=tuple(str(w) for w in table.warnings),
        skipped=tuple(skipped),
    )


def evaluate_level(snapshot: RawSnapshot, table: ParamsTable) -> int:
    """Only the overall 0-5 level, for terse output."""
    return evaluate(snapshot, table).overall_score


class PowerReserveMeter:
    """
    Collects a snapshot from a metric source and scores it.

    Parameters are re-resolved from the environment on every evaluation
    unless a ``ParamsCache`` is supplied.
    """

    def __init__(
        self,
        source: MetricSource | None = None,
        policy: OverridePolicy = OverridePolicy.WARN,
        timeout: float = DEFAULT_TIMEOUT,
        cache: ParamsCache | None = None,
    ) -> None:
        self._source = create_source() if source is None else source
        self._policy = policy
        self._timeout = timeout
        self._cache = cache

    @property
    def platform(self) -> Platform:
        return self._source.platform

    def check_platform(self) -> None:
        """Raise ``UnsupportedPlatform`` if the source cannot read anything."""
        if self.platform is Platform.UNSUPPORTED:
            raise UnsupportedPlatform(platform.system() or "Unknown")

    def resolve(self) -> ParamsTable:
        if self._cache is not None:
            return self._cache.get()
        return resolve_params(self.platform, policy=self._policy)

    def evaluate(self) -> DetailedResult:
        """Run one full evaluation against the live host."""
        self.check_platform()
        table = self.resolve()
        snapshot = collect_snapshot(self._source, timeout=self._timeout)
        return evaluate(snapshot, table)

    def level(self) -> int:
        return self.evaluate().overall_score
