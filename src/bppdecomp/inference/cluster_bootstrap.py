"""
Cluster bootstrap for the shock decomposition.

Individuals are resampled with replacement and every drawn individual
contributes all of its records, preserving within-individual correlation of
income and consumption growth. Each replicate re-runs the stratified
estimation; a stratum that is not identified in a replicate is logged with
its reason and simply contributes no value.

Replicates are independent: each one gets its own generator spawned from a
single :class:`numpy.random.SeedSequence`, so results are bit-identical for
a given seed whatever the number of worker threads or the completion order.
"""

from __future__ import annotations

import logging
import os
import time
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..config import EstimationConfig
from ..exceptions import BootstrapError, InvalidParameterError
from ..sample import EstimationSample
from ..stratified import StratifiedEstimates, estimate_by_group
from ..warning_registry import WarningRegistry
from ..warnings_categories import BootstrapWarning

logger = logging.getLogger('bppdecomp')

STATISTICS = ('psi', 'phi', 'variance_permanent', 'variance_transitory')

# Failure share above which a stratum gets a BootstrapWarning.
_FAILURE_WARN_RATE = 0.05


def _stat_value(result, statistic: str) -> float:
    if statistic in ('psi', 'phi'):
        return getattr(result.coefficients, statistic)
    return getattr(result.moments, statistic)


@dataclass(frozen=True)
class ReplicateOutcome:
    """Stratified estimates of one bootstrap replicate."""
    replicate: int
    estimates: StratifiedEstimates

    @property
    def failures(self) -> Dict[Hashable, str]:
        """Stratum label to failure reason for this replicate."""
        return self.estimates.unavailable


class BootstrapDistribution(Sequence):
    """
    Ordered per-replicate outcomes of one bootstrap run.

    Holds ``n_requested`` outcomes unless the run stopped early, in which
    case it holds the completed prefix.
    """

    def __init__(self, outcomes: List[ReplicateOutcome], n_requested: int):
        self._outcomes = sorted(outcomes, key=lambda o: o.replicate)
        self.n_requested = n_requested

    def __getitem__(self, idx):
        return self._outcomes[idx]

    def __len__(self) -> int:
        return len(self._outcomes)

    @property
    def n_completed(self) -> int:
        return len(self._outcomes)

    def values(self, label: Hashable, statistic: str = 'psi') -> np.ndarray:
        """Estimates of *statistic* for *label* over successful replicates, in replicate order."""
        if statistic not in STATISTICS:
            raise InvalidParameterError(
                f"statistic must be one of {list(STATISTICS)}, got {statistic!r}"
            )
        out = []
        for outcome in self._outcomes:
            res = outcome.estimates.get(label)
            if res is not None and res.available:
                out.append(_stat_value(res, statistic))
        return np.asarray(out, dtype=float)

    def n_success(self, label: Hashable) -> int:
        return sum(
            1 for o in self._outcomes
            if label in o.estimates and o.estimates[label].available
        )

    def failure_counts(self, label: Hashable) -> Dict[str, int]:
        """Failure reason tally for *label* across completed replicates."""
        counts = Counter(
            o.estimates[label].reason
            for o in self._outcomes
            if label in o.estimates and not o.estimates[label].available
        )
        return dict(counts)


@dataclass(frozen=True)
class CoefficientSummary:
    """
    Bootstrap summary of one statistic in one stratum.

    Attributes
    ----------
    estimate : float
        Point estimate on the original sample (NaN if unavailable there).
    mean, se : float
        Mean and standard deviation (ddof=1) over successful replicates.
    ci_lower, ci_upper : float
        Percentile bounds at ``alpha/2`` and ``1 - alpha/2``.
    pvalue : float
        Two-sided normal p-value of ``estimate / se``.
    n_success, n_completed, n_requested : int
        Successful replicates, replicates that ran and replicates asked for.
        ``success_rate`` is ``n_success / n_completed``; the two counts
        differ from ``n_requested`` only after a deadline stop.
    """
    stratum: Hashable
    statistic: str
    estimate: float
    mean: float
    se: float
    ci_lower: float
    ci_upper: float
    pvalue: float
    n_success: int
    n_completed: int
    n_requested: int
    alpha: float

    @property
    def success_rate(self) -> float:
        return self.n_success / self.n_completed if self.n_completed else float('nan')


@dataclass
class ClusterBootstrapResult:
    """
    Result of a cluster bootstrap run.

    Attributes
    ----------
    point_estimates : StratifiedEstimates
        Estimates on the original sample.
    distribution : BootstrapDistribution
        Per-replicate outcomes.
    summaries : dict
        ``(stratum, statistic)`` to :class:`CoefficientSummary`.
    failure_reasons : dict
        Stratum to ``{reason: count}``.
    n_requested, n_completed : int
        Replicates asked for and actually run.
    n_clusters : int
        Individuals in the original sample.
    seed : int
    alpha : float
    stopped_early : bool
        Whether the deadline cut the run short.
    diagnostics : list of dict
        Aggregated warnings collected during the run.
    elapsed : float
        Wall time in seconds.
    """
    point_estimates: StratifiedEstimates
    distribution: BootstrapDistribution
    summaries: Dict[Tuple[Hashable, str], CoefficientSummary]
    failure_reasons: Dict[Hashable, Dict[str, int]]
    n_requested: int
    n_completed: int
    n_clusters: int
    seed: int
    alpha: float
    stopped_early: bool = False
    diagnostics: List[dict] = field(default_factory=list)
    elapsed: float = 0.0

    def get(self, stratum: Hashable, statistic: str = 'psi') -> CoefficientSummary:
        try:
            return self.summaries[(stratum, statistic)]
        except KeyError:
            raise KeyError(
                f"No bootstrap summary for stratum {stratum!r}, statistic {statistic!r}"
            ) from None

    def success_rate(self, stratum: Hashable) -> float:
        """Share of the completed replicates that identified *stratum*."""
        return self.distribution.n_success(stratum) / self.n_completed

    def to_frame(self) -> pd.DataFrame:
        """One row per (stratum, statistic)."""
        rows = []
        for (label, stat), s in self.summaries.items():
            rows.append({
                'stratum': label,
                'statistic': stat,
                'estimate': s.estimate,
                'boot_mean': s.mean,
                'se': s.se,
                'ci_lower': s.ci_lower,
                'ci_upper': s.ci_upper,
                'pvalue': s.pvalue,
                'n_success': s.n_success,
                'n_completed': s.n_completed,
                'n_requested': s.n_requested,
                'success_rate': s.success_rate,
            })
        return pd.DataFrame(rows)

    def summary(self) -> str:
        """
        Generate human-readable summary of bootstrap results.

        Returns
        -------
        str
            Formatted summary string.
        """
        level = int(round(100 * (1 - self.alpha)))
        lines = [
            "Cluster Bootstrap Results",
            "=" * 70,
            f"Clusters (individuals): {self.n_clusters}",
            f"Replicates: {self.n_completed}/{self.n_requested} completed"
            + (" (stopped at deadline)" if self.stopped_early else ""),
            f"Seed: {self.seed}",
            "-" * 70,
            f"{'stratum':<12}{'coef':<6}{'estimate':>10}{'se':>10}"
            f"{f'[{level}% CI]':>22}{'success':>10}",
        ]
        for (label, stat), s in self.summaries.items():
            if stat not in ('psi', 'phi'):
                continue
            sig = "***" if s.pvalue < 0.01 else "**" if s.pvalue < 0.05 else "*" if s.pvalue < 0.1 else ""
            lines.append(
                f"{str(label):<12}{stat:<6}{s.estimate:>10.4f}{s.se:>10.4f}"
                f"  [{s.ci_lower:>8.4f}, {s.ci_upper:>8.4f}]"
                f"{s.n_success:>6}/{s.n_completed:<4}{sig}"
            )
        for label, reasons in self.failure_reasons.items():
            if reasons:
                detail = ', '.join(f'{k}={v}' for k, v in reasons.items())
                lines.append(f"  {label}: failed replicates: {detail}")
        lines.append("=" * 70)
        return "\n".join(lines)


def _summarize(
    label: Hashable,
    statistic: str,
    point: StratifiedEstimates,
    distribution: BootstrapDistribution,
    alpha: float,
) -> CoefficientSummary:
    values = distribution.values(label, statistic)
    n = len(values)
    point_res = point.get(label)
    estimate = (
        _stat_value(point_res, statistic)
        if point_res is not None and point_res.available else np.nan
    )

    mean = float(values.mean()) if n else np.nan
    if n >= 2:
        se = float(np.std(values, ddof=1))
        ci_lower, ci_upper = (
            float(v) for v in np.percentile(values, [100 * alpha / 2, 100 * (1 - alpha / 2)])
        )
    else:
        se = ci_lower = ci_upper = np.nan

    if np.isfinite(estimate) and np.isfinite(se) and se > 0:
        pvalue = float(2 * stats.norm.sf(abs(estimate / se)))
    else:
        pvalue = np.nan

    return CoefficientSummary(
        stratum=label,
        statistic=statistic,
        estimate=float(estimate),
        mean=mean,
        se=se,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        pvalue=pvalue,
        n_success=n,
        n_completed=distribution.n_completed,
        n_requested=distribution.n_requested,
        alpha=alpha,
    )


def _run_replicate(
    sample: EstimationSample,
    clusters: List[np.ndarray],
    labels: List[Hashable],
    seed_seq: np.random.SeedSequence,
    replicate: int,
    config: EstimationConfig,
    registry: WarningRegistry,
) -> ReplicateOutcome:
    rng = np.random.default_rng(seed_seq)
    n_clusters = len(clusters)
    draws = rng.integers(0, n_clusters, size=n_clusters)
    rows = np.concatenate([clusters[k] for k in draws])
    estimates = estimate_by_group(
        sample.take(rows), config, labels=labels,
        registry=registry, replicate=replicate,
    )
    for label, reason in estimates.unavailable.items():
        logger.debug("Replicate %d: stratum %r unavailable (%s)", replicate, label, reason)
    return ReplicateOutcome(replicate=replicate, estimates=estimates)


def _resolve_workers(n_jobs: int) -> int:
    if n_jobs == -1:
        return os.cpu_count() or 1
    return n_jobs


def cluster_bootstrap(
    sample: EstimationSample,
    config: EstimationConfig,
    *,
    point_estimates: Optional[StratifiedEstimates] = None,
) -> ClusterBootstrapResult:
    """
    Cluster (individual-level) bootstrap of the stratified estimates.

    Parameters
    ----------
    sample : EstimationSample
        Original estimation sample; never modified.
    config : EstimationConfig
        Uses ``bootstrap_replicates``, ``random_seed`` (required),
        ``epsilon``, ``alpha``, ``pooled_label``, ``n_jobs``,
        ``max_seconds`` and ``verbose``.
    point_estimates : StratifiedEstimates, optional
        Estimates on the original sample; computed when omitted.

    Returns
    -------
    ClusterBootstrapResult

    Raises
    ------
    InvalidParameterError
        ``config.random_seed`` is None.
    BootstrapError
        Fewer than 2 individuals, or no replicate completed.

    Notes
    -----
    Each replicate draws G individuals with replacement, G being the number
    of individuals in *sample*. An individual drawn k times contributes its
    records k times. Strata that fail in a replicate are recorded with their
    reason and excluded from that statistic's distribution; the number of
    successful replicates is reported next to every standard error.
    """
    if config.random_seed is None:
        raise InvalidParameterError(
            "cluster_bootstrap() requires an explicit random_seed in the "
            "configuration for reproducible resampling."
        )

    clusters = sample.cluster_rows()
    n_clusters = len(clusters)
    if n_clusters < 2:
        raise BootstrapError(
            f"Cluster bootstrap needs at least 2 individuals, got {n_clusters}"
        )

    labels = sample.group_labels
    if point_estimates is None:
        point_estimates = estimate_by_group(sample, config)

    B = config.bootstrap_replicates
    seeds = np.random.SeedSequence(config.random_seed).spawn(B)
    registry = WarningRegistry(verbose=config.verbose)
    n_workers = _resolve_workers(config.n_jobs)

    start = time.monotonic()
    deadline = None if config.max_seconds is None else start + config.max_seconds

    def expired() -> bool:
        return deadline is not None and time.monotonic() >= deadline

    logger.info(
        "Cluster bootstrap: %d replicates over %d individuals (%d worker(s))",
        B, n_clusters, n_workers,
    )

    outcomes: List[ReplicateOutcome] = []
    if n_workers == 1:
        for rep in range(B):
            if expired():
                break
            outcomes.append(_run_replicate(
                sample, clusters, labels, seeds[rep], rep, config, registry
            ))
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            pending = set()
            next_rep = 0
            while True:
                while next_rep < B and len(pending) < 2 * n_workers and not expired():
                    pending.add(executor.submit(
                        _run_replicate, sample, clusters, labels,
                        seeds[next_rep], next_rep, config, registry,
                    ))
                    next_rep += 1
                if not pending:
                    break
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for fut in done:
                    outcomes.append(fut.result())

    elapsed = time.monotonic() - start
    n_completed = len(outcomes)
    if n_completed == 0:
        raise BootstrapError(
            f"No bootstrap replicate completed within max_seconds={config.max_seconds}"
        )

    distribution = BootstrapDistribution(outcomes, n_requested=B)
    stopped_early = n_completed < B
    if stopped_early:
        registry.collect(
            BootstrapWarning,
            f"Bootstrap stopped at the deadline after {n_completed}/{B} replicates.",
        )

    all_labels = [config.pooled_label] + list(labels)
    failure_reasons = {}
    for label in all_labels:
        failure_reasons[label] = distribution.failure_counts(label)
        n_failed = n_completed - distribution.n_success(label)
        if n_failed / n_completed > _FAILURE_WARN_RATE:
            registry.collect(
                BootstrapWarning,
                f"Stratum {label!r}: {n_failed}/{n_completed} replicates without "
                f"estimates ({failure_reasons[label]}); standard errors use "
                f"{n_completed - n_failed} successful draws.",
                stratum=label,
                context={'failure_rate': n_failed / n_completed},
            )

    summaries = {}
    for label in all_labels:
        for statistic in STATISTICS:
            summaries[(label, statistic)] = _summarize(
                label, statistic, point_estimates, distribution, config.alpha
            )

    registry.flush(total_replicates=n_completed)
    logger.info(
        "Cluster bootstrap finished: %d/%d replicates in %.2fs",
        n_completed, B, elapsed,
    )

    return ClusterBootstrapResult(
        point_estimates=point_estimates,
        distribution=distribution,
        summaries=summaries,
        failure_reasons=failure_reasons,
        n_requested=B,
        n_completed=n_completed,
        n_clusters=n_clusters,
        seed=config.random_seed,
        alpha=config.alpha,
        stopped_early=stopped_early,
        diagnostics=registry.get_diagnostics(),
        elapsed=elapsed,
    )
