"""
Stratified estimation: the pooled sample plus each group on its own.

A stratum whose shock variances cannot be identified is recorded as
unavailable together with the error that made it so; the remaining strata
are still estimated.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Hashable, Iterator, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import EstimationConfig
from .estimation import (
    ResponseCoefficients,
    ShockMoments,
    estimate_response_coefficients,
    estimate_shock_moments,
)
from .exceptions import DegenerateVarianceError, InsufficientDataError
from .sample import EstimationSample
from .warning_registry import WarningRegistry

logger = logging.getLogger('bppdecomp')

# Identification failures that degrade a stratum instead of aborting the run.
_STRATUM_FAILURES = (InsufficientDataError, DegenerateVarianceError)


@dataclass(frozen=True)
class StratumEstimate:
    """Moments and response coefficients of one stratum."""
    label: Hashable
    moments: ShockMoments
    coefficients: ResponseCoefficients
    n_obs: int
    n_individuals: int

    available = True


@dataclass(frozen=True)
class StratumUnavailable:
    """
    Marker for a stratum whose coefficients are not identified.

    Attributes
    ----------
    reason : str
        Name of the triggering error class, e.g. ``'DegenerateVarianceError'``.
    message : str
        The error message.
    moments : ShockMoments or None
        Shock moments when they were computed before the failure.
    """
    label: Hashable
    reason: str
    message: str
    n_obs: int
    moments: Optional[ShockMoments] = None

    available = False


StratumResult = Union[StratumEstimate, StratumUnavailable]


class StratifiedEstimates(Mapping):
    """
    Ordered mapping from stratum label to :class:`StratumEstimate` or
    :class:`StratumUnavailable`. The pooled entry comes first, then the
    groups in sorted order.
    """

    def __init__(self, results: Dict[Hashable, StratumResult], pooled_label: Hashable):
        self._results = dict(results)
        self._pooled_label = pooled_label

    def __getitem__(self, label: Hashable) -> StratumResult:
        return self._results[label]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        parts = []
        for label, res in self._results.items():
            state = 'ok' if res.available else f'unavailable: {res.reason}'
            parts.append(f'{label!r}: {state}')
        return f"StratifiedEstimates({{{', '.join(parts)}}})"

    @property
    def pooled_label(self) -> Hashable:
        return self._pooled_label

    @property
    def pooled(self) -> StratumResult:
        return self._results[self._pooled_label]

    @property
    def available(self) -> List[Hashable]:
        """Labels with estimated coefficients."""
        return [k for k, v in self._results.items() if v.available]

    @property
    def unavailable(self) -> Dict[Hashable, str]:
        """Label to failure reason for strata without coefficients."""
        return {k: v.reason for k, v in self._results.items() if not v.available}

    def to_frame(self) -> pd.DataFrame:
        """
        One row per stratum with moments, coefficients and availability.

        Unavailable strata have NaN coefficients and their ``reason`` set.
        """
        rows = []
        for label, res in self._results.items():
            row = {
                'stratum': label,
                'available': res.available,
                'reason': None if res.available else res.reason,
                'n_obs': res.n_obs,
            }
            moments = res.moments
            row.update(moments.to_dict() if moments is not None else {
                'variance_total': np.nan,
                'autocovariance_lag1': np.nan,
                'variance_transitory': np.nan,
                'variance_permanent': np.nan,
            })
            if res.available:
                row.update(res.coefficients.to_dict())
            else:
                row.update({'psi': np.nan, 'phi': np.nan})
            rows.append(row)
        return pd.DataFrame(rows)


def estimate_stratum(
    sample: EstimationSample,
    label: Hashable,
    epsilon: float,
    *,
    registry: Optional[WarningRegistry] = None,
    replicate: Optional[int] = None,
) -> StratumResult:
    """Run moment and response estimation on one stratum, absorbing identification failures."""
    moments = None
    try:
        identified = estimate_shock_moments(
            sample, registry=registry, stratum=label, replicate=replicate
        )
        moments = identified.moments
        coefficients = estimate_response_coefficients(identified, epsilon)
    except _STRATUM_FAILURES as exc:
        return StratumUnavailable(
            label=label,
            reason=type(exc).__name__,
            message=str(exc),
            n_obs=sample.n_obs,
            moments=moments,
        )
    return StratumEstimate(
        label=label,
        moments=moments,
        coefficients=coefficients,
        n_obs=sample.n_obs,
        n_individuals=sample.n_individuals,
    )


def estimate_by_group(
    sample: EstimationSample,
    config: Optional[EstimationConfig] = None,
    *,
    labels: Optional[Sequence[Hashable]] = None,
    registry: Optional[WarningRegistry] = None,
    replicate: Optional[int] = None,
) -> StratifiedEstimates:
    """
    Estimate the pooled sample and every group separately.

    Parameters
    ----------
    sample : EstimationSample
        Output of :func:`~bppdecomp.sample.build_estimation_sample`.
    config : EstimationConfig, optional
        Supplies ``epsilon`` and ``pooled_label``.
    labels : sequence, optional
        Group labels to estimate. Defaults to the labels present in
        *sample*; a label with no records is reported as unavailable.
    registry : WarningRegistry, optional
        Buffer for identification warnings (used inside the bootstrap).
    replicate : int, optional
        Bootstrap replicate index, for warning bookkeeping.

    Returns
    -------
    StratifiedEstimates
        Pooled entry first, then one entry per group label.
    """
    config = config if config is not None else EstimationConfig()
    pooled = config.pooled_label

    results: Dict[Hashable, StratumResult] = {}
    results[pooled] = estimate_stratum(
        sample, pooled, config.epsilon, registry=registry, replicate=replicate
    )
    for label in (sample.group_labels if labels is None else labels):
        results[label] = estimate_stratum(
            sample.restrict(label), label, config.epsilon,
            registry=registry, replicate=replicate,
        )

    if replicate is None:
        for label, res in results.items():
            if res.available:
                logger.info(
                    "Stratum %r: psi=%.4f phi=%.4f (n=%d)",
                    label, res.coefficients.psi, res.coefficients.phi, res.n_obs,
                )
            else:
                logger.info("Stratum %r unavailable: %s", label, res.message)
    return StratifiedEstimates(results, pooled)
