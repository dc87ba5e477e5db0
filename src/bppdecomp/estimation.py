"""
Estimation Module

Covariance-restriction estimators for the permanent-transitory income
process and the consumption responses to each shock.

Income growth is modelled as ``dy_t = zeta_t + eps_t - eps_{t-1}`` with a
permanent shock ``zeta`` and an MA(0) transitory shock ``eps``. Then

    var(dy_t)              = var(zeta) + 2 var(eps)
    cov(dy_t, dy_{t-1})    = -var(eps)

and with consumption growth ``dc_t = psi zeta_t + phi eps_t + xi_t``

    cov(dc_t, dy_{t+1})    = -phi var(eps)
    cov(dc_t, dy_t)        = psi var(zeta) + phi var(eps)
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Hashable, Optional, Tuple

import numpy as np

from .config import DEFAULT_EPSILON
from .exceptions import DegenerateVarianceError, InsufficientDataError
from .sample import EstimationSample
from .warning_registry import WarningRegistry
from .warnings_categories import NegativeVarianceWarning

logger = logging.getLogger('bppdecomp')


def sample_covariance(x: np.ndarray, y: np.ndarray) -> float:
    """Unbiased sample covariance (denominator n-1)."""
    n = x.shape[0]
    if n < 2:
        raise InsufficientDataError(
            f"Covariance needs at least 2 observations, got {n}"
        )
    return float(np.dot(x - x.mean(), y - y.mean()) / (n - 1))


@dataclass(frozen=True)
class ShockMoments:
    """
    Income-growth moments and the implied shock variances of one sample.

    Attributes
    ----------
    variance_total : float
        Sample variance of income growth.
    autocovariance_lag1 : float
        Sample covariance of income growth with its one-period lag.
    variance_transitory : float
        ``-autocovariance_lag1``.
    variance_permanent : float
        ``variance_total - 2 * variance_transitory``.
    n_obs : int
        Records the moments were computed from.
    """
    variance_total: float
    autocovariance_lag1: float
    variance_transitory: float
    variance_permanent: float
    n_obs: int

    @property
    def negative_components(self) -> Tuple[str, ...]:
        """Names of the shock variances estimated below zero."""
        out = []
        if self.variance_transitory < 0:
            out.append('transitory')
        if self.variance_permanent < 0:
            out.append('permanent')
        return tuple(out)

    @property
    def assumption_violated(self) -> bool:
        """True when a negative variance contradicts the MA(0) transitory process."""
        return bool(self.negative_components)

    def to_dict(self) -> Dict[str, float]:
        return {
            'variance_total': self.variance_total,
            'autocovariance_lag1': self.autocovariance_lag1,
            'variance_transitory': self.variance_transitory,
            'variance_permanent': self.variance_permanent,
        }


@dataclass(frozen=True)
class IdentifiedSample:
    """
    A sample bundled with the shock moments computed from it.

    Produced by :func:`estimate_shock_moments` and required by
    :func:`estimate_response_coefficients`, so response coefficients are
    always derived from moments of the same records.
    """
    sample: EstimationSample
    moments: ShockMoments


@dataclass(frozen=True)
class ResponseCoefficients:
    """
    Consumption pass-through of permanent (psi) and transitory (phi) shocks.

    Attributes
    ----------
    psi : float
    phi : float
    cov_contemp : float
        cov(consumption growth, income growth).
    cov_lead1 : float
        cov(consumption growth, next-period income growth).
    n_obs : int
    """
    psi: float
    phi: float
    cov_contemp: float
    cov_lead1: float
    n_obs: int

    def to_dict(self) -> Dict[str, float]:
        return {'psi': self.psi, 'phi': self.phi}


def estimate_shock_moments(
    sample: EstimationSample,
    *,
    registry: Optional[WarningRegistry] = None,
    stratum: Hashable = None,
    replicate: Optional[int] = None,
) -> IdentifiedSample:
    """
    Estimate permanent and transitory shock variances.

    Parameters
    ----------
    sample : EstimationSample
        Sample or stratum with at least 2 records.
    registry : WarningRegistry, optional
        Buffer for :class:`NegativeVarianceWarning`. When omitted the
        warning is emitted immediately.
    stratum, replicate : optional
        Labels attached to buffered warnings.

    Returns
    -------
    IdentifiedSample
        The input sample together with its :class:`ShockMoments`.

    Raises
    ------
    InsufficientDataError
        Fewer than 2 records.

    Notes
    -----
    Negative variance estimates are returned as computed, never clamped.
    """
    n = sample.n_obs
    if n < 2:
        raise InsufficientDataError(
            f"Shock moments need at least 2 observations"
            f"{'' if stratum is None else f' in stratum {stratum!r}'}, got {n}"
        )

    dy = sample.d_log_income
    variance_total = sample_covariance(dy, dy)
    autocovariance_lag1 = sample_covariance(dy, sample.d_log_income_lag1)
    variance_transitory = -autocovariance_lag1
    variance_permanent = variance_total - 2.0 * variance_transitory

    moments = ShockMoments(
        variance_total=variance_total,
        autocovariance_lag1=autocovariance_lag1,
        variance_transitory=variance_transitory,
        variance_permanent=variance_permanent,
        n_obs=n,
    )

    for component in moments.negative_components:
        value = getattr(moments, f'variance_{component}')
        message = (
            f"Negative {component} shock variance ({value:.4g}): the MA(0) "
            f"transitory-shock assumption is violated in this sample."
        )
        if registry is not None:
            registry.collect(
                NegativeVarianceWarning,
                message,
                stratum=stratum,
                replicate=replicate,
                context={f'variance_{component}': value},
            )
        else:
            where = '' if stratum is None else f" [stratum {stratum!r}]"
            warnings.warn(message + where, NegativeVarianceWarning, stacklevel=2)

    return IdentifiedSample(sample=sample, moments=moments)


def estimate_response_coefficients(
    identified: IdentifiedSample,
    epsilon: float = DEFAULT_EPSILON,
) -> ResponseCoefficients:
    """
    Estimate consumption responses to permanent and transitory shocks.

    ``phi = -cov(dc, dy_lead) / var_transitory`` and
    ``psi = (cov(dc, dy) - phi * var_transitory) / var_permanent``.

    Parameters
    ----------
    identified : IdentifiedSample
        Output of :func:`estimate_shock_moments`.
    epsilon : float, default 1e-3
        Degenerate-variance threshold.

    Returns
    -------
    ResponseCoefficients

    Raises
    ------
    DegenerateVarianceError
        ``|variance_transitory| < epsilon`` or ``|variance_permanent| < epsilon``,
        or either variance is not finite (overflow in the moments).
    TypeError
        *identified* is not an :class:`IdentifiedSample`.
    """
    if not isinstance(identified, IdentifiedSample):
        raise TypeError(
            "estimate_response_coefficients() expects the IdentifiedSample "
            f"returned by estimate_shock_moments(), got {type(identified).__name__}"
        )
    sample, moments = identified.sample, identified.moments

    dc = sample.d_log_consumption
    cov_contemp = sample_covariance(dc, sample.d_log_income)
    cov_lead1 = sample_covariance(dc, sample.d_log_income_lead1)

    var_t = moments.variance_transitory
    var_p = moments.variance_permanent
    if not np.isfinite(var_t) or abs(var_t) < epsilon:
        raise DegenerateVarianceError('transitory', var_t, epsilon)
    phi = -cov_lead1 / var_t

    if not np.isfinite(var_p) or abs(var_p) < epsilon:
        raise DegenerateVarianceError('permanent', var_p, epsilon)
    psi = (cov_contemp - phi * var_t) / var_p

    return ResponseCoefficients(
        psi=float(psi),
        phi=float(phi),
        cov_contemp=cov_contemp,
        cov_lead1=cov_lead1,
        n_obs=sample.n_obs,
    )
