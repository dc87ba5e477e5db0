"""
Synthetic panels from the permanent-transitory income process.

Log income is a random walk in the permanent component plus an MA(0)
transitory component, so income growth is

    dy_it = zeta_it + eps_it - eps_i,t-1

and consumption growth responds with ``dc_it = psi * zeta_it + phi * eps_it``
plus optional measurement noise.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Mapping, Optional

import numpy as np
import pandas as pd

from .exceptions import InvalidParameterError


@dataclass(frozen=True)
class ProcessParams:
    """Parameters of one stratum's income and consumption process.

    Parameters
    ----------
    sigma_permanent : float
        Standard deviation of the permanent shock ``zeta``.
    sigma_transitory : float
        Standard deviation of the transitory shock ``eps``.
    psi : float
        Consumption response to permanent shocks.
    phi : float
        Consumption response to transitory shocks.
    sigma_noise : float
        Standard deviation of i.i.d. noise added to consumption growth.
    """
    sigma_permanent: float = 0.1
    sigma_transitory: float = 0.1
    psi: float = 1.0
    phi: float = 0.0
    sigma_noise: float = 0.0

    def __post_init__(self):
        for name in ('sigma_permanent', 'sigma_transitory', 'sigma_noise'):
            if getattr(self, name) < 0:
                raise InvalidParameterError(f"{name} must be non-negative")


def simulate_panel(
    n_individuals: int = 100,
    n_periods: int = 5,
    params: Optional[ProcessParams] = None,
    groups: Optional[Mapping[Hashable, ProcessParams]] = None,
    seed: int = 0,
    start_time: int = 1,
) -> pd.DataFrame:
    """
    Simulate a balanced panel of income and consumption growth.

    Parameters
    ----------
    n_individuals : int
        Individuals per group (or in total when *groups* is None).
    n_periods : int
        Periods of observed growth per individual.
    params : ProcessParams, optional
        Process for an unstratified panel. Ignored when *groups* is given.
    groups : mapping, optional
        Group label to :class:`ProcessParams`; each group gets
        *n_individuals* individuals and a ``group`` column is added.
    seed : int
        Seed for :func:`numpy.random.default_rng`.
    start_time : int
        Index of the first period.

    Returns
    -------
    pd.DataFrame
        Columns ``id``, ``time``, ``d_log_income``, ``d_log_consumption``
        (and ``group``), plus the true shocks ``zeta`` and ``eps``.
    """
    if n_individuals < 1 or n_periods < 1:
        raise InvalidParameterError("n_individuals and n_periods must be positive")

    rng = np.random.default_rng(seed)
    processes: Dict[Hashable, ProcessParams] = (
        dict(groups) if groups is not None else {None: params or ProcessParams()}
    )

    frames = []
    next_id = 0
    for label, p in processes.items():
        zeta = rng.normal(0.0, 1.0, size=(n_individuals, n_periods)) * p.sigma_permanent
        # one extra draw for the pre-sample transitory shock eps_{i,0}
        eps = rng.normal(0.0, 1.0, size=(n_individuals, n_periods + 1)) * p.sigma_transitory
        noise = rng.normal(0.0, 1.0, size=(n_individuals, n_periods)) * p.sigma_noise

        dy = zeta + eps[:, 1:] - eps[:, :-1]
        dc = p.psi * zeta + p.phi * eps[:, 1:] + noise

        ids = np.repeat(np.arange(next_id, next_id + n_individuals), n_periods)
        times = np.tile(np.arange(start_time, start_time + n_periods), n_individuals)
        frame = pd.DataFrame({
            'id': ids,
            'time': times,
            'd_log_income': dy.ravel(),
            'd_log_consumption': dc.ravel(),
            'zeta': zeta.ravel(),
            'eps': eps[:, 1:].ravel(),
        })
        if groups is not None:
            frame['group'] = label
        frames.append(frame)
        next_id += n_individuals

    return pd.concat(frames, ignore_index=True)
