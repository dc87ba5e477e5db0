"""
Results Container Module

Defines the DecompositionResults class for storing, displaying, and
exporting decomposition results.
"""

from typing import Hashable, Optional

import numpy as np
import pandas as pd

from .config import EstimationConfig
from .inference.cluster_bootstrap import ClusterBootstrapResult
from .sample import EstimationSample
from .stratified import StratifiedEstimates


class DecompositionResults:
    """
    Container for shock decomposition results.

    All core attributes are read-only properties.

    Attributes
    ----------
    estimates : StratifiedEstimates
        Point estimates for the pooled sample and each stratum.
    bootstrap : ClusterBootstrapResult or None
        Bootstrap inference, when requested.
    config : EstimationConfig
        Configuration the results were produced with.
    n_obs, n_individuals : int
        Size of the estimation sample.
    n_dropped : int
        Records dropped for a missing lag, lead or growth value.

    Methods
    -------
    summary() : str
        Formatted results summary.
    to_dataframe() : pd.DataFrame
        One row per stratum, with bootstrap columns when available.
    to_csv(path) : None
        Writes ``to_dataframe()`` to CSV.

    Examples
    --------
    >>> from bppdecomp import decompose, simulate_panel
    >>> panel = simulate_panel(n_individuals=200, n_periods=6, seed=1)
    >>> results = decompose(panel, bootstrap=True, random_seed=20260219)
    >>> print(results.summary())  # doctest: +SKIP
    >>> results.psi('ALL')  # doctest: +SKIP
    """

    def __init__(
        self,
        estimates: StratifiedEstimates,
        sample: EstimationSample,
        config: EstimationConfig,
        bootstrap: Optional[ClusterBootstrapResult] = None,
    ):
        self._estimates = estimates
        self._sample = sample
        self._config = config
        self._bootstrap = bootstrap

    @property
    def estimates(self) -> StratifiedEstimates:
        return self._estimates

    @property
    def bootstrap(self) -> Optional[ClusterBootstrapResult]:
        return self._bootstrap

    @property
    def config(self) -> EstimationConfig:
        return self._config

    @property
    def sample(self) -> EstimationSample:
        return self._sample

    @property
    def n_obs(self) -> int:
        return self._sample.n_obs

    @property
    def n_individuals(self) -> int:
        return self._sample.n_individuals

    @property
    def n_dropped(self) -> int:
        return self._sample.n_dropped

    def psi(self, stratum: Hashable = None) -> float:
        """Point estimate of psi; NaN when the stratum is unavailable."""
        return self._coef(stratum, 'psi')

    def phi(self, stratum: Hashable = None) -> float:
        """Point estimate of phi; NaN when the stratum is unavailable."""
        return self._coef(stratum, 'phi')

    def _coef(self, stratum, name):
        label = self._config.pooled_label if stratum is None else stratum
        res = self._estimates[label]
        return getattr(res.coefficients, name) if res.available else np.nan

    def to_dataframe(self) -> pd.DataFrame:
        frame = self._estimates.to_frame()
        if self._bootstrap is None:
            return frame
        for stat in ('psi', 'phi'):
            cols = {'se': [], 'ci_lower': [], 'ci_upper': [], 'pvalue': []}
            for label in frame['stratum']:
                s = self._bootstrap.get(label, stat)
                cols['se'].append(s.se)
                cols['ci_lower'].append(s.ci_lower)
                cols['ci_upper'].append(s.ci_upper)
                cols['pvalue'].append(s.pvalue)
            for key, values in cols.items():
                frame[f'{stat}_{key}'] = values
        frame['boot_success'] = [
            self._bootstrap.distribution.n_success(label) for label in frame['stratum']
        ]
        frame['boot_completed'] = self._bootstrap.n_completed
        frame['boot_requested'] = self._bootstrap.n_requested
        return frame

    def to_csv(self, path: str):
        self.to_dataframe().to_csv(path, index=False)

    def summary(self) -> str:
        """
        Formatted results summary.

        Unavailable strata are listed with the error that made them so, and
        every bootstrap standard error is shown with its success count out
        of the completed replicates.
        """
        sep_line = "=" * 78
        sub_line = "-" * 78

        output = []
        output.append(sep_line)
        output.append("              Permanent / Transitory Shock Decomposition")
        output.append(sep_line)
        output.append(f"Observations: {self.n_obs}   Individuals: {self.n_individuals}"
                      f"   Dropped (missing lag/lead): {self.n_dropped}")
        output.append(f"Degenerate-variance threshold: {self._config.epsilon:g}")
        if self._bootstrap is not None:
            b = self._bootstrap
            output.append(
                f"Cluster bootstrap: {b.n_completed}/{b.n_requested} replicates, "
                f"seed={b.seed}"
                + (" (stopped at deadline)" if b.stopped_early else "")
            )
        output.append("")

        for label, res in self._estimates.items():
            output.append(sub_line)
            output.append(f"Stratum: {label}   (n={res.n_obs})")
            output.append(sub_line)
            if res.moments is not None:
                m = res.moments
                output.append(f"var(dy):          {m.variance_total:>10.4f}")
                output.append(f"cov(dy, dy_-1):   {m.autocovariance_lag1:>10.4f}")
                flag_t = "  (negative)" if m.variance_transitory < 0 else ""
                flag_p = "  (negative)" if m.variance_permanent < 0 else ""
                output.append(f"var transitory:   {m.variance_transitory:>10.4f}{flag_t}")
                output.append(f"var permanent:    {m.variance_permanent:>10.4f}{flag_p}")
            if not res.available:
                output.append(f"Unavailable ({res.reason}): {res.message}")
                continue
            for name in ('psi', 'phi'):
                value = getattr(res.coefficients, name)
                line = f"{name}:              {value:>10.4f}"
                if self._bootstrap is not None:
                    s = self._bootstrap.get(label, name)
                    requested = (
                        f", {s.n_requested} requested" if s.n_completed < s.n_requested else ""
                    )
                    line += (
                        f"  se={s.se:.4f}  [{s.ci_lower:.4f}, {s.ci_upper:.4f}]"
                        f"  ({s.n_success}/{s.n_completed} completed replicates{requested})"
                    )
                output.append(line)

        output.append(sep_line)
        return "\n".join(output)

    def __repr__(self) -> str:
        return (
            f"DecompositionResults(n_obs={self.n_obs}, strata={list(self._estimates)}, "
            f"bootstrap={self._bootstrap is not None})"
        )
