"""
Estimation configuration.

A single immutable settings object is passed explicitly to every stage of
the pipeline; nothing is read from module-level state.
"""

from __future__ import annotations

import dataclasses
import numbers
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .exceptions import InvalidParameterError

GroupingKey = Union[str, Callable[[Any], Any], None]

DEFAULT_EPSILON = 1e-3
DEFAULT_REPLICATES = 500
POOLED_LABEL = 'ALL'


@dataclass(frozen=True)
class EstimationConfig:
    """Settings for sample construction, identification and bootstrap.

    Parameters
    ----------
    epsilon : float, default 1e-3
        Shock variances with absolute value below this threshold make the
        corresponding response coefficient unidentified.
    bootstrap_replicates : int, default 500
        Number of cluster bootstrap replicates B.
    random_seed : int, optional
        Seed for the bootstrap. Required whenever a bootstrap is run.
    grouping_key : str, callable or None
        Field name of :class:`~bppdecomp.sample.Observation` (or DataFrame
        column) holding the stratum label, or a callable mapping an
        observation to its label. ``None`` estimates the pooled sample only.
    pooled_label : str, default 'ALL'
        Label of the pooled-sample entry in stratified output.
    alpha : float, default 0.05
        Two-sided level of the bootstrap percentile interval.
    n_jobs : int, default 1
        Worker threads for bootstrap replicates. ``-1`` uses all CPUs.
    max_seconds : float, optional
        Stop submitting replicates once this much wall time has elapsed.
    consecutive_only : bool, default False
        Treat lag/lead neighbours as missing unless their time is exactly
        one period away.
    verbose : {'quiet', 'default', 'verbose'}
        Warning output level inside the bootstrap loop.
    """

    epsilon: float = DEFAULT_EPSILON
    bootstrap_replicates: int = DEFAULT_REPLICATES
    random_seed: Optional[int] = None
    grouping_key: GroupingKey = None
    pooled_label: str = POOLED_LABEL
    alpha: float = 0.05
    n_jobs: int = 1
    max_seconds: Optional[float] = None
    consecutive_only: bool = False
    verbose: str = 'default'

    def __post_init__(self):
        if not self.epsilon > 0:
            raise InvalidParameterError(
                f"epsilon must be positive, got {self.epsilon}"
            )
        if (
            isinstance(self.bootstrap_replicates, bool)
            or not isinstance(self.bootstrap_replicates, numbers.Integral)
            or self.bootstrap_replicates <= 0
        ):
            raise InvalidParameterError(
                f"bootstrap_replicates must be a positive integer, "
                f"got {self.bootstrap_replicates!r}"
            )
        if self.random_seed is not None and (
            isinstance(self.random_seed, bool)
            or not isinstance(self.random_seed, numbers.Integral)
        ):
            raise InvalidParameterError(
                f"random_seed must be an integer, got {self.random_seed!r}"
            )
        if not 0 < self.alpha < 1:
            raise InvalidParameterError(
                f"alpha must lie in (0, 1), got {self.alpha}"
            )
        if (
            isinstance(self.n_jobs, bool)
            or not isinstance(self.n_jobs, numbers.Integral)
            or self.n_jobs == 0
            or self.n_jobs < -1
        ):
            raise InvalidParameterError(
                f"n_jobs must be a positive integer or -1, got {self.n_jobs!r}"
            )
        if self.max_seconds is not None and not self.max_seconds > 0:
            raise InvalidParameterError(
                f"max_seconds must be positive, got {self.max_seconds}"
            )
        if self.grouping_key is not None and not (
            isinstance(self.grouping_key, str) or callable(self.grouping_key)
        ):
            raise InvalidParameterError(
                "grouping_key must be a field name, a callable or None"
            )
        if self.verbose not in ('quiet', 'default', 'verbose'):
            raise InvalidParameterError(
                f"verbose must be 'quiet', 'default' or 'verbose', got {self.verbose!r}"
            )
        # numpy integers (e.g. a seed read from a data file) are stored as int
        object.__setattr__(self, 'bootstrap_replicates', int(self.bootstrap_replicates))
        object.__setattr__(self, 'n_jobs', int(self.n_jobs))
        if self.random_seed is not None:
            object.__setattr__(self, 'random_seed', int(self.random_seed))

    def replace(self, **changes) -> 'EstimationConfig':
        """Return a copy with *changes* applied (validated again)."""
        return dataclasses.replace(self, **changes)
