"""
bppdecomp: Permanent/Transitory Income Shock Decomposition
==========================================================

Python implementation of the covariance-restriction decomposition of
income growth into permanent and transitory shocks, and of the consumption
responses to each shock, in the spirit of Blundell, Pistaferri and Preston
(2008).

Key Features
------------
- Sample construction: per-individual lag/lead of income growth with
  explicit handling of duplicates, gaps and missing values
- Shock variances from the variance and first autocovariance of income
  growth under an MA(0) transitory shock
- Consumption responses ``psi`` (permanent) and ``phi`` (transitory) from
  cross-covariances of consumption and income growth
- Stratified estimation (e.g. formal vs. informal workers) alongside the
  pooled sample, with unidentified strata reported instead of aborting
- Cluster (individual-level) bootstrap with reproducible seeding, optional
  worker threads and explicit success/failure accounting

Main Components
---------------
decompose : function
    Main entry point. See ``help(decompose)``.
DecompositionResults : class
    Results container with ``summary()`` and ``to_dataframe()``.
EstimationConfig : class
    Immutable settings passed to every stage.
Exception hierarchy : module
    Typed exceptions inheriting from ``BPPError``.

Quick Start
-----------
>>> from bppdecomp import decompose, simulate_panel, ProcessParams
>>> panel = simulate_panel(
...     n_individuals=500, n_periods=6, seed=1,
...     groups={'formal': ProcessParams(0.1, 0.05, psi=0.3, phi=0.05),
...             'informal': ProcessParams(0.1, 0.2, psi=0.6, phi=0.4)},
... )
>>> results = decompose(panel, grouping_key='group', bootstrap=True,
...                     bootstrap_replicates=200, random_seed=20260219)
>>> print(results.summary())  # doctest: +SKIP

References
----------
Blundell, R., Pistaferri, L., and Preston, I. (2008). Consumption
Inequality and Partial Insurance. American Economic Review, 98(5),
1887-1921.
"""

# Export main function
from .core import decompose

# Configuration and results
from .config import EstimationConfig
from .results import DecompositionResults

# Pipeline stages
from .sample import (
    EstimationSample,
    Observation,
    build_estimation_sample,
    observations_from_frame,
)
from .estimation import (
    IdentifiedSample,
    ResponseCoefficients,
    ShockMoments,
    estimate_response_coefficients,
    estimate_shock_moments,
)
from .stratified import (
    StratifiedEstimates,
    StratumEstimate,
    StratumUnavailable,
    estimate_by_group,
)
from .inference import (
    BootstrapDistribution,
    ClusterBootstrapResult,
    CoefficientSummary,
    cluster_bootstrap,
)
from .simulation import ProcessParams, simulate_panel

# Export exception classes
from .exceptions import (
    BootstrapError,
    BPPError,
    DegenerateVarianceError,
    DuplicateTimeError,
    InsufficientDataError,
    InvalidParameterError,
    MissingRequiredColumnError,
)

# Export warning classes
from .warnings_categories import (
    BootstrapWarning,
    BPPWarning,
    DataWarning,
    NegativeVarianceWarning,
)

__all__ = [
    # Main function
    'decompose',
    'DecompositionResults',
    'EstimationConfig',
    # Pipeline stages
    'Observation',
    'EstimationSample',
    'build_estimation_sample',
    'observations_from_frame',
    'ShockMoments',
    'IdentifiedSample',
    'ResponseCoefficients',
    'estimate_shock_moments',
    'estimate_response_coefficients',
    'StratifiedEstimates',
    'StratumEstimate',
    'StratumUnavailable',
    'estimate_by_group',
    'cluster_bootstrap',
    'ClusterBootstrapResult',
    'BootstrapDistribution',
    'CoefficientSummary',
    # Simulation
    'ProcessParams',
    'simulate_panel',
    # Exception classes
    'BPPError',
    'InvalidParameterError',
    'MissingRequiredColumnError',
    'DuplicateTimeError',
    'InsufficientDataError',
    'DegenerateVarianceError',
    'BootstrapError',
    # Warning classes
    'BPPWarning',
    'NegativeVarianceWarning',
    'DataWarning',
    'BootstrapWarning',
]
