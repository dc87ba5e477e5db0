"""
Inference methods for the shock decomposition.

Modules
-------
cluster_bootstrap
    Individual-level (cluster) bootstrap of the stratified estimates.
"""

from .cluster_bootstrap import (
    BootstrapDistribution,
    ClusterBootstrapResult,
    CoefficientSummary,
    ReplicateOutcome,
    cluster_bootstrap,
)

__all__ = [
    'cluster_bootstrap',
    'ClusterBootstrapResult',
    'BootstrapDistribution',
    'CoefficientSummary',
    'ReplicateOutcome',
]
