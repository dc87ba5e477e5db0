"""
Pytest configuration file providing shared fixtures and helper functions.
"""
import numpy as np
import pandas as pd
import pytest

from bppdecomp import EstimationSample, ProcessParams, simulate_panel


def make_sample(dy, dc, lag, lead, groups=None, ids=None):
    """Build an EstimationSample directly from arrays (one record per individual by default)."""
    n = len(dy)
    return EstimationSample(
        ids=np.arange(n) if ids is None else np.asarray(ids, dtype=object),
        times=np.ones(n, dtype=np.int64),
        groups=np.full(n, None, dtype=object) if groups is None else np.asarray(groups, dtype=object),
        d_log_income=np.asarray(dy, dtype=float),
        d_log_consumption=np.asarray(dc, dtype=float),
        d_log_income_lag1=np.asarray(lag, dtype=float),
        d_log_income_lead1=np.asarray(lead, dtype=float),
        stratified=groups is not None,
    )


@pytest.fixture
def transitory_panel():
    """Unstratified panel with both shocks and partial insurance."""
    return simulate_panel(
        n_individuals=300,
        n_periods=6,
        params=ProcessParams(
            sigma_permanent=0.3, sigma_transitory=0.3, psi=0.6, phi=0.3, sigma_noise=0.05
        ),
        seed=7,
    )


@pytest.fixture
def formal_informal_panel():
    """
    Two strata: formal workers are fully insured (zero consumption growth);
    informal workers face larger transitory shocks and pass half of them
    into consumption.
    """
    return simulate_panel(
        n_individuals=1000,
        n_periods=6,
        groups={
            'formal': ProcessParams(
                sigma_permanent=0.3, sigma_transitory=0.3, psi=0.0, phi=0.0
            ),
            'informal': ProcessParams(
                sigma_permanent=0.3, sigma_transitory=0.5, psi=0.7, phi=0.5
            ),
        },
        seed=20260219,
    )


@pytest.fixture
def provider_panel(formal_informal_panel):
    """The formal/informal panel under survey-style column names."""
    return formal_informal_panel.rename(columns={
        'id': 'idind',
        'time': 'year',
        'd_log_income': 'dlny_lab',
        'd_log_consumption': 'dlnc',
        'group': 'informal',
    })
