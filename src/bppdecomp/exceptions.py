"""
Exception Classes Module

Defines exception hierarchy for the bppdecomp package.
"""

import math


class BPPError(Exception):
    """
    Base exception class for all bppdecomp package errors.

    All custom exceptions in the bppdecomp package inherit from this class,
    allowing users to catch any bppdecomp-specific error with:

        try:
            results = decompose(...)
        except BPPError as e:
            # Handle any bppdecomp error
            print(f"bppdecomp error: {e}")
    """
    pass


class InvalidParameterError(BPPError):
    """
    Exception raised when input parameter validation fails.

    Common triggers include:

    - Non-positive epsilon or replicate count
    - alpha outside the open interval (0, 1)
    - Non-integer time values or non-numeric growth columns
    - Missing group labels when a grouping key is given
    - A group label that collides with the pooled-sample label
    """
    pass


class MissingRequiredColumnError(BPPError):
    """
    Exception raised when the input DataFrame is missing required columns.

    Required columns are the individual identifier, the time index, log
    income growth, log consumption growth and (if a column name is given as
    grouping key) the group column.

    Examples
    --------
    >>> observations_from_frame(df, id='pid')  # doctest: +SKIP
    MissingRequiredColumnError: Required column(s) not found in data: ['pid']
    """
    pass


class DuplicateTimeError(BPPError):
    """
    Exception raised when an individual has two observations for one period.

    Lag and lead neighbours are only defined when ``time`` is unique within
    each individual. The error is structural: it signals a panel construction
    bug upstream, so it is raised immediately rather than degrading the
    estimate. The caller decides whether to drop the listed individuals or
    abort.

    Attributes
    ----------
    ids : list
        Individual identifiers with duplicated time values.
    """

    def __init__(self, message: str, ids=None):
        super().__init__(message)
        self.ids = list(ids) if ids is not None else []


class InsufficientDataError(BPPError):
    """
    Exception raised when a sample or stratum has fewer than 2 observations.

    Sample variances and covariances with denominator n-1 are undefined
    below two observations. At the stratified level this error marks the
    stratum as unavailable instead of aborting the run.
    """
    pass


class DegenerateVarianceError(BPPError):
    """
    Exception raised when a shock variance is within epsilon of zero or is
    not finite.

    ``phi`` divides by the transitory variance and ``psi`` by the permanent
    variance; values near zero make the ratio numerically meaningless, and
    an overflowed (inf or NaN) moment makes it undefined.

    Attributes
    ----------
    component : str
        ``'transitory'`` or ``'permanent'``.
    value : float
        The offending variance estimate.
    epsilon : float
        Threshold in force when the error was raised.
    """

    def __init__(self, component: str, value: float, epsilon: float):
        self.component = component
        self.value = value
        self.epsilon = epsilon
        if math.isfinite(value):
            problem = f"is within epsilon={epsilon:g} of zero"
        else:
            problem = "is not finite"
        super().__init__(
            f"variance_{component}={value:.6g} {problem}; the "
            f"{'phi' if component == 'transitory' else 'psi'} "
            f"coefficient is not identified in this sample."
        )


class BootstrapError(BPPError):
    """
    Exception raised when the cluster bootstrap cannot run at all.

    Trigger conditions include:

    - Fewer than 2 individuals in the estimation sample
    - No replicate completed before the deadline

    Individual replicate or stratum failures never raise this error; they
    are recorded in the bootstrap log.
    """
    pass
