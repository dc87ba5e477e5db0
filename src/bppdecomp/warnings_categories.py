"""
Warning category hierarchy for the bppdecomp package.

All warning classes inherit from :class:`BPPWarning`, which itself inherits
from :class:`UserWarning`, so they can be filtered selectively with
``warnings.filterwarnings()``.

Examples
--------
Silence gap warnings from the sample builder but keep the rest:

>>> import warnings
>>> from bppdecomp import DataWarning
>>> warnings.filterwarnings('ignore', category=DataWarning)
"""


class BPPWarning(UserWarning):
    """Base warning class for all bppdecomp package warnings."""
    pass


class NegativeVarianceWarning(BPPWarning):
    """
    Warning raised when a shock variance is estimated as negative.

    A negative transitory variance means income growth is positively
    autocorrelated at lag one; a negative permanent variance means the
    autocovariance is too large relative to the total variance. Either way
    the MA(0) transitory-shock assumption is violated for that sample. The
    estimate is still returned unchanged.
    """
    pass


class DataWarning(BPPWarning):
    """
    Warning raised for data quality issues that do not stop estimation.

    Triggered by gaps in an individual's time sequence when neighbours are
    taken positionally, or by observations dropped for missing values.
    """
    pass


class BootstrapWarning(BPPWarning):
    """
    Warning raised when a noticeable share of bootstrap draws failed.

    Triggered when a stratum fails in more than 5% of replicates or when the
    run stopped early at its deadline.
    """
    pass
