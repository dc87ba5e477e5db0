"""Tests for the exception and warning hierarchies.

This module verifies the inheritance structure, message formatting, and
attributes of the classes defined in ``exceptions.py`` and
``warnings_categories.py``.
"""

import warnings

import pytest

from bppdecomp.exceptions import (
    BootstrapError,
    BPPError,
    DegenerateVarianceError,
    DuplicateTimeError,
    InsufficientDataError,
    InvalidParameterError,
    MissingRequiredColumnError,
)
from bppdecomp.warnings_categories import (
    BootstrapWarning,
    BPPWarning,
    DataWarning,
    NegativeVarianceWarning,
)


class TestExceptionHierarchy:
    """Tests for the inheritance structure of exception classes."""

    def test_base_exception(self):
        """Check that ``BPPError`` is the base class for all bppdecomp exceptions."""
        assert issubclass(BPPError, Exception)
        with pytest.raises(BPPError):
            raise BPPError("Test error")

    @pytest.mark.parametrize('exc', [
        InvalidParameterError,
        MissingRequiredColumnError,
        DuplicateTimeError,
        InsufficientDataError,
        DegenerateVarianceError,
        BootstrapError,
    ])
    def test_all_inherit_from_base(self, exc):
        assert issubclass(exc, BPPError)

    def test_catch_any_with_base(self):
        """A single ``except BPPError`` clause catches every package error."""
        try:
            raise DegenerateVarianceError('permanent', 0.0, 1e-3)
        except BPPError as e:
            assert isinstance(e, DegenerateVarianceError)


class TestExceptionAttributes:

    def test_degenerate_variance_message_names_coefficient(self):
        err = DegenerateVarianceError('transitory', 2e-4, 1e-3)
        assert err.component == 'transitory'
        assert err.value == 2e-4
        assert err.epsilon == 1e-3
        assert 'variance_transitory' in str(err)
        assert 'phi' in str(err)

        err = DegenerateVarianceError('permanent', -5e-4, 1e-3)
        assert 'psi' in str(err)

    def test_duplicate_time_ids(self):
        err = DuplicateTimeError("duplicates", ids=[3, 7])
        assert err.ids == [3, 7]
        assert str(err) == "duplicates"
        assert DuplicateTimeError("x").ids == []


class TestWarningHierarchy:

    @pytest.mark.parametrize('category', [
        NegativeVarianceWarning, DataWarning, BootstrapWarning,
    ])
    def test_inherit_from_base(self, category):
        assert issubclass(category, BPPWarning)
        assert issubclass(category, UserWarning)

    def test_selective_filtering(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            warnings.filterwarnings('ignore', category=DataWarning)
            warnings.warn("gap", DataWarning)
            warnings.warn("negative", NegativeVarianceWarning)
        assert [w.category for w in caught] == [NegativeVarianceWarning]
