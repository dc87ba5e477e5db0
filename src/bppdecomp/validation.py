"""
Validation Module

Input checks for the panel handed over by the data provider: required
columns, numeric growth variables, integer time index, unique
(individual, time) pairs and group labels.
"""

import warnings
from typing import Hashable, List

import numpy as np
import pandas as pd

from .exceptions import (
    DuplicateTimeError,
    InvalidParameterError,
    MissingRequiredColumnError,
)
from .warnings_categories import DataWarning

GROWTH_COLUMNS = ('d_log_income', 'd_log_consumption')


def _validate_required_columns(data: pd.DataFrame, required: List[str]) -> None:
    """
    Validate existence of required columns
    """
    missing_cols = [col for col in required if col not in data.columns]

    if missing_cols:
        raise MissingRequiredColumnError(
            f"Required column(s) not found in data: {missing_cols}. "
            f"Available columns: {list(data.columns)}"
        )


def _validate_growth_dtype(data: pd.DataFrame, column: str) -> pd.Series:
    """
    Coerce a growth column to float, rejecting text and infinite values.

    ``None`` entries become NaN (missing). Anything else that is not
    numeric raises :class:`InvalidParameterError`.
    """
    values = data[column]
    if not pd.api.types.is_numeric_dtype(values.dtype) or values.dtype == 'bool':
        try:
            values = pd.to_numeric(values, errors='raise')
        except (ValueError, TypeError) as exc:
            raise InvalidParameterError(
                f"Column '{column}' must be numeric (log growth rates). "
                f"Found dtype: '{data[column].dtype}'. "
                f"Convert it first, e.g. pd.to_numeric(data['{column}'], errors='coerce')."
            ) from exc
    values = values.astype(float)

    n_inf = int(np.isinf(values.to_numpy()).sum())
    if n_inf > 0:
        raise InvalidParameterError(
            f"Column '{column}' contains {n_inf} infinite value(s). "
            f"Log growth of a zero level is undefined; set these to NaN upstream."
        )
    return values


def _validate_time_index(data: pd.DataFrame, column: str = 'time') -> pd.Series:
    """
    Validate the panel time index and return it as int64.

    Floats are accepted when every value is integral (e.g. ``2001.0``).
    """
    values = data[column]
    if values.isna().any():
        n_missing = int(values.isna().sum())
        raise InvalidParameterError(
            f"Time column '{column}' has {n_missing} missing value(s); "
            f"every observation needs a period index."
        )
    if pd.api.types.is_integer_dtype(values.dtype):
        return values.astype(np.int64)
    try:
        numeric = pd.to_numeric(values, errors='raise').astype(float)
    except (ValueError, TypeError) as exc:
        raise InvalidParameterError(
            f"Time column '{column}' must hold integer periods. "
            f"Found dtype: '{values.dtype}'."
        ) from exc
    if not np.all(np.isfinite(numeric)):
        raise InvalidParameterError(
            f"Time column '{column}' contains infinite values."
        )
    if not np.all(numeric == np.floor(numeric)):
        raise InvalidParameterError(
            f"Time column '{column}' must hold integer periods; "
            f"found non-integral values such as {numeric[numeric != np.floor(numeric)].iloc[0]}."
        )
    return numeric.astype(np.int64)


def _validate_ids(data: pd.DataFrame, column: str = 'id') -> None:
    if data[column].isna().any():
        raise InvalidParameterError(
            f"Identifier column '{column}' has {int(data[column].isna().sum())} "
            f"missing value(s)."
        )


def _validate_unique_times(data: pd.DataFrame, id_col: str = 'id', time_col: str = 'time') -> None:
    """
    Raise DuplicateTimeError when an individual repeats a period.

    Raises
    ------
    DuplicateTimeError
        Lists every individual with at least one duplicated period.
    """
    dup_mask = data.duplicated(subset=[id_col, time_col], keep=False)
    if dup_mask.any():
        offending = pd.unique(data.loc[dup_mask, id_col]).tolist()
        preview = offending[:10]
        more = f" (+{len(offending) - 10} more)" if len(offending) > 10 else ""
        raise DuplicateTimeError(
            f"{len(offending)} individual(s) have more than one observation for "
            f"the same period: {preview}{more}. Lag and lead neighbours are "
            f"undefined; drop or repair these individuals upstream.",
            ids=offending,
        )


def _validate_group_labels(groups: pd.Series, pooled_label: Hashable) -> None:
    """
    Check that group labels form a proper partition.

    Every record needs a label, and no label may equal the pooled label.
    """
    n_missing = int(groups.isna().sum())
    if n_missing > 0:
        raise InvalidParameterError(
            f"{n_missing} observation(s) have no group label. Strata must cover "
            f"the whole sample; assign a label or filter these rows upstream."
        )
    if (groups == pooled_label).any():
        raise InvalidParameterError(
            f"Group label {pooled_label!r} collides with the pooled-sample label. "
            f"Rename the group or pass a different pooled_label."
        )


def _warn_time_gaps(n_gaps: int, n_individuals: int) -> None:
    """Warn that positional neighbours span gaps in the time index."""
    warnings.warn(
        f"{n_gaps} gap(s) in the time index across {n_individuals} individual(s). "
        f"Lag and lead neighbours are taken positionally and may be more than "
        f"one period apart; set consecutive_only=True to treat them as missing.",
        DataWarning,
        stacklevel=4,
    )
