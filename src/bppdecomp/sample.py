"""
Sample Construction Module

Turns the raw individual-period panel into the estimation sample: records
are ordered by time within each individual, augmented with the one-period
lag and lead of income growth, and kept only when income growth,
consumption growth, its lag and its lead are all observed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import EstimationConfig
from .exceptions import InvalidParameterError
from . import validation

logger = logging.getLogger('bppdecomp')

SAMPLE_COLUMNS = (
    'd_log_income',
    'd_log_consumption',
    'd_log_income_lag1',
    'd_log_income_lead1',
)


@dataclass(frozen=True)
class Observation:
    """
    One individual-period record supplied by the panel data provider.

    ``d_log_income`` and ``d_log_consumption`` are first differences of log
    income and log consumption; ``None`` or NaN marks a missing value.
    """
    id: Hashable
    time: int
    d_log_income: Optional[float]
    d_log_consumption: Optional[float]
    group: Optional[Hashable] = None


_OBSERVATION_FIELDS = tuple(f.name for f in fields(Observation))


def _sorted_labels(labels: Iterable[Hashable]) -> List[Hashable]:
    unique = list(dict.fromkeys(labels))
    try:
        return sorted(unique)
    except TypeError:
        return sorted(unique, key=str)


def _readonly(values, dtype=None) -> np.ndarray:
    arr = np.array(values, dtype=dtype, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class EstimationSample:
    """
    Lag/lead-augmented records with all four estimation variables present.

    All arrays are read-only, so one sample can be shared by concurrent
    bootstrap replicates. Rows are ordered by individual (order of first
    appearance in the input) and by time within individual.

    Attributes
    ----------
    ids, times, groups : np.ndarray
        Individual identifier, period and stratum label per record.
        ``groups`` holds ``None`` everywhere for an unstratified sample.
    d_log_income, d_log_consumption : np.ndarray
        Income and consumption growth.
    d_log_income_lag1, d_log_income_lead1 : np.ndarray
        Income growth of the previous and next record of the same individual.
    stratified : bool
        Whether ``groups`` carries real labels.
    n_dropped : int
        Augmented records excluded for missing estimation variables.
    """
    ids: np.ndarray
    times: np.ndarray
    groups: np.ndarray
    d_log_income: np.ndarray
    d_log_consumption: np.ndarray
    d_log_income_lag1: np.ndarray
    d_log_income_lead1: np.ndarray
    stratified: bool = False
    n_dropped: int = 0

    def __post_init__(self):
        n = len(self.ids)
        for name in ('times', 'groups') + SAMPLE_COLUMNS:
            if len(getattr(self, name)) != n:
                raise InvalidParameterError(
                    f"EstimationSample column '{name}' has length "
                    f"{len(getattr(self, name))}, expected {n}"
                )
        object.__setattr__(self, 'ids', _readonly(self.ids))
        object.__setattr__(self, 'times', _readonly(self.times, np.int64))
        object.__setattr__(self, 'groups', _readonly(self.groups, object))
        for name in SAMPLE_COLUMNS:
            object.__setattr__(self, name, _readonly(getattr(self, name), float))

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def n_obs(self) -> int:
        return len(self.ids)

    @property
    def individuals(self) -> np.ndarray:
        """Distinct individual identifiers in order of appearance."""
        return pd.unique(pd.Series(self.ids, dtype=object))

    @property
    def n_individuals(self) -> int:
        return len(self.individuals)

    @property
    def group_labels(self) -> List[Hashable]:
        """Sorted distinct stratum labels (empty when unstratified)."""
        if not self.stratified:
            return []
        return _sorted_labels(self.groups.tolist())

    def take(self, rows: Sequence[int]) -> 'EstimationSample':
        """Return the sample formed by *rows* (repeats allowed)."""
        rows = np.asarray(rows, dtype=np.intp)
        return EstimationSample(
            ids=self.ids[rows],
            times=self.times[rows],
            groups=self.groups[rows],
            d_log_income=self.d_log_income[rows],
            d_log_consumption=self.d_log_consumption[rows],
            d_log_income_lag1=self.d_log_income_lag1[rows],
            d_log_income_lead1=self.d_log_income_lead1[rows],
            stratified=self.stratified,
        )

    def restrict(self, label: Hashable) -> 'EstimationSample':
        """Return the records whose group equals *label*."""
        if not self.stratified:
            raise InvalidParameterError(
                "restrict() requires a stratified sample (no grouping key was given)"
            )
        mask = np.array([g == label for g in self.groups], dtype=bool)
        return self.take(np.flatnonzero(mask))

    def cluster_rows(self) -> List[np.ndarray]:
        """
        Row indices of each individual, in order of first appearance.

        Used by the cluster bootstrap, which resamples these blocks whole.
        """
        if len(self.ids) == 0:
            return []
        codes, _ = pd.factorize(pd.Series(self.ids, dtype=object), sort=False)
        order = np.argsort(codes, kind='mergesort')
        boundaries = np.flatnonzero(np.diff(codes[order])) + 1
        return np.split(order, boundaries)

    def to_frame(self) -> pd.DataFrame:
        """Tidy DataFrame view of the sample (a copy)."""
        frame = pd.DataFrame({
            'id': self.ids,
            'time': self.times,
            'group': self.groups,
        })
        for name in SAMPLE_COLUMNS:
            frame[name] = getattr(self, name)
        return frame


def observations_from_frame(
    data: pd.DataFrame,
    id: str = 'id',
    time: str = 'time',
    d_log_income: str = 'd_log_income',
    d_log_consumption: str = 'd_log_consumption',
    group: Optional[str] = None,
) -> List[Observation]:
    """
    Convert a provider DataFrame into :class:`Observation` records.

    Parameters
    ----------
    data : pd.DataFrame
        Long-format panel, one row per individual-period.
    id, time, d_log_income, d_log_consumption : str
        Column names of the corresponding Observation fields.
    group : str, optional
        Column holding the stratum label.

    Returns
    -------
    list of Observation

    Raises
    ------
    MissingRequiredColumnError
        If any named column is absent.
    """
    if not isinstance(data, pd.DataFrame):
        raise TypeError(f"data must be a pandas DataFrame, got {type(data).__name__}")
    frame = _canonical_frame(data, _column_map(id, time, d_log_income, d_log_consumption, group))
    records = []
    for row in frame.itertuples(index=False):
        records.append(Observation(
            id=row.id,
            time=int(row.time),
            d_log_income=None if pd.isna(row.d_log_income) else float(row.d_log_income),
            d_log_consumption=None if pd.isna(row.d_log_consumption) else float(row.d_log_consumption),
            group=getattr(row, 'group', None),
        ))
    return records


def _column_map(id, time, d_log_income, d_log_consumption, group) -> Dict[str, str]:
    mapping = {
        'id': id,
        'time': time,
        'd_log_income': d_log_income,
        'd_log_consumption': d_log_consumption,
    }
    if group is not None:
        mapping['group'] = group
    return mapping


def _canonical_frame(data: pd.DataFrame, mapping: Dict[str, str]) -> pd.DataFrame:
    """Select provider columns and rename them to Observation field names."""
    validation._validate_required_columns(data, list(mapping.values()))
    frame = pd.DataFrame({field: data[col].to_numpy() for field, col in mapping.items()})
    frame['time'] = validation._validate_time_index(frame, 'time')
    validation._validate_ids(frame, 'id')
    for col in validation.GROWTH_COLUMNS:
        frame[col] = validation._validate_growth_dtype(frame, col)
    return frame


def _frame_from_records(
    observations: Iterable[Observation],
    grouping_key,
) -> pd.DataFrame:
    records = list(observations)
    for obs in records:
        if not isinstance(obs, Observation):
            raise TypeError(
                f"observations must be Observation records or a DataFrame, "
                f"got element of type {type(obs).__name__}"
            )
    frame = pd.DataFrame(
        [(o.id, o.time, o.d_log_income, o.d_log_consumption) for o in records],
        columns=['id', 'time', 'd_log_income', 'd_log_consumption'],
    )
    if grouping_key is not None:
        if callable(grouping_key):
            labels = [grouping_key(o) for o in records]
        elif grouping_key in _OBSERVATION_FIELDS:
            labels = [getattr(o, grouping_key) for o in records]
        else:
            raise InvalidParameterError(
                f"grouping_key {grouping_key!r} is not an Observation field; "
                f"valid fields are {list(_OBSERVATION_FIELDS)}"
            )
        frame['group'] = pd.Series(labels, dtype=object)
    return frame


def _frame_from_dataframe(data: pd.DataFrame, grouping_key) -> pd.DataFrame:
    mapping = _column_map('id', 'time', 'd_log_income', 'd_log_consumption', None)
    if isinstance(grouping_key, str):
        mapping['group'] = grouping_key
    frame = _canonical_frame(data, mapping)
    if callable(grouping_key):
        frame['group'] = pd.Series(
            [grouping_key(row) for _, row in frame.iterrows()], dtype=object
        )
    return frame


def build_estimation_sample(
    observations: Union[Iterable[Observation], pd.DataFrame],
    config: Optional[EstimationConfig] = None,
    *,
    columns: Optional[Dict[str, str]] = None,
) -> EstimationSample:
    """
    Build the estimation sample from raw observations.

    Parameters
    ----------
    observations : iterable of Observation or pd.DataFrame
        Raw panel in any order. A DataFrame must carry the columns ``id``,
        ``time``, ``d_log_income`` and ``d_log_consumption`` unless
        *columns* maps these field names to other column names.
    config : EstimationConfig, optional
        Supplies ``grouping_key``, ``pooled_label`` and ``consecutive_only``.
        Defaults to ``EstimationConfig()`` (unstratified, positional
        neighbours).
    columns : dict, optional
        ``{field: column}`` renames for DataFrame input, e.g.
        ``{'id': 'idind', 'time': 'year'}``.

    Returns
    -------
    EstimationSample

    Raises
    ------
    MissingRequiredColumnError
        DataFrame input lacks a required column.
    DuplicateTimeError
        Some individual has two observations with the same ``time``.
    InvalidParameterError
        Non-integer time, non-numeric growth, missing ids, missing group
        labels, or a group label equal to ``config.pooled_label``.

    Notes
    -----
    Within each individual, observations are sorted by time (stable) and
    the lag/lead of income growth is taken from the previous/next record.
    With ``consecutive_only=True`` a neighbour more than one period away is
    treated as missing instead.
    """
    config = config if config is not None else EstimationConfig()
    grouping_key = config.grouping_key

    if isinstance(observations, pd.DataFrame):
        data = observations
        if columns:
            validation._validate_required_columns(data, list(columns.values()))
            data = data.rename(columns={col: field for field, col in columns.items()})
        frame = _frame_from_dataframe(data, grouping_key)
    else:
        frame = _frame_from_records(observations, grouping_key)
        frame['time'] = validation._validate_time_index(frame, 'time')
        validation._validate_ids(frame, 'id')
        for col in validation.GROWTH_COLUMNS:
            frame[col] = validation._validate_growth_dtype(frame, col)

    stratified = grouping_key is not None
    if stratified:
        validation._validate_group_labels(frame['group'], config.pooled_label)
    else:
        frame['group'] = None

    validation._validate_unique_times(frame)

    n_raw = len(frame)
    frame['_unit'] = pd.factorize(frame['id'], sort=False)[0]
    frame = frame.sort_values(['_unit', 'time'], kind='mergesort').reset_index(drop=True)

    by_unit = frame.groupby('_unit', sort=False)
    lag = by_unit['d_log_income'].shift(1)
    lead = by_unit['d_log_income'].shift(-1)
    prev_time = by_unit['time'].shift(1)
    next_time = by_unit['time'].shift(-1)

    if config.consecutive_only:
        lag = lag.where(prev_time == frame['time'] - 1)
        lead = lead.where(next_time == frame['time'] + 1)
    else:
        gap_mask = (frame['time'] - prev_time) > 1
        if gap_mask.any():
            validation._warn_time_gaps(
                int(gap_mask.sum()), int(frame.loc[gap_mask, '_unit'].nunique())
            )

    frame['d_log_income_lag1'] = lag
    frame['d_log_income_lead1'] = lead

    complete = frame[list(SAMPLE_COLUMNS)].notna().all(axis=1)
    kept = frame.loc[complete]

    sample = EstimationSample(
        ids=kept['id'].to_numpy(dtype=object),
        times=kept['time'].to_numpy(),
        groups=kept['group'].to_numpy(dtype=object),
        d_log_income=kept['d_log_income'].to_numpy(),
        d_log_consumption=kept['d_log_consumption'].to_numpy(),
        d_log_income_lag1=kept['d_log_income_lag1'].to_numpy(),
        d_log_income_lead1=kept['d_log_income_lead1'].to_numpy(),
        stratified=stratified,
        n_dropped=int((~complete).sum()),
    )
    logger.info(
        "Estimation sample: %d of %d observations kept (%d individuals, %d strata)",
        sample.n_obs, n_raw, sample.n_individuals, len(sample.group_labels),
    )
    return sample
