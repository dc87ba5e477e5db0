"""
Estimation sample construction: ordering, lag/lead augmentation, exclusion
of incomplete records, and structural validation of the input panel.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from bppdecomp import (
    DataWarning,
    DuplicateTimeError,
    EstimationConfig,
    InvalidParameterError,
    MissingRequiredColumnError,
    Observation,
    build_estimation_sample,
    observations_from_frame,
)


@pytest.fixture
def small_panel():
    """Two individuals, rows deliberately out of order."""
    frame = pd.DataFrame({
        'id': ['a', 'a', 'a', 'a', 'b', 'b', 'b'],
        'time': [1, 2, 3, 4, 1, 2, 3],
        'd_log_income': [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7],
        'd_log_consumption': [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0],
        'group': ['x', 'x', 'x', 'x', 'y', 'y', 'y'],
    })
    return frame.iloc[[2, 6, 0, 5, 3, 1, 4]].reset_index(drop=True)


class TestLagLeadAugmentation:

    def test_interior_records_with_neighbours(self, small_panel):
        sample = build_estimation_sample(small_panel)
        assert sample.n_obs == 3
        assert sample.n_dropped == 4
        assert list(sample.ids) == ['a', 'a', 'b']
        assert list(sample.times) == [2, 3, 2]
        np.testing.assert_allclose(sample.d_log_income, [0.2, 0.3, 0.6])
        np.testing.assert_allclose(sample.d_log_income_lag1, [0.1, 0.2, 0.5])
        np.testing.assert_allclose(sample.d_log_income_lead1, [0.3, 0.4, 0.7])
        np.testing.assert_allclose(sample.d_log_consumption, [2.0, 3.0, 6.0])

    def test_input_order_does_not_matter(self, small_panel):
        shuffled = build_estimation_sample(small_panel)
        ordered = build_estimation_sample(
            small_panel.sort_values(['id', 'time']).reset_index(drop=True)
        )
        pd.testing.assert_frame_equal(shuffled.to_frame(), ordered.to_frame())

    def test_missing_consumption_drops_only_that_record(self, small_panel):
        data = small_panel.copy()
        data.loc[(data['id'] == 'a') & (data['time'] == 2), 'd_log_consumption'] = np.nan
        sample = build_estimation_sample(data)
        assert list(zip(sample.ids, sample.times)) == [('a', 3), ('b', 2)]
        # the dropped record's income growth still serves as a neighbour
        assert sample.d_log_income_lag1[0] == pytest.approx(0.2)

    def test_missing_income_removes_its_neighbours(self, small_panel):
        data = small_panel.copy()
        data.loc[(data['id'] == 'a') & (data['time'] == 3), 'd_log_income'] = np.nan
        sample = build_estimation_sample(data)
        assert list(zip(sample.ids, sample.times)) == [('b', 2)]
        assert sample.n_dropped == 6

    def test_single_period_individual_contributes_nothing(self):
        data = pd.DataFrame({
            'id': [1, 2, 2, 2],
            'time': [1, 1, 2, 3],
            'd_log_income': [0.1, 0.2, 0.3, 0.4],
            'd_log_consumption': [0.0, 0.1, 0.2, 0.3],
        })
        sample = build_estimation_sample(data)
        assert list(sample.ids) == [2]

    def test_arrays_are_read_only(self, small_panel):
        sample = build_estimation_sample(small_panel)
        with pytest.raises(ValueError):
            sample.d_log_income[0] = 1.0

    def test_integral_float_times_are_accepted(self, small_panel):
        data = small_panel.assign(time=small_panel['time'].astype(float))
        sample = build_estimation_sample(data)
        assert sample.times.dtype == np.int64
        assert sample.n_obs == 3


class TestTimeGaps:

    @pytest.fixture
    def gapped(self):
        return pd.DataFrame({
            'id': [1, 1, 1, 1],
            'time': [1, 2, 4, 5],
            'd_log_income': [0.1, 0.2, 0.3, 0.4],
            'd_log_consumption': [0.0, 0.1, 0.2, 0.3],
        })

    def test_positional_neighbours_warn_about_gaps(self, gapped):
        with pytest.warns(DataWarning, match='gap'):
            sample = build_estimation_sample(gapped)
        assert list(sample.times) == [2, 4]
        np.testing.assert_allclose(sample.d_log_income_lead1, [0.3, 0.4])

    def test_consecutive_only_treats_distant_neighbours_as_missing(self, gapped):
        config = EstimationConfig(consecutive_only=True)
        with warnings.catch_warnings():
            warnings.simplefilter('error', DataWarning)
            sample = build_estimation_sample(gapped, config)
        assert sample.n_obs == 0
        assert sample.n_dropped == 4


class TestValidation:

    def test_duplicate_period_lists_offending_ids(self):
        data = pd.DataFrame({
            'id': [1, 1, 2, 2, 3],
            'time': [1, 1, 1, 2, 1],
            'd_log_income': [0.1] * 5,
            'd_log_consumption': [0.1] * 5,
        })
        with pytest.raises(DuplicateTimeError) as excinfo:
            build_estimation_sample(data)
        assert excinfo.value.ids == [1]

    def test_missing_column(self, small_panel):
        with pytest.raises(MissingRequiredColumnError, match='d_log_consumption'):
            build_estimation_sample(small_panel.drop(columns='d_log_consumption'))

    def test_non_integral_time(self, small_panel):
        data = small_panel.assign(time=small_panel['time'] + 0.5)
        with pytest.raises(InvalidParameterError, match='integer'):
            build_estimation_sample(data)

    def test_text_growth_column(self, small_panel):
        data = small_panel.assign(d_log_income=['high'] * len(small_panel))
        with pytest.raises(InvalidParameterError, match='numeric'):
            build_estimation_sample(data)

    def test_infinite_growth_value(self, small_panel):
        data = small_panel.copy()
        data.loc[0, 'd_log_consumption'] = np.inf
        with pytest.raises(InvalidParameterError, match='infinite'):
            build_estimation_sample(data)

    def test_missing_group_label(self, small_panel):
        data = small_panel.copy()
        data.loc[0, 'group'] = None
        with pytest.raises(InvalidParameterError, match='no group label'):
            build_estimation_sample(data, EstimationConfig(grouping_key='group'))

    def test_group_label_colliding_with_pooled_label(self, small_panel):
        data = small_panel.assign(group=small_panel['group'].replace('x', 'ALL'))
        with pytest.raises(InvalidParameterError, match='pooled'):
            build_estimation_sample(data, EstimationConfig(grouping_key='group'))

    def test_unknown_record_field_as_grouping_key(self):
        records = [Observation(1, 1, 0.1, 0.1, group='x')]
        with pytest.raises(InvalidParameterError, match='not an Observation field'):
            build_estimation_sample(records, EstimationConfig(grouping_key='sector'))


class TestInputForms:

    def test_records_and_frame_agree(self, small_panel):
        config = EstimationConfig(grouping_key='group')
        records = observations_from_frame(small_panel, group='group')
        assert all(isinstance(r, Observation) for r in records)
        from_records = build_estimation_sample(records, config)
        from_frame = build_estimation_sample(small_panel, config)
        pd.testing.assert_frame_equal(from_records.to_frame(), from_frame.to_frame())

    def test_records_with_missing_values(self):
        records = [
            Observation('a', 1, 0.1, 0.0),
            Observation('a', 2, 0.2, None),
            Observation('a', 3, 0.3, 0.2),
            Observation('a', 4, 0.4, 0.3),
        ]
        sample = build_estimation_sample(records)
        assert list(sample.times) == [3]

    def test_provider_column_names(self, small_panel):
        renamed = small_panel.rename(columns={
            'id': 'idind', 'time': 'year',
            'd_log_income': 'dlny_lab', 'd_log_consumption': 'dlnc',
        })
        columns = {
            'id': 'idind', 'time': 'year',
            'd_log_income': 'dlny_lab', 'd_log_consumption': 'dlnc',
        }
        sample = build_estimation_sample(renamed, columns=columns)
        assert sample.n_obs == 3

    def test_missing_provider_column(self, small_panel):
        with pytest.raises(MissingRequiredColumnError, match='idind'):
            build_estimation_sample(small_panel, columns={'id': 'idind'})

    def test_callable_grouping_key_on_records(self, small_panel):
        records = observations_from_frame(small_panel)
        config = EstimationConfig(grouping_key=lambda o: 'early' if o.id == 'a' else 'late')
        sample = build_estimation_sample(records, config)
        assert sample.stratified
        assert sample.group_labels == ['early', 'late']

    def test_callable_grouping_key_on_frame(self, small_panel):
        config = EstimationConfig(grouping_key=lambda row: row['id'].upper())
        sample = build_estimation_sample(small_panel, config)
        assert sample.group_labels == ['A', 'B']


class TestSampleViews:

    def test_group_labels_sorted_and_empty_when_unstratified(self, small_panel):
        stratified = build_estimation_sample(small_panel, EstimationConfig(grouping_key='group'))
        assert stratified.group_labels == ['x', 'y']
        assert build_estimation_sample(small_panel).group_labels == []

    def test_restrict(self, small_panel):
        sample = build_estimation_sample(small_panel, EstimationConfig(grouping_key='group'))
        x = sample.restrict('x')
        assert list(x.ids) == ['a', 'a']
        assert sample.restrict('z').n_obs == 0

    def test_restrict_requires_groups(self, small_panel):
        with pytest.raises(InvalidParameterError):
            build_estimation_sample(small_panel).restrict('x')

    def test_cluster_rows_cover_each_individual(self, small_panel):
        sample = build_estimation_sample(small_panel)
        blocks = sample.cluster_rows()
        assert [list(b) for b in blocks] == [[0, 1], [2]]
        assert sample.n_individuals == 2

    def test_take_allows_repeats(self, small_panel):
        sample = build_estimation_sample(small_panel)
        repeated = sample.take([2, 2, 0])
        assert list(repeated.ids) == ['b', 'b', 'a']
        assert repeated.n_individuals == 2
