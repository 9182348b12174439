import pandas as pd
import pytest

from mockbias.filtering import DataFilter


@pytest.fixture
def observed():
    return pd.DataFrame(
        {'A': [5000, 100, 4000, 3000], 'B': [3000, 200, 0, 2500], 'C': [2000, 50, 3000, 0]},
        index=['s1', 's2', 's3', 's4']
    )


@pytest.fixture
def actual():
    return pd.DataFrame(
        {'A': [0.4, 0.4, 0.4, 0.5], 'B': [0.3, 0.3, 0.3, 0.5], 'C': [0.3, 0.3, 0.3, 0.0]},
        index=['s1', 's2', 's3', 's4']
    )


def test_filter_taxa_keeps_shared_community(logger, config, actual):
    taxa = DataFilter(logger, config).filter_taxa(actual)
    assert taxa == ['A', 'B']


def test_filter_samples_drops_shallow_and_zero_samples(logger, config, observed, actual):
    data_filter = DataFilter(logger, config)

    kept_observed, kept_actual = data_filter.filter_samples(observed, actual)

    # s2 is below 1000 reads, s3 has a zero count for B, s4 for C
    assert list(kept_observed.index) == ['s1']
    assert list(kept_actual.index) == ['s1']


def test_filter_samples_after_taxa(logger, config, observed, actual):
    data_filter = DataFilter(logger, config)
    taxa = data_filter.filter_taxa(actual)

    kept_observed, _ = data_filter.filter_samples(observed[taxa], actual[taxa])

    # Without taxon C, s4 is zero-free
    assert list(kept_observed.index) == ['s1', 's4']
    assert (kept_observed > 0).all().all()


def test_filter_samples_without_depth_threshold(logger, config, observed, actual):
    config['MIN_READ_DEPTH'] = 0
    kept_observed, _ = DataFilter(logger, config).filter_samples(observed, actual)
    assert list(kept_observed.index) == ['s1', 's2']


def test_get_filter_stats(logger, config, observed):
    stats = DataFilter(logger, config).get_filter_stats(observed, observed.iloc[:1, :2])
    assert stats['samples_before'] == 4
    assert stats['samples_after'] == 1
    assert stats['taxa_after'] == 2
    assert stats['sample_reduction_pct'] == pytest.approx(75.0)
