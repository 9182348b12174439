import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose

from mockbias.estimation import estimate_bias
from mockbias.evaluation import (
    BiasEvaluator, bias_distance, fit_diagnostics, pairwise_bias_ratios, residuals
)
from mockbias.exceptions import InvalidInput


def test_residuals_vanish_for_exact_bias(observed, actual, true_bias):
    resid = residuals(observed, actual, true_bias)
    assert resid.shape == actual.shape
    assert_allclose(resid.values, 0.0, atol=1e-12)


def test_residuals_are_centered_per_taxon(noisy_observed, actual):
    bias = estimate_bias(noisy_observed, actual)
    resid = residuals(noisy_observed, actual, bias)
    # Least squares: the fitted offset absorbs the mean residual of every taxon
    assert_allclose(resid.mean(axis=0).values, 0.0, atol=1e-12)


def test_residuals_reject_mismatched_bias(observed, actual, true_bias):
    with pytest.raises(InvalidInput):
        residuals(observed, actual, true_bias.iloc[1:])


def test_fit_diagnostics(noisy_observed, actual):
    bias = estimate_bias(noisy_observed, actual)
    diagnostics = fit_diagnostics(noisy_observed, actual, bias)

    assert list(diagnostics.columns) == ['aitchison_before', 'aitchison_after', 'improvement']
    assert list(diagnostics.index) == list(actual.index)
    assert diagnostics['aitchison_after'].mean() < diagnostics['aitchison_before'].mean()
    assert_allclose(
        diagnostics['improvement'].values,
        (diagnostics['aitchison_before'] - diagnostics['aitchison_after']).values
    )


def test_fit_diagnostics_exact_bias(observed, actual, true_bias):
    diagnostics = fit_diagnostics(observed, actual, true_bias)
    assert_allclose(diagnostics['aitchison_after'].values, 0.0, atol=1e-12)
    assert (diagnostics['aitchison_before'] > 0).all()


def test_pairwise_bias_ratios(true_bias):
    ratios = pairwise_bias_ratios(true_bias)

    assert len(ratios) == 4 * 3
    top = ratios.iloc[0]
    assert top['taxon_i'] == 'Lactobacillus_crispatus'
    assert top['taxon_j'] == 'Atopobium_vaginae'
    assert top['ratio'] == pytest.approx(8.0)
    assert top['log2_ratio'] == pytest.approx(3.0)
    assert_allclose(np.log2(ratios['ratio']).values, ratios['log2_ratio'].values)


def test_bias_distance():
    bias = pd.Series([0.5, 0.25, 0.25], index=['A', 'B', 'C'])
    assert bias_distance(bias, bias * 3) == pytest.approx(0.0, abs=1e-12)
    assert bias_distance(bias, bias.iloc[::-1]) == pytest.approx(0.0, abs=1e-12)
    assert bias_distance(bias, pd.Series(1.0, index=['A', 'B', 'C'])) > 0


def test_bias_distance_rejects_mismatched_taxa():
    with pytest.raises(InvalidInput):
        bias_distance(pd.Series([1.0, 2.0], index=['A', 'B']),
                      pd.Series([1.0, 2.0], index=['A', 'C']))


class TestBiasEvaluator:

    def test_evaluate_fit(self, logger, config, noisy_observed, actual):
        bias = estimate_bias(noisy_observed, actual)
        evaluation = BiasEvaluator(logger, config).evaluate_fit(noisy_observed, actual, bias)

        assert set(evaluation) == {'diagnostics', 'residuals', 'pairwise_ratios', 'metrics'}
        metrics = evaluation['metrics']
        assert metrics['n_samples'] == 6
        assert metrics['n_taxa'] == 4
        assert metrics['rss'] == pytest.approx((evaluation['residuals'] ** 2).values.sum())
        assert metrics['mean_aitchison_after'] < metrics['mean_aitchison_before']

    def test_compare_bias(self, logger, config):
        taxa = ['A', 'B', 'C', 'D']
        bias_a = pd.Series(1.0, index=taxa)
        bias_b = pd.Series([4.0, 1.0, 1.0, 1.0], index=taxa)

        comparison = BiasEvaluator(logger, config).compare_bias(
            bias_a, bias_b, labels=('H', 'W')
        )

        assert list(comparison.columns) == ['taxon', 'bias_H', 'bias_W', 'log2_fc', 'status']
        by_taxon = comparison.set_index('taxon')
        # clr(4, 1, 1, 1) = (0.75, -0.25, -0.25, -0.25) * log(4)
        assert by_taxon.loc['A', 'log2_fc'] == pytest.approx(1.5)
        assert by_taxon.loc['B', 'log2_fc'] == pytest.approx(-0.5)
        assert by_taxon.loc['A', 'status'] == 'higher_in_W'
        assert (by_taxon.loc[['B', 'C', 'D'], 'status'] == 'unchanged').all()
        assert comparison['taxon'].iloc[-1] == 'A'

    def test_compare_bias_uses_shared_taxa(self, logger, config):
        bias_a = pd.Series([1.0, 2.0, 3.0], index=['A', 'B', 'C'])
        bias_b = pd.Series([1.0, 2.0, 0.1], index=['A', 'B', 'X'])

        comparison = BiasEvaluator(logger, config).compare_bias(bias_a, bias_b)

        assert set(comparison['taxon']) == {'A', 'B'}

    def test_compare_bias_needs_two_shared_taxa(self, logger, config):
        bias_a = pd.Series([1.0, 2.0], index=['A', 'B'])
        bias_b = pd.Series([1.0, 2.0], index=['A', 'C'])
        with pytest.raises(InvalidInput):
            BiasEvaluator(logger, config).compare_bias(bias_a, bias_b)

    def test_compare_groups(self, logger, config, true_bias):
        group_biases = {
            'H': true_bias,
            'W': pd.Series([1.0, 2.0, 2.0, 1.0], index=true_bias.index),
            'X': true_bias * 2,
        }

        result = BiasEvaluator(logger, config).compare_groups(group_biases)

        assert set(result['pairs']) == {'H_vs_W', 'H_vs_X', 'W_vs_X'}
        summary = result['summary'].set_index(['group_a', 'group_b'])
        assert len(summary) == 3
        assert summary.loc[('H', 'X'), 'aitchison_distance'] == pytest.approx(0.0, abs=1e-12)
        assert summary.loc[('H', 'W'), 'aitchison_distance'] > 0
        assert summary.loc[('H', 'X'), 'n_higher'] == 0
