"""Fit diagnostics for bias estimates and comparison of bias between groups."""

from itertools import combinations
from typing import Dict, List

import pandas as pd
import numpy as np

from mockbias.exceptions import InvalidInput
from mockbias.estimation import align_compositions, calibrate, log_ratio_differences
from mockbias.transformations import aitchison_distance, clr


def residuals(observed, actual, bias: pd.Series) -> pd.DataFrame:
    """CLR residuals clr(observed) - clr(actual) - clr(bias) per sample and taxon."""
    observed, actual = align_compositions(observed, actual)
    if set(bias.index) != set(observed.columns):
        raise InvalidInput("Bias and samples cover different taxon sets")

    diffs = log_ratio_differences(observed, actual)
    return diffs - clr(bias.loc[observed.columns])


def fit_diagnostics(observed, actual, bias: pd.Series) -> pd.DataFrame:
    """Per-sample Aitchison error before and after calibration.

    Args:
        observed: Samples x taxa observed compositions
        actual: Samples x taxa actual compositions
        bias: Bias vector indexed by taxon

    Returns:
        pd.DataFrame: aitchison_before, aitchison_after and improvement
            (before - after) per sample
    """
    observed, actual = align_compositions(observed, actual)
    predicted = calibrate(observed, bias)

    diagnostics = pd.DataFrame({
        'aitchison_before': aitchison_distance(observed, actual),
        'aitchison_after': aitchison_distance(predicted, actual),
    })
    diagnostics['improvement'] = (
        diagnostics['aitchison_before'] - diagnostics['aitchison_after']
    )
    return diagnostics.rename_axis('sample')


def pairwise_bias_ratios(bias: pd.Series) -> pd.DataFrame:
    """Relative efficiency b_i / b_j for every ordered pair of taxa.

    Returns:
        pd.DataFrame: taxon_i, taxon_j, ratio, log2_ratio sorted by
            decreasing ratio
    """
    rows = []
    for taxon_i, value_i in bias.items():
        for taxon_j, value_j in bias.items():
            if taxon_i == taxon_j:
                continue
            rows.append({
                'taxon_i': taxon_i,
                'taxon_j': taxon_j,
                'ratio': value_i / value_j,
                'log2_ratio': np.log2(value_i / value_j)
            })

    ratios = pd.DataFrame(rows, columns=['taxon_i', 'taxon_j', 'ratio', 'log2_ratio'])
    return ratios.sort_values('ratio', ascending=False, ignore_index=True)


def bias_distance(bias_a: pd.Series, bias_b: pd.Series) -> float:
    """Aitchison distance between two bias vectors over the same taxa."""
    if set(bias_a.index) != set(bias_b.index):
        raise InvalidInput("Bias vectors cover different taxon sets")
    return aitchison_distance(bias_a, bias_b.loc[bias_a.index])


class BiasEvaluator:
    """Evaluates bias fits and compares bias vectors between groups."""

    def __init__(self, logger, config):
        self.logger = logger
        self.config = config

    def evaluate_fit(self, observed: pd.DataFrame, actual: pd.DataFrame,
                     bias: pd.Series) -> Dict:
        """Compute diagnostics, residuals and ratios for one fitted group.

        Returns:
            dict: diagnostics, residuals, pairwise_ratios and a metrics dict
        """
        diagnostics = fit_diagnostics(observed, actual, bias)
        resid = residuals(observed, actual, bias)

        metrics = {
            'n_samples': len(diagnostics),
            'n_taxa': len(bias),
            'rss': float((resid ** 2).values.sum()),
            'mean_aitchison_before': float(diagnostics['aitchison_before'].mean()),
            'mean_aitchison_after': float(diagnostics['aitchison_after'].mean()),
        }

        self.logger.info(
            f"    Aitchison error: {metrics['mean_aitchison_before']:.3f} → "
            f"{metrics['mean_aitchison_after']:.3f} after calibration"
        )

        return {
            'diagnostics': diagnostics,
            'residuals': resid,
            'pairwise_ratios': pairwise_bias_ratios(bias),
            'metrics': metrics
        }

    def compare_bias(self, bias_a: pd.Series, bias_b: pd.Series,
                     labels: tuple = ('a', 'b')) -> pd.DataFrame:
        """Compare two bias vectors taxon by taxon.

        Both vectors are compared in CLR coordinates so the result does not
        depend on how each was normalized.

        Args:
            bias_a: Bias from the first group
            bias_b: Bias from the second group
            labels: Names of the two groups, used in column names

        Returns:
            pd.DataFrame: Per-taxon bias in both groups with log2 fold
                change (b vs a) and status
        """
        label_a, label_b = labels
        common = [taxon for taxon in bias_a.index if taxon in bias_b.index]

        if len(common) < 2:
            raise InvalidInput(
                f"Groups '{label_a}' and '{label_b}' share fewer than two taxa"
            )

        dropped = len(set(bias_a.index) ^ set(bias_b.index))
        if dropped > 0:
            self.logger.debug(f"    Comparing on {len(common)} shared taxa ({dropped} unshared)")

        clr_a = clr(bias_a.loc[common])
        clr_b = clr(bias_b.loc[common])

        merged = pd.DataFrame({
            'taxon': common,
            f'bias_{label_a}': bias_a.loc[common].values,
            f'bias_{label_b}': bias_b.loc[common].values,
            'log2_fc': (clr_b - clr_a).values / np.log(2)
        })

        threshold = self.config.get('BIAS_LOG2FC_THRESHOLD', 1.0)

        merged['status'] = 'unchanged'
        merged.loc[merged['log2_fc'] > threshold, 'status'] = f'higher_in_{label_b}'
        merged.loc[merged['log2_fc'] < -threshold, 'status'] = f'lower_in_{label_b}'

        return merged.sort_values('log2_fc', ascending=True, ignore_index=True)

    def compare_groups(self, group_biases: Dict[str, pd.Series]) -> Dict:
        """Compare bias vectors for every pair of groups.

        Args:
            group_biases: Dict mapping group name to bias vector

        Returns:
            dict: 'pairs' maps 'a_vs_b' to per-taxon comparisons and
                'summary' holds one row per pair
        """
        pairs = {}
        summary: List[dict] = []

        for group_a, group_b in combinations(group_biases, 2):
            bias_a = group_biases[group_a]
            bias_b = group_biases[group_b]

            comparison = self.compare_bias(bias_a, bias_b, labels=(group_a, group_b))
            pairs[f"{group_a}_vs_{group_b}"] = comparison

            common = comparison['taxon'].tolist()
            distance = bias_distance(bias_a.loc[common], bias_b.loc[common])

            summary.append({
                'group_a': group_a,
                'group_b': group_b,
                'n_taxa': len(common),
                'aitchison_distance': distance,
                'n_higher': int((comparison['status'] == f'higher_in_{group_b}').sum()),
                'n_lower': int((comparison['status'] == f'lower_in_{group_b}').sum()),
            })

            self.logger.info(
                f"  {group_a} vs {group_b}: Aitchison distance={distance:.3f} "
                f"over {len(common)} taxa"
            )

        return {
            'pairs': pairs,
            'summary': pd.DataFrame(summary)
        }
