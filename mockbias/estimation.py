"""Estimation of multiplicative per-taxon bias from mock communities.

Given observed and actual (expected) compositions for the same samples, the
bias vector b is the composition that best explains

    observed_s ~ actual_s * b      (entrywise, up to closure)

across all samples. Least squares in CLR space has a closed-form solution:
the CLR coordinates of b are the mean over samples of
clr(observed_s) - clr(actual_s). The estimate is returned closed (sums to 1).
"""

import logging
from typing import Optional

import pandas as pd
import numpy as np
from scipy.stats import gmean

from mockbias.exceptions import InvalidInput
from mockbias.transformations import check_positive, close, clr, alr, clr_inverse

logger = logging.getLogger(__name__)

BIAS_METHODS = ('rss', 'gm')


def align_compositions(observed, actual) -> tuple:
    """Validate and align paired observed/actual tables.

    Args:
        observed: Samples x taxa DataFrame or 2-D array
        actual: Samples x taxa DataFrame or 2-D array, same samples and taxa

    Returns:
        tuple: (observed_df, actual_df) with actual reordered to observed's
            sample and taxon order

    Raises:
        InvalidInput: Empty input, mismatched sample/taxon sets, fewer than
            two taxa, or any zero, negative or non-finite entry
    """
    if not isinstance(observed, pd.DataFrame):
        observed = pd.DataFrame(np.atleast_2d(np.asarray(observed, dtype=np.float64)))
    if not isinstance(actual, pd.DataFrame):
        actual = pd.DataFrame(np.atleast_2d(np.asarray(actual, dtype=np.float64)))

    if len(observed) == 0 or len(actual) == 0:
        raise InvalidInput("No samples supplied")

    for name, df in (('observed', observed), ('actual', actual)):
        if df.index.has_duplicates:
            raise InvalidInput(f"Duplicate sample identifiers in {name}")
        if df.columns.has_duplicates:
            raise InvalidInput(f"Duplicate taxa in {name}")

    if set(observed.index) != set(actual.index):
        missing = set(observed.index) ^ set(actual.index)
        raise InvalidInput(
            "Observed and actual cover different samples "
            f"({len(missing)} unmatched, e.g. {sorted(map(str, missing))[:3]})"
        )

    if set(observed.columns) != set(actual.columns):
        missing = set(observed.columns) ^ set(actual.columns)
        raise InvalidInput(
            "Observed and actual cover different taxon sets "
            f"(unmatched: {sorted(map(str, missing))})"
        )

    if observed.shape[1] < 2:
        raise InvalidInput("Bias is undefined for fewer than two taxa")

    actual = actual.loc[observed.index, observed.columns]

    check_positive(observed, name='observed')
    check_positive(actual, name='actual')

    return observed.astype(np.float64), actual.astype(np.float64)


def _sample_weights(weights, samples: pd.Index) -> np.ndarray:
    if isinstance(weights, pd.Series):
        if set(weights.index) != set(samples):
            raise InvalidInput("Sample weights must be indexed by the same samples")
        weights = weights.loc[samples]

    w = np.asarray(weights, dtype=np.float64).ravel()
    if w.shape[0] != len(samples):
        raise InvalidInput(
            f"Expected {len(samples)} sample weights, got {w.shape[0]}"
        )
    if not np.all(np.isfinite(w)) or np.any(w < 0):
        raise InvalidInput("Sample weights must be finite and non-negative")
    if w.sum() <= 0:
        raise InvalidInput("Sample weights must not all be zero")
    return w


def log_ratio_differences(observed: pd.DataFrame, actual: pd.DataFrame,
                          reference=None) -> pd.DataFrame:
    """Per-sample log discrepancy between observed and actual.

    Uses CLR coordinates, or ALR against `reference` when one is given.
    Both inputs must already be aligned (see align_compositions).
    """
    if reference is None:
        return clr(observed) - clr(actual)
    return alr(observed, reference) - alr(actual, reference)


def estimate_bias(observed, actual, method: str = 'rss', reference=None,
                  weights=None) -> pd.Series:
    """Estimate the per-taxon multiplicative bias shared by all samples.

    Args:
        observed: Samples x taxa observed compositions (counts or proportions)
        actual: Samples x taxa actual compositions over the same taxa
        method: 'rss' (least squares in log-ratio space) or 'gm'
            (geometric mean of per-sample observed/actual ratios)
        reference: Optional reference taxon; computes through ALR
            coordinates instead of CLR (same result)
        weights: Optional non-negative per-sample weights

    Returns:
        pd.Series: Bias indexed by taxon, closed to sum to 1

    Raises:
        InvalidInput: If inputs violate the estimator's preconditions
    """
    if method not in BIAS_METHODS:
        raise InvalidInput(
            f"Unknown bias estimation method '{method}'. "
            f"Available methods: {list(BIAS_METHODS)}"
        )

    observed, actual = align_compositions(observed, actual)

    if reference is not None and reference not in observed.columns:
        raise InvalidInput(f"Reference taxon {reference!r} not in taxon set")

    w = None if weights is None else _sample_weights(weights, observed.index)

    if method == 'rss':
        diffs = log_ratio_differences(observed, actual, reference)
        center = np.average(diffs.values, axis=0, weights=w)
        bias = clr_inverse(pd.Series(center, index=observed.columns))
    else:
        ratios = close(observed).values / close(actual).values
        if reference is not None:
            ref_idx = observed.columns.get_loc(reference)
            ratios = ratios / ratios[:, ref_idx:ref_idx + 1]
        bias = close(pd.Series(gmean(ratios, axis=0, weights=w), index=observed.columns))

    bias = bias.rename('bias').rename_axis('taxon')

    logger.debug(
        f"Estimated bias ({method}) from {len(observed)} samples over "
        f"{observed.shape[1]} taxa"
    )

    return bias


def calibrate(observed, bias: pd.Series):
    """Remove bias from observed compositions.

    Predicted_s = close(Observed_s / bias), using the same bias for every
    sample. Observed entries may be zero (they stay zero).

    Args:
        observed: Series (one sample) or samples x taxa DataFrame
        bias: Bias vector indexed by taxon

    Returns:
        Calibrated compositions closed to sum to 1, same type as observed
    """
    check_positive(bias, name='bias')

    taxa = observed.index if isinstance(observed, pd.Series) else observed.columns
    if set(taxa) != set(bias.index):
        raise InvalidInput("Observed and bias cover different taxon sets")

    values = np.asarray(observed.values, dtype=np.float64)
    if not np.all(np.isfinite(values)) or np.any(values < 0):
        raise InvalidInput("Observed contains negative or non-finite entries")

    bias = bias.loc[taxa]
    if isinstance(observed, pd.Series):
        return close(observed.astype(np.float64) / bias)
    return close(observed.astype(np.float64).divide(bias, axis=1))


def bootstrap_bias(observed, actual, n_boot: int = 1000,
                   random_state: Optional[int] = None) -> pd.DataFrame:
    """Bayesian bootstrap replicates of the RSS bias estimate.

    Each replicate reweights the samples with Dirichlet(1, ..., 1) weights
    and takes the weighted mean of the CLR differences.

    Args:
        observed: Samples x taxa observed compositions
        actual: Samples x taxa actual compositions
        n_boot: Number of replicates
        random_state: Seed for numpy's default_rng

    Returns:
        pd.DataFrame: Replicates as rows, taxa as columns, rows closed
    """
    if n_boot < 1:
        raise InvalidInput(f"n_boot must be positive, got {n_boot}")

    observed, actual = align_compositions(observed, actual)
    diffs = log_ratio_differences(observed, actual)

    rng = np.random.default_rng(random_state)
    weights = rng.dirichlet(np.ones(len(diffs)), size=n_boot)

    # Dirichlet weights sum to 1, so W @ D is the weighted mean per replicate
    centers = weights @ diffs.values
    replicates = clr_inverse(pd.DataFrame(centers, columns=observed.columns))
    return replicates.rename_axis('replicate')


def summarize_bootstrap(replicates: pd.DataFrame,
                        estimate: Optional[pd.Series] = None) -> pd.DataFrame:
    """Summarize bootstrap replicates per taxon.

    Returns:
        pd.DataFrame: One row per taxon with mean, 95% interval and
            geometric standard deviation (plus the point estimate if given)
    """
    summary = pd.DataFrame({
        'mean': replicates.mean(axis=0),
        'ci_lower': replicates.quantile(0.025, axis=0),
        'ci_upper': replicates.quantile(0.975, axis=0),
        'gsd': np.exp(np.log(replicates).std(axis=0)),
    })
    if estimate is not None:
        summary.insert(0, 'estimate', estimate.loc[summary.index])
    return summary.rename_axis('taxon')


class BiasEstimator:
    """Fits per-group bias vectors with the configured method."""

    def __init__(self, logger, config):
        self.logger = logger
        self.config = config

    def fit(self, observed: pd.DataFrame, actual: pd.DataFrame) -> pd.Series:
        """Estimate bias for one group of samples.

        Args:
            observed: Samples x taxa observed counts (zero-free)
            actual: Samples x taxa actual abundances

        Returns:
            pd.Series: Closed bias vector indexed by taxon
        """
        method = self.config.get('BIAS_METHOD', 'rss')
        reference = self.config.get('REFERENCE_TAXON')
        if reference is not None and reference not in observed.columns:
            self.logger.warning(
                f"    Reference taxon '{reference}' not in group, using CLR"
            )
            reference = None

        bias = estimate_bias(observed, actual, method=method, reference=reference)

        self.logger.info(
            f"    Bias ({method}): {len(observed)} samples, {len(bias)} taxa, "
            f"max/min ratio={bias.max() / bias.min():.2f}"
        )
        self.logger.debug(
            "    " + ", ".join(f"{taxon}={value:.4f}" for taxon, value in bias.items())
        )

        return bias

    def bootstrap(self, observed: pd.DataFrame, actual: pd.DataFrame,
                  estimate: pd.Series) -> Optional[pd.DataFrame]:
        """Bootstrap summary for a fitted group, or None if disabled."""
        n_boot = self.config.get('N_BOOTSTRAP', 0)
        if not n_boot:
            self.logger.debug("    Bootstrap disabled")
            return None

        if len(observed) < 2:
            self.logger.warning("    Skipping bootstrap: need at least 2 samples")
            return None

        replicates = bootstrap_bias(
            observed, actual,
            n_boot=n_boot,
            random_state=self.config.get('RANDOM_STATE')
        )
        summary = summarize_bootstrap(replicates, estimate)

        self.logger.info(
            f"    Bootstrap: {n_boot} replicates, "
            f"median gsd={summary['gsd'].median():.3f}"
        )

        return summary
