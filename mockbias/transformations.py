"""Compositional transformations: closure, CLR, ALR and the Aitchison distance.

All helpers accept a pandas Series (one composition), a DataFrame (samples as
rows, taxa as columns) or a numpy array (compositions along the last axis) and
return the same kind of object.
"""

import pandas as pd
import numpy as np
from scipy.stats import gmean

from mockbias.exceptions import InvalidInput


def _as_array(x) -> np.ndarray:
    if isinstance(x, (pd.Series, pd.DataFrame)):
        return np.asarray(x.values, dtype=np.float64)
    return np.asarray(x, dtype=np.float64)


def _wrap(values: np.ndarray, like):
    """Put computed values back into the container type of `like`."""
    if isinstance(like, pd.DataFrame):
        return pd.DataFrame(values, index=like.index, columns=like.columns)
    if isinstance(like, pd.Series):
        return pd.Series(values, index=like.index, name=like.name)
    return values


def check_positive(x, name: str = "composition"):
    """Raise InvalidInput unless every entry of `x` is finite and > 0."""
    values = _as_array(x)
    if values.size == 0:
        raise InvalidInput(f"{name} is empty")
    if not np.all(np.isfinite(values)):
        raise InvalidInput(f"{name} contains NaN or infinite entries")
    if np.any(values <= 0):
        n_bad = int(np.sum(values <= 0))
        raise InvalidInput(
            f"{name} contains {n_bad} zero or negative entries; "
            "log-ratios are undefined (filter zeros before estimation)"
        )


def close(x):
    """Normalize compositions so their entries sum to 1.

    Args:
        x: Series, DataFrame (row-wise) or array (last axis)

    Returns:
        Closed compositions, same type as input
    """
    values = _as_array(x)
    totals = values.sum(axis=-1, keepdims=True)
    if np.any(totals <= 0):
        raise InvalidInput("Cannot close a composition with non-positive total")
    return _wrap(values / totals, x)


def clr(x):
    """Centered log-ratio: log(x) - mean(log(x)) along the taxon axis.

    Entries must be strictly positive.
    """
    check_positive(x)
    values = _as_array(x)
    # log(x / geometric mean) is the same as centering log(x)
    geom_means = gmean(values, axis=-1, keepdims=True)
    return _wrap(np.log(values / geom_means), x)


def clr_inverse(z):
    """Map CLR coordinates back to a closed composition."""
    values = _as_array(z)
    # Shift by the max before exponentiating; closure removes the constant
    shifted = values - values.max(axis=-1, keepdims=True)
    return close(_wrap(np.exp(shifted), z))


def alr(x, reference):
    """Additive log-ratio against a reference taxon.

    Args:
        x: Series or DataFrame indexed by taxon
        reference: Label of the reference taxon (position for arrays)

    Returns:
        Log-ratios log(x_t / x_ref) for every taxon; the reference
        coordinate is identically 0 and is kept so indices line up.
    """
    check_positive(x)
    values = _as_array(x)
    if isinstance(x, pd.DataFrame):
        labels = list(x.columns)
    elif isinstance(x, pd.Series):
        labels = list(x.index)
    else:
        labels = list(range(values.shape[-1]))

    if reference not in labels:
        raise InvalidInput(f"Reference taxon {reference!r} not in taxon set")

    ref_idx = labels.index(reference)
    log_values = np.log(values)
    return _wrap(log_values - log_values[..., ref_idx:ref_idx + 1], x)


def alr_inverse(z):
    """Map ALR coordinates (reference column included) to a closed composition."""
    return clr_inverse(z)


def aitchison_distance(x, y):
    """Aitchison distance between compositions.

    Euclidean distance between CLR representations. For DataFrames the
    distance is computed row by row and returned as a Series indexed by
    sample.
    """
    diff = _as_array(clr(x)) - _as_array(clr(y))
    dist = np.sqrt(np.sum(diff ** 2, axis=-1))

    if isinstance(x, pd.DataFrame):
        return pd.Series(dist, index=x.index, name='aitchison_distance')
    if isinstance(x, pd.Series):
        return float(dist)
    return dist


class DataTransformer:
    """Applies compositional transformations to sample tables with logging."""

    def __init__(self, logger, config):
        self.logger = logger
        self.config = config

    def close_samples(self, counts_df: pd.DataFrame) -> pd.DataFrame:
        """Convert counts to proportions per sample (row-wise closure).

        Args:
            counts_df: DataFrame with samples as rows, taxa as columns

        Returns:
            pd.DataFrame: Proportions summing to 1 per sample
        """
        proportions = close(counts_df)
        self.logger.debug(f"    Closed {len(proportions)} samples to proportions")
        return proportions
