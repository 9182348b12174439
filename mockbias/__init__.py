"""Estimation and correction of taxonomic bias in mock-community data."""

from .exceptions import InvalidInput
from .transformations import close, clr, clr_inverse, alr, alr_inverse, aitchison_distance
from .estimation import estimate_bias, calibrate, bootstrap_bias, summarize_bootstrap
from .evaluation import fit_diagnostics, residuals, pairwise_bias_ratios, bias_distance

__all__ = [
    'InvalidInput',
    'close',
    'clr',
    'clr_inverse',
    'alr',
    'alr_inverse',
    'aitchison_distance',
    'estimate_bias',
    'calibrate',
    'bootstrap_bias',
    'summarize_bootstrap',
    'fit_diagnostics',
    'residuals',
    'pairwise_bias_ratios',
    'bias_distance',
]
