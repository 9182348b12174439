"""Exceptions raised by the bias estimation kernel."""


class InvalidInput(ValueError):
    """Input compositions violate a precondition of the estimator.

    Raised for zero, negative or non-finite entries, empty sample sets,
    mismatched sample or taxon sets, fewer than two taxa and unknown
    estimation methods. Nothing is retried and no partial result is returned.
    """
