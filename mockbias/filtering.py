"""Filtering of mock-community samples and taxa ahead of bias estimation."""

import pandas as pd


class DataFilter:
    """Restricts each group to zero-free data over its shared community."""

    def __init__(self, logger, config):
        self.logger = logger
        self.config = config

    def filter_taxa(self, actual_df: pd.DataFrame) -> list:
        """Select taxa expected in every sample of the group.

        Args:
            actual_df: DataFrame with samples as rows, taxa as columns

        Returns:
            list: Taxa with positive actual abundance in all samples
        """
        expected = (actual_df > 0).all(axis=0)
        taxa = actual_df.columns[expected].tolist()

        n_dropped = actual_df.shape[1] - len(taxa)
        if n_dropped > 0:
            self.logger.debug(
                f"    Dropped {n_dropped} taxa not expected in every sample"
            )

        self.logger.info(f"    Taxa: {actual_df.shape[1]} → {len(taxa)} (shared community)")
        return taxa

    def filter_samples(self, observed_df: pd.DataFrame, actual_df: pd.DataFrame) -> tuple:
        """Drop shallow samples and samples with zero counts among expected taxa.

        Args:
            observed_df: Observed counts restricted to the kept taxa
            actual_df: Actual abundances restricted to the kept taxa

        Returns:
            tuple: (observed_df, actual_df) for the kept samples
        """
        original_n = len(observed_df)
        min_depth = self.config.get('MIN_READ_DEPTH', 0)

        # Depth is measured over the kept taxa only
        depth = observed_df.sum(axis=1)
        keep_by_depth = depth >= min_depth
        n_shallow = int((~keep_by_depth).sum())
        if n_shallow > 0:
            self.logger.debug(
                f"    Removed {n_shallow} samples below {min_depth:,} reads"
            )

        keep_by_zeros = (observed_df > 0).all(axis=1)
        n_zero = int((keep_by_depth & ~keep_by_zeros).sum())
        if n_zero > 0:
            dropped = observed_df.index[keep_by_depth & ~keep_by_zeros].tolist()
            self.logger.warning(
                f"    Removed {n_zero} samples with zero counts for expected taxa: "
                f"{', '.join(map(str, dropped[:5]))}{' ...' if n_zero > 5 else ''}"
            )

        keep = keep_by_depth & keep_by_zeros
        observed_filtered = observed_df.loc[keep]
        actual_filtered = actual_df.loc[observed_filtered.index]

        self.logger.info(
            f"    Samples: {original_n} → {len(observed_filtered)} "
            f"(depth>={min_depth:,}, zero-free)"
        )

        return observed_filtered, actual_filtered

    def get_filter_stats(self, observed_before: pd.DataFrame,
                         observed_after: pd.DataFrame) -> dict:
        """Calculate filtering statistics for logging.

        Returns:
            dict: Statistics about the filtering operation
        """
        n_before = observed_before.shape[0]
        n_after = observed_after.shape[0]
        return {
            'samples_before': n_before,
            'samples_after': n_after,
            'taxa_before': observed_before.shape[1],
            'taxa_after': observed_after.shape[1],
            'sample_reduction_pct': 100 * (1 - n_after / n_before) if n_before > 0 else 0.0,
        }
