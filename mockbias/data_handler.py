"""Loading and grouping of mock-community datasets."""

import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional


class DatasetHandler:
    """Loads observed counts, actual compositions and metadata for one dataset."""

    def __init__(self, dataset_name: str, data_dir: Path, logger):
        self.name = dataset_name
        self.data_dir = Path(data_dir) / dataset_name
        self.logger = logger

        self.observed_raw = None
        self.actual_raw = None
        self.metadata = None
        self.common_samples = None

        # Ordered mapping: group name -> sample list
        self.groups: Dict[str, List[str]] = {}

    def load_raw_data(self) -> bool:
        """Load observed, actual and metadata tables.

        Returns:
            bool: True if data loaded successfully
        """
        if not self.data_dir.exists():
            self.logger.error(f"Dataset directory not found: {self.data_dir}")
            return False

        observed_file = self.data_dir / "observed.tsv"
        actual_file = self.data_dir / "actual.tsv"

        for path in (observed_file, actual_file):
            if not path.exists():
                self.logger.error(f"  Missing required file: {path.name}")
                return False

        try:
            self.observed_raw = pd.read_csv(observed_file, sep='\t', index_col=0)
            self.actual_raw = pd.read_csv(actual_file, sep='\t', index_col=0)
        except (OSError, pd.errors.ParserError) as e:
            self.logger.error(f"  Error loading data: {e}")
            return False

        self.logger.info(f"  Loaded observed counts: {self.observed_raw.shape}")
        self.logger.info(f"  Loaded actual compositions: {self.actual_raw.shape}")

        metadata_file = self.data_dir / "metadata.tsv"
        if metadata_file.exists():
            self.metadata = pd.read_csv(metadata_file, sep='\t')
            if 'Sample' in self.metadata.columns:
                self.metadata = self.metadata.set_index('Sample')
            else:
                first_column = self.metadata.columns[0]
                self.logger.warning(
                    f"  No 'Sample' column in metadata, using '{first_column}' as sample IDs"
                )
                self.metadata = self.metadata.set_index(first_column)
            self.logger.info(f"  Loaded metadata: {self.metadata.shape}")
        else:
            self.logger.warning("  No metadata found - all samples form one group")

        actual_samples = set(self.actual_raw.index)
        self.common_samples = [s for s in self.observed_raw.index if s in actual_samples]

        if len(self.common_samples) == 0:
            self.logger.error("  No common samples between observed and actual")
            return False

        # Taxa missing from one table are absent (zero) there
        taxa = self.observed_raw.columns.union(self.actual_raw.columns, sort=False)
        self.observed_raw = self.observed_raw.reindex(
            index=self.common_samples, columns=taxa, fill_value=0
        ).fillna(0)
        self.actual_raw = self.actual_raw.reindex(
            index=self.common_samples, columns=taxa, fill_value=0
        ).fillna(0)

        self.logger.info(f"  Common samples: {len(self.common_samples)}, taxa: {len(taxa)}")
        return True

    def stratify_samples(self, group_column: Optional[str] = None) -> Dict[str, List[str]]:
        """Split samples into groups by a metadata column.

        Args:
            group_column: Metadata column; None or missing puts every sample
                into a single group named 'all'

        Returns:
            dict: Group name -> list of samples, in order of first appearance
        """
        if self.common_samples is None:
            raise ValueError("Data must be loaded before stratifying samples")

        if (self.metadata is None or group_column is None
                or group_column not in self.metadata.columns):
            if group_column is not None and self.metadata is not None:
                self.logger.warning(f"  '{group_column}' column not found in metadata")
            self.groups = {'all': list(self.common_samples)}
        else:
            labels = self.metadata[group_column].reindex(self.common_samples)
            n_unlabelled = int(labels.isna().sum())
            if n_unlabelled == len(labels):
                self.logger.warning(
                    f"  No sample matches a metadata row; check the sample IDs in "
                    f"{self.data_dir / 'metadata.tsv'}"
                )
            elif n_unlabelled > 0:
                self.logger.warning(
                    f"  {n_unlabelled} samples have no '{group_column}' value and are skipped"
                )

            self.groups = {}
            for sample, label in labels.dropna().items():
                self.groups.setdefault(str(label), []).append(sample)

        summary = ", ".join(f"{g}={len(s)}" for g, s in self.groups.items())
        self.logger.info(f"  Groups: {summary}")

        return self.groups

    def get_group_data(self, group: str) -> tuple:
        """Get observed and actual tables for one group.

        Args:
            group: Group name from stratify_samples

        Returns:
            tuple: (observed_df, actual_df)
        """
        if group not in self.groups:
            raise ValueError(
                f"Unknown group '{group}'. Available groups: {list(self.groups)}"
            )

        samples = self.groups[group]
        return self.observed_raw.loc[samples], self.actual_raw.loc[samples]
