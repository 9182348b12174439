"""Shared fixtures: synthetic mock communities and a throwaway run logger."""

import uuid

import numpy as np
import pandas as pd
import pytest

from mockbias.logger import PipelineLogger
from mockbias.transformations import close

TAXA = [
    'Lactobacillus_crispatus',
    'Gardnerella_vaginalis',
    'Prevotella_bivia',
    'Atopobium_vaginae',
]


@pytest.fixture
def logger(tmp_path):
    pipeline_logger = PipelineLogger(tmp_path / "logs", run_id=uuid.uuid4().hex)
    yield pipeline_logger
    pipeline_logger.close()


@pytest.fixture
def config():
    return {
        'GROUP_COLUMN': 'Condition',
        'BIAS_METHOD': 'rss',
        'REFERENCE_TAXON': None,
        'MIN_READ_DEPTH': 1000,
        'MIN_SAMPLES_PER_GROUP': 2,
        'N_BOOTSTRAP': 200,
        'BIAS_LOG2FC_THRESHOLD': 1.0,
        'RANDOM_STATE': 42,
    }


@pytest.fixture
def true_bias():
    return pd.Series([4.0, 2.0, 1.0, 0.5], index=TAXA)


@pytest.fixture
def actual():
    rng = np.random.default_rng(0)
    values = rng.dirichlet(np.full(len(TAXA), 2.0), size=6)
    return pd.DataFrame(values, index=[f"S{i}" for i in range(1, 7)], columns=TAXA)


@pytest.fixture
def observed(actual, true_bias):
    """Observed compositions carrying exactly the true bias."""
    return close(actual * true_bias)


@pytest.fixture
def noisy_observed(actual, true_bias):
    rng = np.random.default_rng(1)
    noise = np.exp(rng.normal(0, 0.3, size=actual.shape))
    return close(actual * true_bias * noise)


@pytest.fixture
def write_dataset():
    """Write a dataset directory in the layout DatasetHandler reads."""

    def _write(root, name, observed, actual, metadata=None):
        dataset_dir = root / name
        dataset_dir.mkdir(parents=True, exist_ok=True)
        observed.to_csv(dataset_dir / "observed.tsv", sep='\t', index_label='Sample')
        actual.to_csv(dataset_dir / "actual.tsv", sep='\t', index_label='Sample')
        if metadata is not None:
            metadata.to_csv(dataset_dir / "metadata.tsv", sep='\t', index=False)
        return dataset_dir

    return _write
