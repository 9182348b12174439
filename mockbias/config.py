"""Configuration for the bias analysis pipeline."""

from pathlib import Path

# Directories
BASE_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = BASE_DIR / "data"
OUTPUT_DIR = BASE_DIR / "output"
RESULTS_DIR = OUTPUT_DIR / "results"
LOG_DIR = BASE_DIR / "logs"

# Mock-community datasets under DATA_DIR (observed.tsv, actual.tsv, metadata.tsv)
DATASETS = [
    "EXAMPLE_MOCK",
]

# Metadata column used to split samples into groups fitted separately
# (e.g. extraction protocol or sequencing run)
GROUP_COLUMN = "Condition"

# Estimation
BIAS_METHOD = "rss"                 # 'rss' or 'gm'
REFERENCE_TAXON = None              # None = CLR; a taxon name = ALR against it

# Filtering
MIN_READ_DEPTH = 1000               # Drop samples with fewer total reads
MIN_SAMPLES_PER_GROUP = 2           # Groups with fewer samples are not fitted

# Bootstrap uncertainty (0 disables)
N_BOOTSTRAP = 1000

# Group comparison
BIAS_LOG2FC_THRESHOLD = 1.0         # |log2 fold change| to call a taxon's bias changed

# Random seed for reproducibility
RANDOM_STATE = 42

# Configuration dictionary for pipeline components
CONFIG = {
    # Grouping
    'GROUP_COLUMN': GROUP_COLUMN,

    # Estimation
    'BIAS_METHOD': BIAS_METHOD,
    'REFERENCE_TAXON': REFERENCE_TAXON,

    # Filtering
    'MIN_READ_DEPTH': MIN_READ_DEPTH,
    'MIN_SAMPLES_PER_GROUP': MIN_SAMPLES_PER_GROUP,

    # Bootstrap
    'N_BOOTSTRAP': N_BOOTSTRAP,

    # Comparison
    'BIAS_LOG2FC_THRESHOLD': BIAS_LOG2FC_THRESHOLD,

    # Misc
    'RANDOM_STATE': RANDOM_STATE
}
