#!/usr/bin/env python3
"""
Mock-community bias analysis pipeline.

This script runs the complete workflow for every configured dataset:
1. Load observed counts, actual compositions and sample metadata
2. Split samples into groups (e.g. by extraction protocol)
3. Per group: restrict to the shared community, drop zero-count samples,
   estimate bias, calibrate observed compositions, evaluate the fit and
   bootstrap the estimate
4. Compare bias between groups

Usage:
    python run_analysis.py

Outputs:
    - output/results/{dataset}/{group}/ - Bias, predictions, diagnostics
    - output/results/{dataset}/comparison/ - Between-group comparisons
    - logs/ - Log files
"""

import os
import time
import traceback
from itertools import combinations
from pathlib import Path
from datetime import datetime

import pandas as pd

from mockbias.config import CONFIG, DATA_DIR, DATASETS, LOG_DIR, RESULTS_DIR
from mockbias.data_handler import DatasetHandler
from mockbias.estimation import BiasEstimator, calibrate
from mockbias.evaluation import BiasEvaluator
from mockbias.exceptions import InvalidInput
from mockbias.filtering import DataFilter
from mockbias.logger import setup_logger
from mockbias.transformations import DataTransformer

COMPARISON_DIRNAME = "comparison"


def group_dirname(group: str) -> str:
    """Directory name for a group label that stays inside the dataset directory."""
    name = str(group)
    for sep in {os.sep, os.altsep, "/"} - {None}:
        name = name.replace(sep, "_")
    name = name.strip()

    # Reserved names would escape the dataset directory or clash with comparisons
    if name in ("", ".", "..", COMPARISON_DIRNAME):
        name = f"group_{name}"
    return name


def group_dirnames(groups) -> dict:
    """Map each group label to a distinct output directory name."""
    dirnames = {}
    used = set()
    for group in groups:
        base = name = group_dirname(group)
        suffix = 2
        while name in used:
            name = f"{base}_{suffix}"
            suffix += 1
        used.add(name)
        dirnames[group] = name
    return dirnames


class BiasAnalysisPipeline:
    """Estimates, evaluates and compares bias for each dataset and group."""

    def __init__(self, datasets, data_dir, output_dir, log_dir, config, run_id=None):
        self.datasets = datasets
        self.data_dir = Path(data_dir)
        self.output_dir = Path(output_dir)
        self.log_dir = Path(log_dir)
        self.config = config

        self.output_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)

        self.logger = setup_logger(self.log_dir, run_id)

        self.filter = DataFilter(self.logger, config)
        self.transformer = DataTransformer(self.logger, config)
        self.estimator = BiasEstimator(self.logger, config)
        self.evaluator = BiasEvaluator(self.logger, config)

        self.results = {}

    def process_group(self, handler: DatasetHandler, group: str) -> dict:
        """Fit and evaluate bias for one group of samples.

        Args:
            handler: DatasetHandler with loaded, stratified data
            group: Group name

        Returns:
            dict: Results for this group
        """
        group_results = {
            'group': group,
            'success': False
        }

        self.logger.info(f"  Processing group '{group}'...")

        observed_raw, actual_raw = handler.get_group_data(group)

        taxa = self.filter.filter_taxa(actual_raw)
        observed, actual = self.filter.filter_samples(observed_raw[taxa], actual_raw[taxa])

        group_results['filter_stats'] = self.filter.get_filter_stats(observed_raw, observed)
        group_results['n_samples'] = len(observed)
        group_results['n_taxa'] = len(taxa)

        min_samples = self.config.get('MIN_SAMPLES_PER_GROUP', 1)
        if len(observed) < min_samples:
            self.logger.warning(
                f"  Group '{group}' has {len(observed)} usable samples "
                f"(need {min_samples}), skipping"
            )
            return group_results

        try:
            bias = self.estimator.fit(observed, actual)
        except InvalidInput as e:
            self.logger.warning(f"  Cannot estimate bias for '{group}': {e}")
            return group_results

        predicted = calibrate(observed, bias)
        evaluation = self.evaluator.evaluate_fit(observed, actual, bias)
        bootstrap_summary = self.estimator.bootstrap(observed, actual, bias)

        group_results['bias'] = bias
        group_results['observed'] = self.transformer.close_samples(observed)
        group_results['actual'] = self.transformer.close_samples(actual)
        group_results['predicted'] = predicted
        group_results['diagnostics'] = evaluation['diagnostics']
        group_results['residuals'] = evaluation['residuals']
        group_results['pairwise_ratios'] = evaluation['pairwise_ratios']
        group_results['metrics'] = evaluation['metrics']
        group_results['bootstrap'] = bootstrap_summary
        group_results['success'] = True

        return group_results

    def process_dataset(self, dataset_name: str, dataset_num: int) -> dict:
        """Run every phase for one dataset.

        Args:
            dataset_name: Name of dataset directory under the data directory
            dataset_num: Dataset number (for logging)

        Returns:
            dict: Processing results
        """
        start_time = time.time()

        self.logger.dataset_start(dataset_name, dataset_num, len(self.datasets))

        result = {
            'dataset': dataset_name,
            'success': False,
            'execution_time': 0
        }

        try:
            # 1. LOAD DATA
            self.logger.phase_start("Phase 1: Load Data & Group Samples")
            handler = DatasetHandler(dataset_name, self.data_dir, self.logger)

            if not handler.load_raw_data():
                result['error'] = "Failed to load data"
                result['execution_time'] = time.time() - start_time
                return result

            groups = handler.stratify_samples(self.config.get('GROUP_COLUMN'))
            result['n_samples'] = len(handler.common_samples)
            result['n_groups'] = len(groups)

            # 2. FIT EACH GROUP
            self.logger.phase_start("Phase 2: Estimate Bias per Group")
            group_results = {}
            for group in groups:
                group_results[group] = self.process_group(handler, group)
                if group_results[group]['success']:
                    self.logger.metric(dataset_name, group, group_results[group]['metrics'])

            fitted = {g: r for g, r in group_results.items() if r['success']}
            result['groups'] = group_results
            result['n_groups_fitted'] = len(fitted)

            if len(fitted) == 0:
                result['error'] = "No group could be fitted"
                result['execution_time'] = time.time() - start_time
                self.logger.error(f"✗ No group could be fitted for {dataset_name}")
                return result

            result['mean_aitchison_after'] = float(pd.concat(
                [r['diagnostics']['aitchison_after'] for r in fitted.values()]
            ).mean())

            # 3. COMPARE GROUPS
            if len(fitted) >= 2:
                self.logger.phase_start("Phase 3: Compare Bias Between Groups")
                result['comparison'] = self.evaluator.compare_groups(
                    {g: r['bias'] for g, r in fitted.items()}
                )

            # 4. SAVE RESULTS
            self.logger.phase_start("Phase 4: Save Results")
            dataset_dir = self.output_dir / dataset_name
            dataset_dir.mkdir(exist_ok=True, parents=True)

            result['group_dirs'] = group_dirnames(fitted)
            for group, group_result in fitted.items():
                group_dir = dataset_dir / result['group_dirs'][group]
                group_dir.mkdir(exist_ok=True)
                self._save_group_results(group_result, group_dir)

            if 'comparison' in result:
                comparison_dir = dataset_dir / COMPARISON_DIRNAME
                comparison_dir.mkdir(exist_ok=True)
                pairs = result['comparison']['pairs']
                for group_a, group_b in combinations(fitted, 2):
                    comparison = pairs[f"{group_a}_vs_{group_b}"]
                    filename = (f"{result['group_dirs'][group_a]}_vs_"
                                f"{result['group_dirs'][group_b]}.csv")
                    comparison.to_csv(comparison_dir / filename, index=False)
                result['comparison']['summary'].to_csv(
                    comparison_dir / "summary.csv", index=False
                )
                self.logger.info(f"  Saved {len(result['comparison']['pairs'])} group comparisons")

            result['success'] = True
            result['execution_time'] = time.time() - start_time

            self.logger.info(f"✓ Dataset completed in {result['execution_time']:.1f}s")

            return result

        except Exception as e:
            self.logger.error(f"✗ Error processing dataset: {e}")
            self.logger.debug(traceback.format_exc())
            result['error'] = str(e)
            result['execution_time'] = time.time() - start_time
            return result

    def _save_group_results(self, group_results: dict, output_dir: Path):
        """Save results for a single group.

        Args:
            group_results: Results dictionary for the group
            output_dir: Directory to save results
        """
        group_results['bias'].to_frame().assign(group=group_results['group']).to_csv(
            output_dir / "bias.csv"
        )
        group_results['observed'].to_csv(output_dir / "observed.csv", index_label='sample')
        group_results['actual'].to_csv(output_dir / "actual.csv", index_label='sample')
        group_results['predicted'].to_csv(output_dir / "predicted.csv", index_label='sample')
        group_results['diagnostics'].to_csv(output_dir / "diagnostics.csv")
        group_results['residuals'].to_csv(output_dir / "residuals.csv", index_label='sample')
        group_results['pairwise_ratios'].to_csv(output_dir / "pairwise_ratios.csv", index=False)

        if group_results['bootstrap'] is not None:
            group_results['bootstrap'].to_csv(output_dir / "bootstrap_summary.csv")

        self.logger.debug(f"  Saved results for '{group_results['group']}' to {output_dir}")

    def run(self):
        """Execute the pipeline for all datasets."""
        pipeline_start = time.time()

        self.logger.section("MOCK-COMMUNITY BIAS ANALYSIS", level=1)
        self.logger.info(f"Datasets: {len(self.datasets)}")
        self.logger.info(f"Method: {self.config.get('BIAS_METHOD', 'rss')}")
        self.logger.info(f"Output directory: {self.output_dir}")
        self.logger.info("")

        for i, dataset_name in enumerate(self.datasets, 1):
            self.results[dataset_name] = self.process_dataset(dataset_name, i)

        total_time = time.time() - pipeline_start
        self.logger.pipeline_summary(self.results, total_time)

        return self.results


def main():
    """Main entry point."""
    print("=" * 80)
    print("MOCK-COMMUNITY BIAS ANALYSIS")
    print("=" * 80)
    print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print()

    pipeline = BiasAnalysisPipeline(
        datasets=DATASETS,
        data_dir=DATA_DIR,
        output_dir=RESULTS_DIR,
        log_dir=LOG_DIR,
        config=CONFIG
    )

    pipeline.run()
    pipeline.logger.close()


if __name__ == "__main__":
    main()
