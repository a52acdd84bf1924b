"""
Shared fixtures for the differential expression workflow tests.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from rnaseq_de.domain.models import CountMatrix, DesignSpec, SampleMetadata


@pytest.fixture
def scenario_counts():
    """4 genes x 4 samples, two groups of two; G1 differs, G2 does not"""
    data = pd.DataFrame(
        {
            "S1": [100, 50, 30, 5],
            "S2": [120, 50, 28, 3],
            "S3": [10, 51, 33, 2],
            "S4": [8, 49, 31, 4],
        },
        index=["G1", "G2", "G3", "G4"],
    )
    return CountMatrix(data)


@pytest.fixture
def scenario_metadata():
    data = pd.DataFrame(
        {"condition": ["A", "A", "B", "B"]},
        index=["S1", "S2", "S3", "S4"],
    )
    return SampleMetadata(data)


@pytest.fixture
def condition_design():
    return DesignSpec(factors=("condition",))


@pytest.fixture(scope="session")
def synthetic_frames():
    """
    200 negative binomial genes x 6 samples (3 A, 3 B).

    The first 20 genes change 4-fold between groups, alternating direction.
    """
    rng = np.random.default_rng(42)
    n_genes = 200
    groups = np.array(["A", "A", "A", "B", "B", "B"])
    base = rng.uniform(50, 1000, n_genes)
    lfc = np.zeros(n_genes)
    lfc[:20] = np.where(np.arange(20) % 2 == 0, 2.0, -2.0)

    mu = base[:, None] * np.where(groups == "B", 2.0 ** lfc[:, None], 1.0)
    dispersion = 0.05
    n = 1.0 / dispersion
    counts = rng.negative_binomial(n, n / (n + mu))

    samples = [f"S{i + 1}" for i in range(len(groups))]
    genes = [f"gene{i:03d}" for i in range(n_genes)]
    counts_df = pd.DataFrame(counts, index=genes, columns=samples)
    metadata_df = pd.DataFrame({"condition": groups}, index=samples)
    return counts_df, metadata_df


@pytest.fixture
def synthetic_counts(synthetic_frames):
    return CountMatrix(synthetic_frames[0])


@pytest.fixture
def synthetic_metadata(synthetic_frames):
    return SampleMetadata(synthetic_frames[1])


@pytest.fixture
def scenario_files(tmp_path, scenario_counts, scenario_metadata):
    """Scenario inputs written the way the loader expects them"""
    counts_file = tmp_path / "counts.tsv"
    metadata_file = tmp_path / "metadata.csv"
    scenario_counts.data.to_csv(counts_file, sep="\t")
    scenario_metadata.data.to_csv(metadata_file)
    return str(counts_file), str(metadata_file)


@pytest.fixture
def annotation_file(tmp_path):
    path = tmp_path / "annotation.tsv"
    pd.DataFrame(
        {
            "gene_id": ["G1", "G2", "G2"],
            "symbol": ["TP53", "ACTB", "ACTB2"],
            "name": ["tumor protein p53", "actin beta", "actin beta 2"],
        }
    ).to_csv(path, sep="\t", index=False)
    return str(path)
