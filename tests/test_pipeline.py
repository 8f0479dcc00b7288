"""Tests for the pipeline runner and the scan() API.

These run the whole chain (readers, preparation passes, tests, FDR,
writer) on small cohorts written to tmp_path.
"""

from pathlib import Path

import numpy as np
import pytest

from poppante import scan
from poppante.core.config import AnalysisConfig, Mode, OutputConfig
from poppante.dataset import DatasetFiles, load_dataset
from poppante.lmm.permutation import max_permutations
from poppante.pipeline import PipelineConfig, PipelineRunner

pytestmark = pytest.mark.tier1


def _scan(files, output_dir, **kwargs):
    return scan(
        files["ped"],
        files["predictor"],
        files["map"],
        output_dir=output_dir,
        show_progress=False,
        threads=1,
        **kwargs,
    )


@pytest.fixture
def twin_files(write_file):
    """Ten MZ twin pairs whose parents are mock individuals.

    The predictor and the covariate are constant.
    """
    rng = np.random.default_rng(8)
    ped, values, covariates = [], [], []
    for f in range(1, 11):
        y = rng.standard_normal(2)
        ped += [
            f"T{f} 1 0 0 1 -9 0 NA",
            f"T{f} 2 0 0 2 -9 0 NA",
            f"T{f} 3 1 2 1 0 MZ {y[0]:.6f}",
            f"T{f} 4 1 2 1 0 MZ {y[1]:.6f}",
        ]
        values += [f"T{f} {i} 1.0" for i in range(1, 5)]
        covariates += [f"T{f} 3 5.0", f"T{f} 4 5.0"]
    return {
        "ped": write_file("twins.ped", ped),
        "predictor": write_file("twins.meth", values),
        "map": write_file("twins.map", ["cg1"]),
        "response": write_file("twins.resp", ["y"]),
        "covariate": write_file("twins.cov", covariates),
    }


class TestAssociationScan:
    def test_association_results_and_table(self, cohort_files, output_dir):
        result = _scan(cohort_files, output_dir, response=cohort_files["response"])
        assert result.n_individuals == 40
        assert result.n_tests == 3
        assert result.n_failed == 0
        assert [r.predictor for r in result.results] == ["cg1", "cg2", "cg3"]

        signal = result.results[0].stats
        assert signal.pvalue < 1e-4
        assert signal.beta > 0
        assert signal.adj_pvalue >= signal.pvalue

        lines = result.results_path.read_text().splitlines()
        assert len(lines) == 4
        header = lines[0].split("\t")
        assert header[:4] == ["Response", "Predictor", "Chr", "Position"]
        assert lines[1].split("\t")[:4] == ["y", "cg1", "1", "100"]
        assert "epvalue" not in header

    def test_mz_twins_with_constant_predictor(self, twin_files, output_dir):
        """Mock parents are dropped and the constant columns leave the design."""
        result = _scan(
            twin_files,
            output_dir,
            response=twin_files["response"],
            covariate=twin_files["covariate"],
            alpha=0.05,
            c=0.5,
        )
        assert result.n_individuals == 20
        (test,) = result.results
        assert test.ok
        budget = max_permutations(0.05, 0.5)
        assert test.stats.chi2 == 0.0
        assert test.stats.pvalue == 1.0
        assert test.stats.beta == 0.0
        assert test.stats.permutations == budget
        assert test.stats.epvalue == pytest.approx(1.0 / (budget + 1))
        header = result.results_path.read_text().splitlines()[0].split("\t")
        assert "epvalue" in header and "adj_epvalue" in header
        assert "Chr" not in header

    def test_filter_selects_responses(self, cohort_files, output_dir, write_file):
        with pytest.raises(ValueError, match="filtered responses"):
            _scan(
                cohort_files,
                output_dir,
                response=cohort_files["response"],
                filter=write_file("filter.txt", ["bmi"]),
            )

    def test_include_selects_predictors(self, cohort_files, output_dir, write_file):
        result = _scan(
            cohort_files,
            output_dir,
            response=cohort_files["response"],
            include=write_file("include.txt", ["cg3"]),
        )
        assert [r.predictor for r in result.results] == ["cg3"]

    def test_missing_covariates_remove_individuals(self, cohort_files, output_dir, write_file):
        lines = [f"F{f} {i} {f + i}.0" for f in range(1, 11) for i in range(1, 5)]
        lines[0] = "F1 1 NA"
        covariate = write_file("cohort.cov", lines)
        result = _scan(
            cohort_files, output_dir, response=cohort_files["response"], covariate=covariate
        )
        assert result.n_individuals == 39
        assert result.results[0].stats.n_obs == 39

    def test_options_add_columns(self, cohort_files, output_dir):
        result = _scan(
            cohort_files,
            output_dir,
            response=cohort_files["response"],
            relc=1.0,
            report_variances=True,
            normalise="both",
        )
        header = result.results_path.read_text().splitlines()[0].split("\t")
        assert header[-4:] == ["PosF", "GiniC", "var_Null", "var_Full"]
        assert result.results[0].stats.pos_f is not None


class TestHeritabilityScan:
    def test_mode_defaults_to_heritability(self, cohort_files, output_dir):
        result = _scan(cohort_files, output_dir)
        assert result.n_tests == 3
        assert all(r.response is None for r in result.results)
        assert all(0.0 <= r.stats.heritability <= 1.0 for r in result.results if r.ok)
        header = result.results_path.read_text().splitlines()[0].split("\t")
        assert header[0] == "Predictor"
        assert header[-1] == "Heritability"

    def test_region_collapsing(self, cohort_files, output_dir):
        result = _scan(cohort_files, output_dir, region=50)
        assert result.n_tests == 3
        assert result.n_failed == 0

    def test_region_needs_positions(self, cohort_files, output_dir, write_file):
        files = dict(cohort_files, map=write_file("plain.map", ["cg1", "cg2", "cg3"]))
        with pytest.raises(ValueError, match="chromosome and position"):
            _scan(files, output_dir, region=50)

    def test_principal_component_correction(self, cohort_files, output_dir):
        result = _scan(cohort_files, output_dir, correct="0.5")
        assert result.n_tests == 3

    def test_correction_file_must_cover_everyone(self, cohort_files, output_dir, write_file):
        correction = write_file("corr.txt", ["F1 1 0.5", "F1 2 0.1"])
        with pytest.raises(ValueError, match="no correction covariates"):
            _scan(cohort_files, output_dir, correct=str(correction))


class TestExternalKinship:
    @pytest.fixture
    def kinship_file(self, write_file, sibling_kinship):
        lines = []
        for f in range(1, 11):
            for a in range(4):
                for b in range(a + 1, 4):
                    lines.append(f"F{f} {a + 1} F{f} {b + 1} {sibling_kinship[a, b]}")
        return write_file("cohort.kin", lines)

    def test_single_block(self, cohort_files, kinship_file, tmp_path):
        files = DatasetFiles(
            ped=cohort_files["ped"],
            predictor=cohort_files["predictor"],
            map_file=cohort_files["map"],
            kinship=kinship_file,
        )
        data = load_dataset(files, AnalysisConfig(mode=Mode.HERITABILITY, external_kinship=True))
        assert data.n_families == 1
        assert data.blocks[0].kinship.shape == (40, 40)
        assert data.external_kinship

    def test_lu_decomposition(self, cohort_files, kinship_file, output_dir):
        result = _scan(
            cohort_files,
            output_dir,
            response=cohort_files["response"],
            kinship=kinship_file,
            decomposition="lu",
            relc=0.5,
        )
        assert result.n_tests == 3
        assert result.results[0].ok
        assert result.results[0].stats.pos_f is None

    def test_lu_requires_kinship(self, cohort_files, output_dir):
        with pytest.raises(ValueError, match="external kinship"):
            _scan(cohort_files, output_dir, decomposition="lu")


class TestPipelineRunner:
    def test_missing_input_file(self, cohort_files, output_dir):
        config = PipelineConfig(
            files=DatasetFiles(
                ped=cohort_files["ped"],
                predictor=Path("/nonexistent/values.txt"),
                map_file=cohort_files["map"],
            ),
            analysis=AnalysisConfig(mode=Mode.HERITABILITY),
            output=OutputConfig(outdir=output_dir),
            show_progress=False,
        )
        with pytest.raises(FileNotFoundError, match="predictor"):
            PipelineRunner(config).run()

    def test_association_requires_response(self, cohort_files, output_dir):
        config = PipelineConfig(
            files=DatasetFiles(
                ped=cohort_files["ped"],
                predictor=cohort_files["predictor"],
                map_file=cohort_files["map"],
            ),
            output=OutputConfig(outdir=output_dir),
        )
        with pytest.raises(ValueError, match="response file"):
            PipelineRunner(config).validate_inputs()

    def test_result_counts_and_timing(self, cohort_files, output_dir):
        config = PipelineConfig(
            files=DatasetFiles(
                ped=cohort_files["ped"],
                predictor=cohort_files["predictor"],
                map_file=cohort_files["map"],
                response=cohort_files["response"],
            ),
            analysis=AnalysisConfig(threads=1),
            output=OutputConfig(outdir=output_dir, prefix="run"),
            show_progress=False,
        )
        result = PipelineRunner(config).run()
        assert result.results_path == output_dir / "run.tsv"
        assert result.n_families == 10
        assert result.null_cache_hits == 2
        assert set(result.timing) == {"load_s", "tests_s", "total_s"}
