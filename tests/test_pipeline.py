"""
End-to-end runs of the LangGraph pipeline and the CLI.
"""

import os

import pytest

import main as pipeline
from main import build_graph, main, run_salinostat


# ============================================================
# Graph
# ============================================================

class TestGraph:
    """Graph wiring"""

    def test_every_stage_registered(self):
        graph = build_graph()
        nodes = set(graph.get_graph().nodes)
        for name, _ in pipeline.PIPELINE:
            assert name in nodes


# ============================================================
# run_salinostat
# ============================================================

class TestRunSalinostat:
    """Full pipeline on the synthetic bottle/cast pair"""

    @pytest.fixture
    def state(self, analysis_config):
        return run_salinostat(analysis_config)

    def test_completes(self, state):
        assert state.get("fatal_error") is None
        report = state["report_output"]
        assert os.path.isfile(report["markdown_path"])
        assert os.path.isfile(report["json_path"])

    def test_model_sequence(self, state):
        names = [f["name"] for f in state["model_fits"]]
        assert names[0] == "full_ols"
        assert names[-1] == "wls"
        assert set(names) <= {"full_ols", "pruned_ols", "selected_ols", "boxcox_ols", "trimmed_ols", "wls"}
        assert set(state["diagnostics"]) == set(names)
        # STheta is almost a function of temperature and salinity
        assert "pruned_ols" in names

    def test_holdout_scored(self, state):
        for fit in state["model_fits"]:
            assert fit["holdout_n"] > 0
            assert fit["holdout_rmse"] is not None

    def test_sampling(self, state):
        pre = state["preprocessor_output"]
        assert pre["sample_size"] == 600
        assert pre["holdout_size"] == 300
        assert not set(state["train_df"].index) & set(state["holdout_df"].index)

    def test_recommendation_and_figures(self, state):
        comparison = state["comparison_output"]
        names = [f["name"] for f in state["model_fits"]]
        assert comparison["recommended_model"] in names
        for path in state["figures"].values():
            assert os.path.isfile(path)
        assert "Model comparison" in state["figures"]

    def test_nested_tests_follow_refits(self, state):
        names = [f["name"] for f in state["model_fits"]]
        reduced = {t["reduced_model"] for t in state["nested_tests"]}
        assert ("pruned_ols" in names) == ("pruned_ols" in reduced)
        assert ("selected_ols" in names) == ("selected_ols" in reduced)

    def test_without_holdout_recommends_unweighted_raw_fit(self, analysis_config):
        state = run_salinostat(analysis_config.model_copy(update={"holdout_size": 0}))
        assert state.get("fatal_error") is None
        fits = {f["name"]: f for f in state["model_fits"]}
        assert all(f["holdout_n"] == 0 for f in fits.values())
        recommended = fits[state["comparison_output"]["recommended_model"]]
        assert recommended["kind"] == "ols"
        assert recommended["response_lambda"] is None
        assert "No holdout available" in state["comparison_output"]["recommendation_reason"]

    def test_alpha_reaches_fit_interpretation(self, analysis_config):
        state = run_salinostat(analysis_config.model_copy(update={"alpha": 0.01}))
        full = next(f for f in state["model_fits"] if f["name"] == "full_ols")
        assert "significant at 0.01" in full["interpretation"]

    def test_missing_file_is_fatal(self, analysis_config, tmp_path):
        config = analysis_config.model_copy(update={"bottle_path": str(tmp_path / "missing.csv")})
        state = run_salinostat(config)
        assert state["fatal_error"].startswith("load_data:")
        assert "report_output" not in state

    def test_narrator_interpretation(self, analysis_config, monkeypatch):
        calls = []

        def fake_narrator(**kwargs):
            calls.append(kwargs)
            return "Salinity increases with depth."

        monkeypatch.setattr(pipeline, "run_report_narrator", fake_narrator)
        state = run_salinostat(analysis_config.model_copy(update={"narrate": True}))
        assert calls
        assert state["report_output"]["interpretation"] == "Salinity increases with depth."
        assert "## Interpretation" in state["report_output"]["markdown_report"]


# ============================================================
# CLI
# ============================================================

class TestCLI:
    """main() exit codes"""

    def test_success(self, csv_paths, tmp_path, capsys):
        bottle, cast = csv_paths
        out = str(tmp_path / "cli")
        code = main([bottle, cast, "--sample-size", "500", "--holdout-size", "200",
                     "--output-dir", out, "--seed", "7", "--log-level", "WARNING"])
        assert code == 0
        assert os.path.isfile(os.path.join(out, "report.md"))
        assert "Recommended model:" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, csv_paths):
        _, cast = csv_paths
        assert main([str(tmp_path / "nope.csv"), cast, "--output-dir", str(tmp_path / "x")]) == 1

    def test_bad_config(self, tmp_path, csv_paths):
        bottle, cast = csv_paths
        config = tmp_path / "bad.toml"
        config.write_text("[analysis]\nsample_size = 3\n")
        assert main([bottle, cast, "--config", str(config)]) == 1
