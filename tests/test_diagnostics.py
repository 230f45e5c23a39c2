"""
Post-fit residual checks and influence measures.
"""

import numpy as np
import pandas as pd
import pytest
from scipy import stats

import core.diagnostics_engine as diagnostics_engine
from Schemas.diagnostics import DiagnosticStatus
from Utils.diagnostics_registry import POST_FIT_CHECK_REGISTRY
from core.diagnostics_engine import (
    check_autocorrelation_dw,
    check_homoscedasticity_bp,
    check_linearity_reset,
    check_normality_of_residuals,
    compute_influence,
    run_model_diagnostics,
)
from core.regression_engine import estimate_variance_weights, fit_ols, fit_wls

N = 400


def normal_scores(n: int) -> np.ndarray:
    return stats.norm.ppf((np.arange(1, n + 1) - 0.5) / n)


def _check(name: str) -> dict:
    return next(a for a in POST_FIT_CHECK_REGISTRY if a["name"] == name)


def _frame(y_fn, noise: np.ndarray, start: int = 0) -> pd.DataFrame:
    x = np.linspace(0, 10, N)
    return pd.DataFrame({"y": y_fn(x) + noise, "x": x}, index=range(start, start + N))


@pytest.fixture
def shuffled_scores():
    return np.random.default_rng(5).permutation(normal_scores(N))


@pytest.fixture
def clean_results(shuffled_scores):
    df = _frame(lambda x: 1 + 2 * x, 0.5 * shuffled_scores)
    return fit_ols(df, "y", ["x"], "clean")[1]


@pytest.fixture
def hetero_results(shuffled_scores):
    x = np.linspace(0, 10, N)
    df = _frame(lambda x: 1 + 2 * x, (0.1 + 0.5 * x) * shuffled_scores)
    return df, fit_ols(df, "y", ["x"], "hetero")[1]


# ============================================================
# Individual checks
# ============================================================

class TestChecks:
    """Single residual tests"""

    def test_normal_residuals_pass(self, clean_results):
        result = check_normality_of_residuals(np.asarray(clean_results.resid), _check("normality_of_residuals"))
        assert result.status == DiagnosticStatus.PASSED
        assert result.test_used.startswith("Shapiro-Wilk")

    def test_skewed_residuals_fail(self):
        noise = np.exp(normal_scores(N)) - 1.5
        df = _frame(lambda x: 1 + 2 * x, np.random.default_rng(3).permutation(noise))
        _, results = fit_ols(df, "y", ["x"], "skewed")
        result = check_normality_of_residuals(np.asarray(results.resid), _check("normality_of_residuals"))
        assert result.status == DiagnosticStatus.FAILED

    def test_too_few_residuals(self):
        result = check_normality_of_residuals(np.array([0.1, -0.1]), _check("normality_of_residuals"))
        assert result.status == DiagnosticStatus.WARNING

    def test_durbin_watson_independent(self, clean_results):
        result = check_autocorrelation_dw(np.asarray(clean_results.resid), _check("no_autocorrelation"))
        assert result.status == DiagnosticStatus.PASSED
        assert 1.5 <= result.statistic <= 2.5

    def test_durbin_watson_trending(self):
        df = _frame(lambda x: 1 + 2 * x, np.sin(np.linspace(0, 6 * np.pi, N)))
        _, results = fit_ols(df, "y", ["x"], "wave")
        result = check_autocorrelation_dw(np.asarray(results.resid), _check("no_autocorrelation"))
        assert result.status == DiagnosticStatus.FAILED
        assert "positive autocorrelation" in result.plain_reason


# ============================================================
# run_model_diagnostics
# ============================================================

class TestRunModelDiagnostics:
    """All registered checks on one model"""

    def test_runs_every_check(self, clean_results):
        output = run_model_diagnostics(clean_results, "clean")
        assert [r.name for r in output.results] == [a["name"] for a in POST_FIT_CHECK_REGISTRY]
        assert output.total_checks == len(POST_FIT_CHECK_REGISTRY)
        assert output.passed_count + output.failed_count + output.warning_count == output.total_checks
        assert output.influence is not None
        assert "clean" in output.summary_message

    def test_heteroscedasticity_detected(self, hetero_results):
        _, results = hetero_results
        output = run_model_diagnostics(results, "hetero")
        assert output.status_of("homoscedasticity") == DiagnosticStatus.FAILED
        assert output.has_failures

    def test_curvature_detected(self, shuffled_scores):
        df = _frame(lambda x: 0.5 * x ** 2, 0.3 * shuffled_scores)
        _, results = fit_ols(df, "y", ["x"], "curved")
        output = run_model_diagnostics(results, "curved")
        assert output.status_of("linearity") == DiagnosticStatus.FAILED

    def test_wls_model_checked(self, hetero_results):
        df, results = hetero_results
        weights = estimate_variance_weights(results)
        _, wls = fit_wls(df, "y", ["x"], weights, "wls")
        output = run_model_diagnostics(wls, "wls")
        assert output.model_name == "wls"
        assert output.total_checks == len(POST_FIT_CHECK_REGISTRY)

    def test_raising_check_becomes_warning(self, clean_results, monkeypatch):
        def boom(results, assumption):
            raise RuntimeError("singular matrix")

        monkeypatch.setattr(diagnostics_engine, "check_linearity_reset", boom)
        output = run_model_diagnostics(clean_results, "clean")
        result = next(r for r in output.results if r.name == "linearity")
        assert result.status == DiagnosticStatus.WARNING
        assert "singular matrix" in result.plain_reason

    def test_alpha_from_config(self, clean_results, analysis_config):
        config = analysis_config.model_copy(update={"alpha": 0.01})
        output = run_model_diagnostics(clean_results, "clean", config)
        result = next(r for r in output.results if r.name == "normality_of_residuals")
        assert result.alpha == 0.01


# ============================================================
# Influence
# ============================================================

class TestComputeInfluence:
    """Leverage, standardized residuals and the trimmed set"""

    def test_injected_outlier(self, shuffled_scores):
        noise = 0.5 * shuffled_scores
        noise[10] += 15.0
        df = _frame(lambda x: 1 + 2 * x, noise, start=1000)
        _, results = fit_ols(df, "y", ["x"], "outlier")

        summary = compute_influence(results)
        assert summary.n_observations == N
        assert summary.n_parameters == 2
        assert summary.leverage_threshold == pytest.approx(2 * 2 / N, abs=1e-4)
        assert 1010 in summary.trim_indices
        assert summary.flagged[0].index == 1010
        assert "outlier" in summary.flagged[0].reasons
        assert summary.outlier_count >= 1

    def test_flagged_sorted_by_cooks(self, hetero_results):
        _, results = hetero_results
        summary = compute_influence(results)
        cooks = [f.cooks_d for f in summary.flagged]
        assert cooks == sorted(cooks, reverse=True)

    def test_trim_rule(self, hetero_results):
        _, results = hetero_results
        summary = compute_influence(results, std_resid_threshold=3.0, leverage_multiplier=2.0)
        by_index = {f.index: f for f in summary.flagged}
        for idx in summary.trim_indices:
            f = by_index[idx]
            assert abs(f.std_resid) > 3.0 or ("high_leverage" in f.reasons and abs(f.std_resid) > 2.0)


# ============================================================
# Weighted fits
# ============================================================

class TestWeightedFits:
    """Checks and influence measures on WLS results"""

    @pytest.fixture
    def true_weight_fit(self, hetero_results):
        df, _ = hetero_results
        x = df["x"].to_numpy()
        return fit_wls(df, "y", ["x"], 1.0 / (0.1 + 0.5 * x) ** 2, "wls")[1]

    def test_hetero_fixture_is_heteroscedastic(self, hetero_results):
        df, results = hetero_results
        resid = np.abs(np.asarray(results.resid))
        assert resid[df["x"] > 8].mean() > 3 * resid[df["x"] < 2].mean()

    def test_influence_on_wls(self, true_weight_fit):
        summary = compute_influence(true_weight_fit)
        assert summary.n_observations == N
        assert summary.n_parameters == 2
        assert 0 < summary.max_leverage < 1
        assert set(summary.trim_indices) <= set(range(N))

    def test_unit_weights_match_ols_influence(self, hetero_results):
        df, ols = hetero_results
        _, wls = fit_wls(df, "y", ["x"], np.ones(N), "unit")
        ols_summary = compute_influence(ols)
        wls_summary = compute_influence(wls)
        assert wls_summary.max_leverage == pytest.approx(ols_summary.max_leverage, abs=1e-4)
        assert wls_summary.max_cooks_d == pytest.approx(ols_summary.max_cooks_d, abs=1e-4)
        assert wls_summary.trim_indices == ols_summary.trim_indices

    def test_every_check_completes_on_wls(self, true_weight_fit):
        output = run_model_diagnostics(true_weight_fit, "wls")
        assert output.influence is not None
        for name in ("homoscedasticity", "linearity", "no_influential_points"):
            result = next(r for r in output.results if r.name == name)
            assert not result.plain_reason.startswith("Check could not be completed")
        assert output.status_of("homoscedasticity") in (DiagnosticStatus.PASSED, DiagnosticStatus.FAILED)
        assert output.status_of("linearity") in (DiagnosticStatus.PASSED, DiagnosticStatus.FAILED)

    def test_breusch_pagan_improves_with_true_weights(self, hetero_results, true_weight_fit):
        _, ols = hetero_results
        before = check_homoscedasticity_bp(ols, _check("homoscedasticity"))
        after = check_homoscedasticity_bp(true_weight_fit, _check("homoscedasticity"))
        assert before.status == DiagnosticStatus.FAILED
        assert after.p_value > before.p_value

    def test_weighted_reset_with_unit_weights_matches_ols(self, shuffled_scores):
        df = _frame(lambda x: 0.5 * x ** 2, 0.3 * shuffled_scores)
        _, ols = fit_ols(df, "y", ["x"], "curved")
        _, wls = fit_wls(df, "y", ["x"], np.ones(N), "curved_unit")
        ols_reset = check_linearity_reset(ols, _check("linearity"))
        wls_reset = check_linearity_reset(wls, _check("linearity"))
        assert wls_reset.statistic == pytest.approx(ols_reset.statistic, rel=1e-4)
        assert wls_reset.status == DiagnosticStatus.FAILED

    def test_weighted_reset_uses_the_weights(self, true_weight_fit):
        from statsmodels.stats.diagnostic import linear_reset

        unweighted = linear_reset(true_weight_fit, power=3, test_type="fitted", use_f=True)
        weighted = check_linearity_reset(true_weight_fit, _check("linearity"))
        assert weighted.statistic != pytest.approx(float(unweighted.statistic), rel=1e-3)
