"""
Backward elimination, nested F tests and model comparison.
"""

import pytest

from Schemas.regression import ModelFit, ModelKind
from core.regression_engine import fit_ols
from core.selection_engine import (
    backward_eliminate,
    comparison_frame,
    compare_models,
    nested_f_test,
)


def _fit_stub(name, adj, holdout=None, response_lambda=None, kind=ModelKind.OLS, holdout_n=50):
    return ModelFit(
        name=name,
        kind=kind,
        response="Salnty",
        predictors=["T_degC"],
        n_observations=100,
        r_squared=adj,
        adj_r_squared=adj,
        holdout_rmse=holdout,
        holdout_n=holdout_n if holdout is not None else 0,
        response_lambda=response_lambda,
        transformed_columns={"Salnty": response_lambda} if response_lambda is not None else {},
    )


# ============================================================
# Backward elimination
# ============================================================

class TestBackwardEliminate:
    """Dropping predictors one at a time"""

    def test_pvalue_removes_noise(self, linear_frame):
        output = backward_eliminate(linear_frame, "y", ["a", "b", "c"], method="pvalue")
        assert output.selected_predictors == ["a", "b"]
        assert [s.removed for s in output.steps] == ["c"]
        assert output.steps[0].value >= 0.05
        assert "removed 'c'" in output.summary_message

    def test_aic_removes_noise(self, linear_frame):
        output = backward_eliminate(linear_frame, "y", ["a", "b", "c"], method="aic")
        assert "c" not in output.selected_predictors
        assert {"a", "b"} <= set(output.selected_predictors)

    def test_keeps_signal(self, linear_frame):
        output = backward_eliminate(linear_frame, "y", ["a", "b"], method="pvalue")
        assert output.steps == []
        assert "kept all predictors" in output.summary_message

    def test_never_removes_last_predictor(self, linear_frame):
        output = backward_eliminate(linear_frame, "y", ["c"], method="pvalue", alpha=0.0)
        assert output.selected_predictors == ["c"]

    def test_unknown_method(self, linear_frame):
        with pytest.raises(ValueError, match="Unknown selection method"):
            backward_eliminate(linear_frame, "y", ["a"], method="lasso")

    def test_no_predictors(self, linear_frame):
        with pytest.raises(ValueError):
            backward_eliminate(linear_frame, "y", [])


# ============================================================
# Nested F test
# ============================================================

class TestNestedFTest:
    """Reduced versus full model"""

    def test_dropping_noise_is_adequate(self, linear_frame):
        _, full = fit_ols(linear_frame, "y", ["a", "b", "c"], "full")
        _, reduced = fit_ols(linear_frame, "y", ["a", "b"], "reduced")
        test = nested_f_test(reduced, full, "reduced", "full")
        assert test.df_diff == 1.0
        assert test.p_value is not None
        assert test.reduced_adequate == (test.p_value >= 0.05)

    def test_dropping_signal_is_rejected(self, linear_frame):
        _, full = fit_ols(linear_frame, "y", ["a", "b"], "full")
        _, reduced = fit_ols(linear_frame, "y", ["a"], "reduced")
        test = nested_f_test(reduced, full, "reduced", "full")
        assert test.p_value < 0.05
        assert not test.reduced_adequate

    def test_different_rows_rejected(self, linear_frame):
        _, full = fit_ols(linear_frame, "y", ["a", "b"], "full")
        _, reduced = fit_ols(linear_frame.iloc[:200], "y", ["a"], "reduced")
        with pytest.raises(ValueError, match="same rows"):
            nested_f_test(reduced, full, "reduced", "full")


# ============================================================
# Comparison
# ============================================================

class TestCompareModels:
    """Comparison table and recommendation"""

    def test_holdout_wins(self):
        fits = [_fit_stub("full_ols", 0.90, holdout=0.20), _fit_stub("wls", 0.85, holdout=0.15)]
        comparison = compare_models(fits)
        assert comparison.recommended_model == "wls"
        assert "lowest holdout RMSE" in comparison.recommendation_reason
        assert [r.name for r in comparison.rows] == ["full_ols", "wls"]

    def test_adj_r2_without_holdout_ignores_transformed(self):
        fits = [
            _fit_stub("full_ols", 0.80),
            _fit_stub("selected_ols", 0.82),
            _fit_stub("boxcox_ols", 0.95, response_lambda=0.5),
        ]
        comparison = compare_models(fits)
        assert comparison.recommended_model == "selected_ols"
        assert comparison.rows[2].response_scale == "box-cox(0.5)"

    def test_adj_r2_without_holdout_ignores_wls(self):
        fits = [
            _fit_stub("full_ols", 0.80),
            _fit_stub("trimmed_ols", 0.83),
            _fit_stub("wls", 0.99, kind=ModelKind.WLS),
        ]
        comparison = compare_models(fits)
        assert comparison.recommended_model == "trimmed_ols"
        assert "unweighted" in comparison.recommendation_reason
        assert comparison.rows[2].kind == "wls"

    def test_unequal_holdout_sizes_noted(self):
        fits = [
            _fit_stub("full_ols", 0.90, holdout=0.20, holdout_n=300),
            _fit_stub("boxcox_ols", 0.92, holdout=0.18, holdout_n=270, response_lambda=0.0),
        ]
        comparison = compare_models(fits)
        assert comparison.recommended_model == "boxcox_ols"
        assert "full_ols: 300, boxcox_ols: 270" in comparison.recommendation_reason
        assert "not strictly comparable" in comparison.recommendation_reason

    def test_equal_holdout_sizes_not_noted(self):
        fits = [_fit_stub("full_ols", 0.90, holdout=0.20), _fit_stub("wls", 0.85, holdout=0.15)]
        assert "not strictly comparable" not in compare_models(fits).recommendation_reason

    def test_failed_checks_noted(self):
        fits = [_fit_stub("full_ols", 0.9, holdout=0.2)]
        comparison = compare_models(fits, failed_checks={"full_ols": ["homoscedasticity"]})
        assert comparison.rows[0].diagnostics_failed == ["homoscedasticity"]
        assert "homoscedasticity" in comparison.recommendation_reason

    def test_empty(self):
        comparison = compare_models([])
        assert comparison.recommended_model is None
        assert comparison_frame(comparison).empty

    def test_comparison_frame(self):
        comparison = compare_models(
            [_fit_stub("full_ols", 0.9, holdout=0.2), _fit_stub("wls", 0.9, holdout=0.3)],
            failed_checks={"wls": ["normality_of_residuals", "linearity"]},
        )
        frame = comparison_frame(comparison)
        assert list(frame["name"]) == ["full_ols", "wls"]
        assert frame.loc[0, "diagnostics_failed"] == "-"
        assert frame.loc[1, "diagnostics_failed"] == "normality_of_residuals, linearity"
