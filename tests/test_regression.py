"""
OLS / WLS fits, variance weights and holdout scoring.
"""

import numpy as np
import pandas as pd
import pytest

from Schemas.regression import ModelKind
from core.regression_engine import (
    estimate_variance_weights,
    fit_ols,
    fit_wls,
    predict_holdout,
)


# ============================================================
# fit_ols
# ============================================================

class TestFitOLS:
    """Ordinary least squares"""

    def test_recovers_coefficients(self, linear_frame):
        fit, results = fit_ols(linear_frame, "y", ["a", "b"], "m")
        coefs = {c.variable: c for c in fit.coefficients}
        assert coefs["a"].estimate == pytest.approx(1.5, abs=0.05)
        assert coefs["b"].estimate == pytest.approx(-0.8, abs=0.1)
        assert coefs["a"].ci_lower < 1.5 < coefs["a"].ci_upper
        assert fit.kind == ModelKind.OLS
        assert fit.n_observations == len(linear_frame)
        assert fit.r_squared > 0.9
        assert fit.formula == "y ~ a + b"
        assert fit.response_scale == "raw"

    def test_rmse_matches_results(self, linear_frame):
        fit, results = fit_ols(linear_frame, "y", ["a", "b"], "m")
        expected = float(np.sqrt(np.mean(results.resid ** 2)))
        assert fit.rmse == pytest.approx(expected, rel=1e-4)

    def test_interpretation_mentions_strongest(self, linear_frame):
        fit, _ = fit_ols(linear_frame, "y", ["a", "b", "c"], "m")
        assert "'a'" in fit.interpretation
        assert "positive" in fit.interpretation

    def test_significance_counted_at_given_alpha(self, linear_frame):
        default, _ = fit_ols(linear_frame, "y", ["a", "b", "c"], "m")
        assert "2 of 3 predictor(s) significant at 0.05" in default.interpretation

        strict, _ = fit_ols(linear_frame, "y", ["a", "b", "c"], "m", alpha=0.0)
        assert "0 of 3 predictor(s) significant at 0.0" in strict.interpretation

    def test_empty_predictors(self, linear_frame):
        with pytest.raises(ValueError):
            fit_ols(linear_frame, "y", [], "m")

    def test_missing_column(self, linear_frame):
        with pytest.raises(ValueError, match="zzz"):
            fit_ols(linear_frame, "y", ["a", "zzz"], "m")

    def test_transformed_response_recorded(self, linear_frame):
        fit, _ = fit_ols(linear_frame, "y", ["a"], "m", transformed_columns={"y": 0.5})
        assert fit.response_lambda == 0.5
        assert fit.response_scale == "box-cox(0.5)"


# ============================================================
# WLS
# ============================================================

class TestWLS:
    """Variance weights and weighted fits"""

    @pytest.fixture
    def hetero_frame(self):
        rng = np.random.default_rng(3)
        x = rng.uniform(1, 10, 400)
        y = 1 + 2 * x + rng.normal(0, 0.2 * x)
        return pd.DataFrame({"y": y, "x": x})

    def test_weights_positive_and_finite(self, hetero_frame):
        _, results = fit_ols(hetero_frame, "y", ["x"], "ols")
        weights = estimate_variance_weights(results)
        assert len(weights) == len(hetero_frame)
        assert np.all(weights > 0)
        assert np.all(np.isfinite(weights))

    def test_weights_fall_with_spread(self, hetero_frame):
        _, results = fit_ols(hetero_frame, "y", ["x"], "ols")
        weights = estimate_variance_weights(results)
        x = hetero_frame["x"].to_numpy()
        assert weights[np.argmin(x)] > weights[np.argmax(x)]

    def test_wls_fit(self, hetero_frame):
        _, results = fit_ols(hetero_frame, "y", ["x"], "ols")
        weights = estimate_variance_weights(results)
        fit, wls_results = fit_wls(hetero_frame, "y", ["x"], weights, "wls")
        assert fit.kind == ModelKind.WLS
        slope = [c for c in fit.coefficients if c.variable == "x"][0]
        assert slope.estimate == pytest.approx(2.0, abs=0.1)
        # unweighted RMSE, comparable with the OLS one
        assert fit.rmse == pytest.approx(float(np.sqrt(np.mean(wls_results.resid ** 2))), rel=1e-4)

    def test_wls_significance_at_given_alpha(self, hetero_frame):
        fit, _ = fit_wls(hetero_frame, "y", ["x"], np.ones(len(hetero_frame)), "wls", alpha=0.0)
        assert "0 of 1 predictor(s) significant at 0.0" in fit.interpretation

    def test_weight_length_mismatch(self, hetero_frame):
        with pytest.raises(ValueError, match="weights"):
            fit_wls(hetero_frame, "y", ["x"], np.ones(10), "wls")

    def test_non_positive_weights(self, hetero_frame):
        weights = np.ones(len(hetero_frame))
        weights[0] = 0.0
        with pytest.raises(ValueError):
            fit_wls(hetero_frame, "y", ["x"], weights, "wls")


# ============================================================
# predict_holdout
# ============================================================

class TestPredictHoldout:
    """Out-of-sample scoring on the raw response scale"""

    def test_raw_scale(self, linear_frame):
        train, holdout = linear_frame.iloc[:200], linear_frame.iloc[200:]
        _, results = fit_ols(train, "y", ["a", "b"], "m")
        rmse, r2, n = predict_holdout(results, holdout, "y", ["a", "b"])
        assert n == 100
        assert rmse == pytest.approx(0.5, abs=0.15)
        assert r2 > 0.9

    def test_log_response_back_transformed(self):
        rng = np.random.default_rng(4)
        x = rng.uniform(0, 2, 300)
        y = np.exp(0.5 + 0.8 * x + rng.normal(0, 0.05, 300))
        df = pd.DataFrame({"y": y, "x": x})
        train = df.iloc[:200].assign(y=np.log(df["y"].iloc[:200]))
        _, results = fit_ols(train, "y", ["x"], "log", transformed_columns={"y": 0.0})

        rmse, r2, n = predict_holdout(results, df.iloc[200:], "y", ["x"], {"y": 0.0})
        assert n == 100
        assert r2 > 0.95
        assert rmse < 0.5

    def test_transformed_predictor_rows_dropped(self, linear_frame):
        train = linear_frame.iloc[:200].assign(a=np.log(linear_frame["a"].iloc[:200]))
        _, results = fit_ols(train, "y", ["a", "b"], "m", transformed_columns={"a": 0.0})
        holdout = linear_frame.iloc[200:].copy()
        holdout.iloc[:5, holdout.columns.get_loc("a")] = -1.0
        _, _, n = predict_holdout(results, holdout, "y", ["a", "b"], {"a": 0.0})
        assert n == 95

    def test_empty_holdout(self, linear_frame):
        _, results = fit_ols(linear_frame, "y", ["a"], "m")
        assert predict_holdout(results, linear_frame.iloc[0:0], "y", ["a"]) == (None, None, 0)
        assert predict_holdout(results, None, "y", ["a"]) == (None, None, 0)
