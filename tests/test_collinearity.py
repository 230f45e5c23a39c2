"""
Variance inflation factors and pruning.
"""

import numpy as np
import pandas as pd
import pytest

from core.collinearity_engine import compute_vif, prune_by_vif


@pytest.fixture
def collinear_frame():
    rng = np.random.default_rng(21)
    n = 400
    a = rng.normal(0, 1, n)
    b = rng.normal(0, 1, n)
    return pd.DataFrame({
        "a": a,
        "b": b,
        "near": a + 0.05 * rng.normal(0, 1, n),     # almost a copy of a
        "c": rng.normal(0, 1, n),
    })


# ============================================================
# compute_vif
# ============================================================

class TestComputeVIF:
    """Per-predictor VIF"""

    def test_independent_predictors_near_one(self, collinear_frame):
        scores = compute_vif(collinear_frame, ["a", "b", "c"])
        assert [s.variable for s in scores] == ["a", "b", "c"]
        for s in scores:
            assert s.vif == pytest.approx(1.0, abs=0.1)

    def test_constant_not_reported(self, collinear_frame):
        scores = compute_vif(collinear_frame, ["a", "b"])
        assert "const" not in [s.variable for s in scores]

    def test_near_copy_inflated(self, collinear_frame):
        scores = {s.variable: s for s in compute_vif(collinear_frame, ["a", "b", "near"], threshold=10)}
        assert scores["a"].vif > 100
        assert scores["near"].vif > 100
        assert scores["a"].exceeds_threshold
        assert not scores["b"].exceeds_threshold

    def test_exact_collinearity_is_inf(self, collinear_frame):
        df = collinear_frame.assign(twice=2 * collinear_frame["a"])
        scores = {s.variable: s for s in compute_vif(df, ["a", "b", "twice"])}
        assert scores["twice"].vif > 1e6
        assert scores["a"].vif > 1e6

    def test_exact_copy_is_pruned(self, collinear_frame):
        df = collinear_frame.assign(twice=2 * collinear_frame["a"])
        output = prune_by_vif(df, ["a", "b", "twice"], threshold=10)
        assert len(output.dropped_predictors) == 1
        assert output.final_scores[0].vif < 10

    def test_single_predictor(self, collinear_frame):
        scores = compute_vif(collinear_frame, ["a"])
        assert scores[0].vif == 1.0

    def test_no_predictors(self, collinear_frame):
        assert compute_vif(collinear_frame, []) == []


# ============================================================
# prune_by_vif
# ============================================================

class TestPruneByVIF:
    """Iterative removal of the worst predictor"""

    def test_drops_one_of_the_pair(self, collinear_frame):
        output = prune_by_vif(collinear_frame, ["a", "b", "near", "c"], threshold=10)
        assert len(output.dropped_predictors) == 1
        assert output.dropped_predictors[0] in ("a", "near")
        assert output.has_multicollinearity
        assert len(output.rounds) == 2
        assert all(s.vif < 10 for s in output.final_scores)
        assert set(output.retained_predictors) | set(output.dropped_predictors) == {"a", "b", "near", "c"}

    def test_nothing_to_drop(self, collinear_frame):
        output = prune_by_vif(collinear_frame, ["a", "b", "c"], threshold=10)
        assert output.dropped_predictors == []
        assert output.retained_predictors == ["a", "b", "c"]
        assert not output.has_multicollinearity
        assert "no predictor removed" in output.summary_message

    def test_stops_at_one_predictor(self, collinear_frame):
        output = prune_by_vif(collinear_frame, ["a", "near"], threshold=1.0)
        assert len(output.retained_predictors) == 1

    def test_calcofi_density_is_collinear(self, merged_frame):
        predictors = ["T_degC", "O2ml_L", "STheta", "Depthm", "Distance", "Wave_Ht"]
        output = prune_by_vif(merged_frame, predictors, threshold=10)
        assert output.has_multicollinearity
        assert output.dropped_predictors
