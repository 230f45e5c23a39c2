"""
FILE: Utils/diagnostics_registry.py
-------------------------------------
Registry of post-fit checks run on every model in the sequence, and of
the remedies the report suggests when a check still fails on the
recommended model.

Each check entry:
  name, description, check_method, test_fn, alpha

Each remedy entry:
  remedy_id, description, stage — the pipeline stage that addresses it
  ("collinearity" | "power_transform" | "influence" | "weighted" | None)
"""

POST_FIT_CHECK_REGISTRY: list[dict] = [
    {
        "name": "normality_of_residuals",
        "description": "Residuals should be approximately normally distributed.",
        "check_method": "statistical_test",
        "test_fn": "check_normality_of_residuals",
        "alpha": 0.05,
    },
    {
        "name": "homoscedasticity",
        "description": "Variance of residuals should be constant across fitted values (no heteroscedasticity).",
        "check_method": "statistical_test",
        "test_fn": "check_homoscedasticity_bp",
        "alpha": 0.05,
    },
    {
        "name": "no_autocorrelation",
        "description": "Residuals should not be correlated with each other (Durbin-Watson statistic should be close to 2).",
        "check_method": "statistical_test",
        "test_fn": "check_autocorrelation_dw",
        "alpha": None,   # DW uses range check, not p-value
    },
    {
        "name": "linearity",
        "description": "The mean of salinity should be linear in the predictors (Ramsey RESET).",
        "check_method": "statistical_test",
        "test_fn": "check_linearity_reset",
        "alpha": 0.05,
    },
    {
        "name": "no_influential_points",
        "description": "No single observation should have disproportionate influence on the model (Cook's distance < 4/n).",
        "check_method": "heuristic",
        "test_fn": "check_influential_points_cooks",
        "alpha": None,
    },
]


REMEDY_REGISTRY: dict[str, list[dict]] = {
    "normality_of_residuals": [
        {
            "remedy_id": "residuals_boxcox_response",
            "description": "A Box-Cox power transform of salinity can pull in a long residual tail.",
            "stage": "power_transform",
        },
        {
            "remedy_id": "residuals_large_sample",
            "description": "With several hundred observations coefficient tests are robust to mild non-normality; treat p-values near alpha with care.",
            "stage": None,
        },
    ],
    "homoscedasticity": [
        {
            "remedy_id": "heteroscedasticity_wls",
            "description": "Weighted least squares with weights from the fitted residual spread.",
            "stage": "weighted",
        },
        {
            "remedy_id": "heteroscedasticity_transform",
            "description": "A variance-stabilising power transform of salinity.",
            "stage": "power_transform",
        },
    ],
    "no_autocorrelation": [
        {
            "remedy_id": "autocorrelation_sampling",
            "description": "Bottles from the same cast are correlated; random sampling across casts limits this, but standard errors may still be optimistic.",
            "stage": None,
        },
    ],
    "linearity": [
        {
            "remedy_id": "linearity_transform_predictors",
            "description": "Box-Cox transforms of the skewed predictors (depth, distance, oxygen) can straighten curved relationships.",
            "stage": "power_transform",
        },
    ],
    "no_influential_points": [
        {
            "remedy_id": "influence_trim",
            "description": "Refit without the observations flagged by leverage and standardized residuals, and compare coefficients.",
            "stage": "influence",
        },
    ],
    "multicollinearity": [
        {
            "remedy_id": "collinearity_drop",
            "description": "Drop the predictor with the largest variance inflation factor and refit.",
            "stage": "collinearity",
        },
    ],
}
