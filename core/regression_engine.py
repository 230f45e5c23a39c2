"""
FILE: core/regression_engine.py
---------------------------------
Ordinary and weighted least-squares fits for the salinity models.
No LangChain or LLM dependencies.

Each fit returns (ModelFit, results). The statsmodels results object
is returned separately so diagnostics, influence measures and nested
tests can use it directly without serialization.
"""

import logging

import numpy as np
import pandas as pd
from statsmodels.regression.linear_model import OLS, WLS
from statsmodels.tools import add_constant

from Schemas.regression import Coefficient, ModelFit, ModelKind
from core.transform_engine import boxcox_values, inverse_boxcox
from constants.analysis import DEFAULT_ALPHA
from constants.diagnostics import WLS_SD_FLOOR

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _design(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
) -> tuple[pd.Series, pd.DataFrame]:
    if not predictors:
        raise ValueError("Cannot fit a regression with no predictors.")
    missing = [c for c in [response] + predictors if c not in df.columns]
    if missing:
        raise ValueError(f"Column(s) {missing} not found in the data.")

    X = df[predictors].dropna()
    y = df[response].loc[X.index]
    return y, add_constant(X, has_constant="add")


def _formula(response: str, predictors: list[str]) -> str:
    return f"{response} ~ {' + '.join(predictors)}"


# ─────────────────────────────────────────────
# SUMMARY
# ─────────────────────────────────────────────

def summarize_fit(
    results,
    name: str,
    kind: ModelKind,
    response: str,
    predictors: list[str],
    transformed_columns: dict[str, float] | None = None,
    alpha: float = DEFAULT_ALPHA,
) -> ModelFit:
    """Builds a ModelFit from a fitted statsmodels OLS/WLS results object."""
    transformed_columns = transformed_columns or {}
    conf = results.conf_int()

    coefficients = []
    for i, var in enumerate(["const"] + predictors):
        coefficients.append(Coefficient(
            variable=var,
            estimate=round(float(results.params.iloc[i]), 6),
            std_error=round(float(results.bse.iloc[i]), 6),
            t_statistic=round(float(results.tvalues.iloc[i]), 4),
            p_value=round(float(results.pvalues.iloc[i]), 4),
            ci_lower=round(float(conf.iloc[i, 0]), 6),
            ci_upper=round(float(conf.iloc[i, 1]), 6),
        ))

    n_sig = int(sum(1 for p in results.pvalues.iloc[1:] if float(p) < alpha))
    strongest = max(coefficients[1:], key=lambda c: abs(c.t_statistic or 0.0))
    rmse = float(np.sqrt(np.mean(np.asarray(results.resid) ** 2)))

    interpretation = (
        f"{kind.value.upper()} '{name}': R²={round(float(results.rsquared), 4)}, "
        f"Adj. R²={round(float(results.rsquared_adj), 4)}, "
        f"F({int(results.df_model)},{int(results.df_resid)})="
        f"{round(float(results.fvalue), 4)}, p={round(float(results.f_pvalue), 4)}. "
        f"{n_sig} of {len(predictors)} predictor(s) significant at {alpha}. "
        f"Strongest predictor: '{strongest.variable}' "
        f"({'positive' if strongest.estimate > 0 else 'negative'}, t={strongest.t_statistic})."
    )

    return ModelFit(
        name=name,
        kind=kind,
        response=response,
        predictors=list(predictors),
        formula=_formula(response, predictors),
        coefficients=coefficients,
        n_observations=int(results.nobs),
        r_squared=round(float(results.rsquared), 4),
        adj_r_squared=round(float(results.rsquared_adj), 4),
        f_statistic=round(float(results.fvalue), 4),
        f_p_value=round(float(results.f_pvalue), 6),
        aic=round(float(results.aic), 4),
        bic=round(float(results.bic), 4),
        rmse=round(rmse, 6),
        response_lambda=transformed_columns.get(response),
        transformed_columns=transformed_columns,
        interpretation=interpretation,
    )


# ─────────────────────────────────────────────
# FITS
# ─────────────────────────────────────────────

def fit_ols(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
    name: str,
    transformed_columns: dict[str, float] | None = None,
    alpha: float = DEFAULT_ALPHA,
) -> tuple[ModelFit, object]:
    """Ordinary least squares. Returns (ModelFit, statsmodels results)."""
    y, X = _design(df, response, predictors)
    results = OLS(y, X).fit()
    logger.info("Fitted OLS '%s' on %d rows (R²=%.4f)", name, int(results.nobs), results.rsquared)
    return summarize_fit(results, name, ModelKind.OLS, response, predictors, transformed_columns, alpha), results


def estimate_variance_weights(results) -> np.ndarray:
    """
    Weights for WLS from an OLS fit: regress |residuals| on the fitted
    values, treat the fitted spread as the residual SD for each row and
    use 1 / SD². The spread is floored at WLS_SD_FLOOR so a negative or
    zero fitted spread cannot produce an infinite weight.
    """
    abs_resid = np.abs(np.asarray(results.resid))
    fitted = np.asarray(results.fittedvalues)
    aux = OLS(abs_resid, add_constant(fitted, has_constant="add")).fit()
    sd = np.clip(np.asarray(aux.fittedvalues), WLS_SD_FLOOR, None)
    return 1.0 / sd ** 2


def fit_wls(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
    weights: np.ndarray,
    name: str,
    transformed_columns: dict[str, float] | None = None,
    alpha: float = DEFAULT_ALPHA,
) -> tuple[ModelFit, object]:
    """Weighted least squares with the given per-row weights."""
    y, X = _design(df, response, predictors)
    weights = np.asarray(weights, dtype=float)
    if len(weights) != len(y):
        raise ValueError(f"Got {len(weights)} weights for {len(y)} observations.")
    if (weights <= 0).any() or not np.isfinite(weights).all():
        raise ValueError("WLS weights must be finite and strictly positive.")

    results = WLS(y, X, weights=weights).fit()
    logger.info("Fitted WLS '%s' on %d rows (weighted R²=%.4f)", name, int(results.nobs), results.rsquared)
    return summarize_fit(results, name, ModelKind.WLS, response, predictors, transformed_columns, alpha), results


# ─────────────────────────────────────────────
# OUT-OF-SAMPLE
# ─────────────────────────────────────────────

def predict_holdout(
    results,
    holdout_df: pd.DataFrame,
    response: str,
    predictors: list[str],
    transformed_columns: dict[str, float] | None = None,
) -> tuple[float | None, float | None, int]:
    """
    Scores a fitted model on the holdout rows, always on the original
    response scale. Predictors are transformed with the same powers the
    model was fitted with; a transformed response is back-transformed
    before comparison. Rows that cannot be transformed (non-positive
    values) or back-transformed are skipped.

    Returns (rmse, r_squared, n_scored). (None, None, 0) if nothing to score.
    """
    transformed_columns = transformed_columns or {}
    if holdout_df is None or holdout_df.empty:
        return None, None, 0

    data = holdout_df[[response] + predictors].dropna()
    for col in transformed_columns:
        if col in predictors:
            data = data[data[col] > 0]
    X = data[predictors].copy()
    for col, lmbda in transformed_columns.items():
        if col in predictors:
            X[col] = boxcox_values(X[col].to_numpy(), lmbda)

    if X.empty:
        return None, None, 0

    pred = np.asarray(results.predict(add_constant(X, has_constant="add")))
    if response in transformed_columns:
        pred = inverse_boxcox(pred, transformed_columns[response])

    actual = data[response].to_numpy()
    ok = np.isfinite(pred)
    if ok.sum() == 0:
        return None, None, 0
    actual, pred = actual[ok], pred[ok]

    resid = actual - pred
    rmse = float(np.sqrt(np.mean(resid ** 2)))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    r2 = 1 - float(np.sum(resid ** 2)) / ss_tot if ss_tot > 0 else None
    return round(rmse, 6), (round(r2, 4) if r2 is not None else None), int(ok.sum())
