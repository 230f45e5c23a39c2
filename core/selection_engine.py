"""
FILE: core/selection_engine.py
--------------------------------
Predictor selection and model comparison.
No LangChain or LLM dependencies.

  - backward elimination by p-value or by AIC
  - nested-model F tests (statsmodels anova_lm)
  - the comparison table across the whole model sequence and the
    recommended final model
"""

import logging

import pandas as pd
from statsmodels.regression.linear_model import OLS
from statsmodels.stats.anova import anova_lm
from statsmodels.tools import add_constant

from Schemas.regression import ModelFit, ModelKind
from Schemas.selection import (
    ComparisonRow,
    EliminationStep,
    ModelComparison,
    NestedTest,
    SelectionOutput,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _fit(df: pd.DataFrame, response: str, predictors: list[str]):
    X = add_constant(df[predictors], has_constant="add")
    return OLS(df[response], X).fit()


def _least_significant(results) -> tuple[str, float]:
    pvalues = results.pvalues.drop("const")
    name = str(pvalues.idxmax())
    return name, float(pvalues[name])


def _best_removal_by_aic(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
) -> tuple[str, float]:
    candidates = {
        p: float(_fit(df, response, [q for q in predictors if q != p]).aic)
        for p in predictors
    }
    name = min(candidates, key=candidates.get)
    return name, candidates[name]


# ─────────────────────────────────────────────
# BACKWARD ELIMINATION
# ─────────────────────────────────────────────

def backward_eliminate(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
    method: str = "pvalue",
    alpha: float = 0.05,
) -> SelectionOutput:
    """
    Backward elimination on an OLS model.

    method="pvalue": drop the predictor with the largest p-value while it
                     is >= alpha.
    method="aic":    drop the predictor whose removal gives the lowest AIC,
                     as long as that AIC is lower than the current model's.

    The last remaining predictor is never removed.
    """
    if method not in ("pvalue", "aic"):
        raise ValueError(f"Unknown selection method: '{method}'")
    if not predictors:
        raise ValueError("Backward elimination needs at least one predictor.")

    data = df[[response] + predictors].dropna()
    current = list(predictors)
    steps: list[EliminationStep] = []

    while len(current) > 1:
        results = _fit(data, response, current)

        if method == "pvalue":
            name, p = _least_significant(results)
            if p < alpha:
                break
            value = p
        else:
            name, new_aic = _best_removal_by_aic(data, response, current)
            if new_aic >= float(results.aic):
                break
            value = new_aic

        current.remove(name)
        steps.append(EliminationStep(
            step=len(steps) + 1,
            removed=name,
            criterion=method,
            value=round(value, 4),
            remaining=list(current),
        ))
        logger.info("Backward elimination (%s) removed '%s' (%s=%.4f)", method, name, method, value)

    if steps:
        removed = ", ".join(
            f"'{s.removed}' ({'p' if method == 'pvalue' else 'AIC'}={s.value})" for s in steps
        )
        summary = f"Backward elimination by {method} removed {removed}. Kept: {', '.join(current)}."
    else:
        summary = f"Backward elimination by {method} kept all predictors: {', '.join(current)}."

    return SelectionOutput(
        method=method,
        alpha=alpha,
        initial_predictors=list(predictors),
        selected_predictors=current,
        steps=steps,
        summary_message=summary,
    )


# ─────────────────────────────────────────────
# NESTED F TEST
# ─────────────────────────────────────────────

def nested_f_test(
    reduced_results,
    full_results,
    reduced_name: str,
    full_name: str,
    alpha: float = 0.05,
) -> NestedTest:
    """
    F test of a reduced model against the full model it is nested in.
    Both must be fitted on the same rows.
    """
    if int(reduced_results.nobs) != int(full_results.nobs):
        raise ValueError(
            f"Nested test needs the same rows: '{reduced_name}' has {int(reduced_results.nobs)}, "
            f"'{full_name}' has {int(full_results.nobs)}."
        )

    table = anova_lm(reduced_results, full_results)
    df_diff = float(table["df_diff"].iloc[1])
    if df_diff == 0:
        return NestedTest(reduced_model=reduced_name, full_model=full_name, df_diff=0.0)

    f_stat = float(table["F"].iloc[1])
    p = float(table["Pr(>F)"].iloc[1])
    return NestedTest(
        reduced_model=reduced_name,
        full_model=full_name,
        df_diff=df_diff,
        f_statistic=round(f_stat, 4),
        p_value=round(p, 6),
        reduced_adequate=p >= alpha,
    )


# ─────────────────────────────────────────────
# COMPARISON
# ─────────────────────────────────────────────

def compare_models(
    fits: list[ModelFit],
    nested_tests: list[NestedTest] | None = None,
    failed_checks: dict[str, list[str]] | None = None,
) -> ModelComparison:
    """
    Builds the comparison table and recommends a final model.

    With holdout scores available the model with the lowest holdout RMSE
    (always measured on the raw salinity scale) wins. Without them only
    unweighted models on the raw response scale are comparable (WLS R² is
    measured on the weighted scale), and the highest adjusted R² among
    those wins.
    """
    failed_checks = failed_checks or {}
    rows = [
        ComparisonRow(
            name=f.name,
            kind=f.kind.value,
            response_scale=f.response_scale,
            n_observations=f.n_observations,
            n_predictors=len(f.predictors),
            r_squared=f.r_squared,
            adj_r_squared=f.adj_r_squared,
            aic=f.aic,
            bic=f.bic,
            rmse=f.rmse,
            holdout_rmse=f.holdout_rmse,
            diagnostics_failed=failed_checks.get(f.name, []),
        )
        for f in fits
    ]

    recommended = None
    reason = ""
    scored = [f for f in fits if f.holdout_rmse is not None]
    if scored:
        best = min(scored, key=lambda f: f.holdout_rmse)
        recommended = best.name
        reason = (
            f"'{best.name}' has the lowest holdout RMSE on the salinity scale "
            f"({best.holdout_rmse} over {best.holdout_n} held-out rows)."
        )
        if len({f.holdout_n for f in scored}) > 1:
            counts = ", ".join(f"{f.name}: {f.holdout_n}" for f in scored)
            reason += (
                f" Models were scored on different numbers of held-out rows ({counts}), "
                f"so their RMSEs are not strictly comparable."
            )
    else:
        raw = [
            f for f in fits
            if f.kind == ModelKind.OLS and f.response_lambda is None and f.adj_r_squared is not None
        ]
        if raw:
            best = max(raw, key=lambda f: f.adj_r_squared)
            recommended = best.name
            reason = (
                f"No holdout available; '{best.name}' has the highest adjusted R² "
                f"({best.adj_r_squared}) among unweighted models on the raw salinity scale."
            )

    if recommended and failed_checks.get(recommended):
        reason += f" Its residual checks still fail: {', '.join(failed_checks[recommended])}."

    return ModelComparison(
        rows=rows,
        nested_tests=nested_tests or [],
        recommended_model=recommended,
        recommendation_reason=reason,
    )


def comparison_frame(comparison: ModelComparison) -> pd.DataFrame:
    """The comparison rows as a DataFrame (for plotting and markdown)."""
    frame = pd.DataFrame([r.model_dump() for r in comparison.rows])
    if frame.empty:
        return frame
    frame["diagnostics_failed"] = frame["diagnostics_failed"].apply(lambda v: ", ".join(v) or "-")
    return frame
