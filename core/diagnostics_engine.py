"""
FILE: core/diagnostics_engine.py
----------------------------------
Post-fit diagnostics for every model in the sequence.
All checks require a fitted statsmodels results object.
No LangChain or LLM dependencies.

Checks implemented:
  - Normality of residuals (Shapiro-Wilk / D'Agostino)
  - Homoscedasticity of residuals (Breusch-Pagan)
  - Autocorrelation of residuals (Durbin-Watson)
  - Linearity (Ramsey RESET)
  - Influential points (Cook's Distance)

compute_influence() additionally returns leverage, standardized
residuals and the set of rows the trimming stage removes.
"""

import logging

import numpy as np
from scipy import stats
from statsmodels.regression.linear_model import OLS, WLS

from Utils.diagnostics_registry import POST_FIT_CHECK_REGISTRY
from Schemas.config import AnalysisConfig
from Schemas.diagnostics import (
    DiagnosticResult,
    DiagnosticStatus,
    DiagnosticsOutput,
    FlaggedObservation,
    InfluenceSummary,
)
from constants.diagnostics import (
    COOKS_NUMERATOR,
    DW_LOWER_BOUND,
    DW_UPPER_BOUND,
    LEVERAGE_MULTIPLIER,
    SHAPIRO_MAX_N,
    STD_RESID_THRESHOLD,
    TRIM_STD_RESID_HIGH_LEVERAGE,
)

logger = logging.getLogger(__name__)


def _weighted_resid(results) -> np.ndarray:
    """Pearson residuals for WLS (plain residuals for OLS)."""
    return np.asarray(results.wresid)


def influence_of(results):
    """
    OLSInfluence for an OLS or WLS fit. WLS has no get_influence(), so the
    whitened response and design are refitted by OLS; leverage, studentized
    residuals and Cook's distance are then those of the weighted fit.
    """
    if isinstance(results.model, OLS):
        return results.get_influence()
    whitened = OLS(np.asarray(results.model.wendog), np.asarray(results.model.wexog)).fit()
    return whitened.get_influence()


# ─────────────────────────────────────────────
# POST-FIT CHECK FUNCTIONS
# ─────────────────────────────────────────────

def check_normality_of_residuals(
    residuals: np.ndarray,
    assumption: dict,
) -> DiagnosticResult:
    """Shapiro-Wilk (or D'Agostino for n>5000) on model residuals."""
    alpha = assumption.get("alpha", 0.05)

    if len(residuals) < 3:
        return DiagnosticResult(
            name=assumption["name"],
            description=assumption["description"],
            status=DiagnosticStatus.WARNING,
            test_used="Shapiro-Wilk (residuals)",
            plain_reason="Too few residuals to test normality.",
        )

    if len(residuals) > SHAPIRO_MAX_N:
        stat, p = stats.normaltest(residuals)
        test_name = "D'Agostino-Pearson (residuals)"
    else:
        stat, p = stats.shapiro(residuals)
        test_name = "Shapiro-Wilk (residuals)"

    passed = p >= alpha
    return DiagnosticResult(
        name=assumption["name"],
        description=assumption["description"],
        status=DiagnosticStatus.PASSED if passed else DiagnosticStatus.FAILED,
        test_used=test_name,
        statistic=round(float(stat), 4),
        p_value=round(float(p), 4),
        alpha=alpha,
        plain_reason=(
            f"{test_name}: statistic={round(float(stat), 4)}, p={round(float(p), 4)}. "
            + ("Residuals are approximately normally distributed." if passed
               else f"p < {alpha} — residuals are not normally distributed.")
        ),
    )


def check_homoscedasticity_bp(
    results,
    assumption: dict,
) -> DiagnosticResult:
    """Breusch-Pagan test on the (weighted) residuals against the design."""
    from statsmodels.stats.diagnostic import het_breuschpagan

    alpha = assumption.get("alpha", 0.05)
    _, p, _, _ = het_breuschpagan(_weighted_resid(results), results.model.exog)
    passed = p >= alpha
    return DiagnosticResult(
        name=assumption["name"],
        description=assumption["description"],
        status=DiagnosticStatus.PASSED if passed else DiagnosticStatus.FAILED,
        test_used="Breusch-Pagan",
        p_value=round(float(p), 4),
        alpha=alpha,
        plain_reason=(
            f"Breusch-Pagan: p={round(float(p), 4)}. "
            + ("Homoscedasticity assumption met." if passed
               else f"p < {alpha} — heteroscedasticity detected in residuals.")
        ),
    )


def check_autocorrelation_dw(
    residuals: np.ndarray,
    assumption: dict,
) -> DiagnosticResult:
    """
    Durbin-Watson test for autocorrelation in residuals.
    DW ≈ 2 → no autocorrelation.
    DW < 1.5 → positive autocorrelation (problem).
    DW > 2.5 → negative autocorrelation (problem).
    """
    from statsmodels.stats.stattools import durbin_watson

    dw = float(durbin_watson(residuals))

    if dw < DW_LOWER_BOUND:
        status = DiagnosticStatus.FAILED
        reason = (
            f"Durbin-Watson={round(dw, 4)} < {DW_LOWER_BOUND} — "
            f"positive autocorrelation detected in residuals."
        )
    elif dw > DW_UPPER_BOUND:
        status = DiagnosticStatus.FAILED
        reason = (
            f"Durbin-Watson={round(dw, 4)} > {DW_UPPER_BOUND} — "
            f"negative autocorrelation detected in residuals."
        )
    else:
        status = DiagnosticStatus.PASSED
        reason = (
            f"Durbin-Watson={round(dw, 4)} — "
            f"within acceptable range [{DW_LOWER_BOUND}, {DW_UPPER_BOUND}]. "
            f"No significant autocorrelation detected."
        )

    return DiagnosticResult(
        name=assumption["name"],
        description=assumption["description"],
        status=status,
        test_used="Durbin-Watson",
        statistic=round(dw, 4),
        plain_reason=reason,
    )


def _weighted_reset(results, power: int = 3) -> tuple[float, float]:
    """
    RESET for a WLS fit: the powers of the fitted values are added to the
    design and the augmented model is refitted with the same weights.
    """
    model = results.model
    fitted = np.asarray(results.fittedvalues, dtype=float)
    scaled = fitted / np.max(np.abs(fitted))
    extra = np.column_stack([scaled ** k for k in range(2, power + 1)])
    augmented = WLS(model.endog, np.column_stack([model.exog, extra]), weights=model.weights).fit()

    k_extra = extra.shape[1]
    restriction = np.zeros((k_extra, augmented.params.shape[0]))
    restriction[:, -k_extra:] = np.eye(k_extra)
    test = augmented.f_test(restriction)
    return float(np.squeeze(test.fvalue)), float(np.squeeze(test.pvalue))


def check_linearity_reset(
    results,
    assumption: dict,
) -> DiagnosticResult:
    """Ramsey RESET with squared and cubed fitted values, weighted for WLS."""
    from statsmodels.stats.diagnostic import linear_reset

    alpha = assumption.get("alpha", 0.05)
    if isinstance(results.model, OLS):
        test = linear_reset(results, power=3, test_type="fitted", use_f=True)
        stat, p = float(test.statistic), float(test.pvalue)
    else:
        stat, p = _weighted_reset(results, power=3)
    passed = p >= alpha
    return DiagnosticResult(
        name=assumption["name"],
        description=assumption["description"],
        status=DiagnosticStatus.PASSED if passed else DiagnosticStatus.FAILED,
        test_used="Ramsey RESET",
        statistic=round(stat, 4),
        p_value=round(p, 4),
        alpha=alpha,
        plain_reason=(
            f"RESET: F={round(stat, 4)}, p={round(p, 4)}. "
            + ("No evidence of a missing non-linear term." if passed
               else f"p < {alpha} — the linear model misses curvature.")
        ),
    )


def check_influential_points_cooks(
    results,
    assumption: dict,
) -> DiagnosticResult:
    """
    Cook's Distance check for influential observations.
    Threshold: Cook's D > 4/n → influential point.
    """
    n_obs = int(results.nobs)
    cooks_d = influence_of(results).cooks_distance[0]
    threshold = COOKS_NUMERATOR / n_obs
    n_influential = int(np.sum(cooks_d > threshold))
    pct = round(n_influential / n_obs * 100, 2)

    passed = n_influential == 0
    return DiagnosticResult(
        name=assumption["name"],
        description=assumption["description"],
        status=DiagnosticStatus.PASSED if passed else DiagnosticStatus.WARNING,
        test_used="Cook's Distance",
        statistic=round(float(np.max(cooks_d)), 4),
        plain_reason=(
            f"Cook's Distance threshold = 4/n = {round(threshold, 4)}. "
            + ("No influential points detected." if passed
               else f"{n_influential} influential observation(s) detected "
                    f"({pct}% of data, Cook's D > {round(threshold, 4)}; "
                    f"max {round(float(np.max(cooks_d)), 4)}).")
        ),
    )


# ─────────────────────────────────────────────
# INFLUENCE — LEVERAGE / STANDARDIZED RESIDUALS
# ─────────────────────────────────────────────

def compute_influence(
    results,
    std_resid_threshold: float = STD_RESID_THRESHOLD,
    leverage_multiplier: float = LEVERAGE_MULTIPLIER,
) -> InfluenceSummary:
    """
    Leverage (hat diagonal), internally studentized residuals and Cook's
    distance for every observation.

    Flags:
      high_leverage — h > leverage_multiplier · p / n
      outlier       — |r| > std_resid_threshold
      influential   — Cook's D > 4 / n

    Rows trimmed by the influence stage: every outlier, plus high-leverage
    rows whose |r| exceeds TRIM_STD_RESID_HIGH_LEVERAGE.
    """
    influence = influence_of(results)
    leverage = np.asarray(influence.hat_matrix_diag)
    std_resid = np.asarray(influence.resid_studentized_internal)
    cooks_d = np.asarray(influence.cooks_distance[0])

    n = int(results.nobs)
    p = int(results.df_model) + 1
    lev_threshold = leverage_multiplier * p / n
    cooks_threshold = COOKS_NUMERATOR / n

    high_lev = leverage > lev_threshold
    outlier = np.abs(std_resid) > std_resid_threshold
    influential = cooks_d > cooks_threshold
    trim = outlier | (high_lev & (np.abs(std_resid) > TRIM_STD_RESID_HIGH_LEVERAGE))

    labels = list(results.model.data.row_labels) if results.model.data.row_labels is not None else list(range(n))

    flagged: list[FlaggedObservation] = []
    for i in np.flatnonzero(high_lev | outlier | influential):
        reasons = []
        if high_lev[i]:
            reasons.append("high_leverage")
        if outlier[i]:
            reasons.append("outlier")
        if influential[i]:
            reasons.append("influential")
        flagged.append(FlaggedObservation(
            index=int(labels[i]),
            leverage=round(float(leverage[i]), 4),
            std_resid=round(float(std_resid[i]), 4),
            cooks_d=round(float(cooks_d[i]), 4),
            reasons=reasons,
        ))
    flagged.sort(key=lambda f: -f.cooks_d)

    return InfluenceSummary(
        n_observations=n,
        n_parameters=p,
        leverage_threshold=round(lev_threshold, 4),
        std_resid_threshold=std_resid_threshold,
        cooks_threshold=round(cooks_threshold, 4),
        max_leverage=round(float(leverage.max()), 4),
        max_abs_std_resid=round(float(np.abs(std_resid).max()), 4),
        max_cooks_d=round(float(cooks_d.max()), 4),
        high_leverage_count=int(high_lev.sum()),
        outlier_count=int(outlier.sum()),
        influential_count=int(influential.sum()),
        flagged=flagged,
        trim_indices=[int(labels[i]) for i in np.flatnonzero(trim)],
    )


# ─────────────────────────────────────────────
# MAIN — RUN ALL POST-FIT CHECKS
# ─────────────────────────────────────────────

def run_model_diagnostics(
    results,
    model_name: str,
    config: AnalysisConfig | None = None,
) -> DiagnosticsOutput:
    """
    Runs every check in POST_FIT_CHECK_REGISTRY plus the influence summary.
    A check that raises is recorded as a WARNING with the error message.
    """
    config = config or AnalysisConfig()
    residuals = _weighted_resid(results)
    results_list: list[DiagnosticResult] = []

    for assumption in POST_FIT_CHECK_REGISTRY:
        assumption = {**assumption, "alpha": config.alpha if assumption["alpha"] is not None else None}
        fn_name = assumption["test_fn"]
        try:
            if fn_name == "check_normality_of_residuals":
                results_list.append(check_normality_of_residuals(residuals, assumption))
            elif fn_name == "check_homoscedasticity_bp":
                results_list.append(check_homoscedasticity_bp(results, assumption))
            elif fn_name == "check_autocorrelation_dw":
                results_list.append(check_autocorrelation_dw(residuals, assumption))
            elif fn_name == "check_linearity_reset":
                results_list.append(check_linearity_reset(results, assumption))
            elif fn_name == "check_influential_points_cooks":
                results_list.append(check_influential_points_cooks(results, assumption))
        except Exception as e:
            logger.warning("Check '%s' failed on model '%s': %s", assumption["name"], model_name, e)
            results_list.append(DiagnosticResult(
                name=assumption["name"],
                description=assumption["description"],
                status=DiagnosticStatus.WARNING,
                plain_reason=f"Check could not be completed: {str(e)}",
            ))

    try:
        influence = compute_influence(results, config.std_resid_threshold, config.leverage_multiplier)
    except Exception as e:
        logger.warning("Influence measures failed on model '%s': %s", model_name, e)
        influence = None

    # ── Aggregate ──
    passed_count  = sum(1 for r in results_list if r.status == DiagnosticStatus.PASSED)
    failed_count  = sum(1 for r in results_list if r.status == DiagnosticStatus.FAILED)
    warning_count = sum(1 for r in results_list if r.status == DiagnosticStatus.WARNING)

    lines = [f"Post-fit checks for **{model_name}**:"]
    lines.append(f"Passed: {passed_count}  Failed: {failed_count}  Warnings: {warning_count}")
    lines.append("")
    for r in results_list:
        icon = {"passed": "✅", "failed": "❌", "warning": "⚠️"}.get(r.status.value, "•")
        lines.append(f"{icon} **{r.name}**: {r.plain_reason}")
    if influence is not None:
        lines.append(
            f"• Leverage > {influence.leverage_threshold}: {influence.high_leverage_count} row(s); "
            f"|standardized residual| > {influence.std_resid_threshold}: {influence.outlier_count} row(s)."
        )

    return DiagnosticsOutput(
        model_name=model_name,
        results=results_list,
        influence=influence,
        total_checks=len(results_list),
        passed_count=passed_count,
        failed_count=failed_count,
        warning_count=warning_count,
        has_failures=failed_count > 0,
        summary_message="\n".join(lines),
    )
