"""
FILE: core/transform_engine.py
--------------------------------
Box-Cox power transform estimation and application.
No LangChain or LLM dependencies.

Two estimates are produced:
  - per column, the marginal MLE power (scipy.stats.boxcox) with a 95% CI
    and likelihood-ratio tests against "no transform" (λ=1) and log (λ=0)
  - for the response, the profile likelihood of λ given the predictors
    (the regression-conditional Box-Cox), which is what actually matters
    for residual normality and constant variance

The power applied is a "rounded" λ — the nearest conventional power
inside the confidence interval — so transformed variables stay
interpretable (log, square root, reciprocal, ...).
"""

import logging

import numpy as np
import pandas as pd
from scipy import optimize, special, stats
from statsmodels.regression.linear_model import OLS
from statsmodels.tools import add_constant

from Schemas.transform import (
    AppliedTransform,
    BoxCoxEstimate,
    ResponseProfile,
    TransformOutput,
)
from constants.diagnostics import BOXCOX_NICE_LAMBDAS, BOXCOX_PROFILE_GRID, BOXCOX_SEARCH_BOUNDS

logger = logging.getLogger(__name__)

_CHI2_95_HALF = float(stats.chi2.ppf(0.95, 1)) / 2


# ─────────────────────────────────────────────
# ELEMENTARY TRANSFORMS
# ─────────────────────────────────────────────

def boxcox_values(values: np.ndarray, lmbda: float) -> np.ndarray:
    """(x**λ - 1) / λ, or log(x) for λ = 0. x must be strictly positive."""
    return special.boxcox(np.asarray(values, dtype=float), lmbda)


def inverse_boxcox(values: np.ndarray, lmbda: float) -> np.ndarray:
    """Inverse of boxcox_values; NaN where the inverse is undefined."""
    return special.inv_boxcox(np.asarray(values, dtype=float), lmbda)


def _round_lambda(lmbda: float, ci: tuple[float, float] | None) -> float:
    """Closest conventional power inside the CI, else λ rounded to 2 dp."""
    if ci is not None:
        lower, upper = ci
        inside = [nice for nice in BOXCOX_NICE_LAMBDAS if lower <= nice <= upper]
        if inside:
            return min(inside, key=lambda nice: abs(nice - lmbda))
    return round(float(lmbda), 2)


def _describe_power(lmbda: float) -> str:
    names = {
        -2.0: "inverse square",
        -1.0: "reciprocal",
        -0.5: "inverse square root",
        0.0:  "log",
        0.5:  "square root",
        1.0:  "no transform",
        2.0:  "square",
    }
    return names.get(lmbda, f"power {lmbda}")


# ─────────────────────────────────────────────
# ESTIMATION
# ─────────────────────────────────────────────

def estimate_boxcox(series: pd.Series) -> BoxCoxEstimate:
    """
    Marginal Box-Cox MLE for a single column.
    Non-positive values are excluded (and counted); a constant column
    raises ValueError.
    """
    clean = series.dropna()
    positive = clean[clean > 0].to_numpy(dtype=float)
    n_dropped = int(len(clean) - len(positive))

    if len(positive) < 3:
        raise ValueError(
            f"Column '{series.name}' has fewer than 3 positive values; Box-Cox cannot be estimated."
        )
    if np.ptp(positive) == 0:
        raise ValueError(f"Column '{series.name}' is constant; Box-Cox cannot be estimated.")

    _, lmbda, ci = stats.boxcox(positive, alpha=0.05)
    ci = (float(ci[0]), float(ci[1]))
    llf_hat = float(stats.boxcox_llf(lmbda, positive))

    lr_one = max(0.0, 2 * (llf_hat - float(stats.boxcox_llf(1.0, positive))))
    lr_log = max(0.0, 2 * (llf_hat - float(stats.boxcox_llf(0.0, positive))))
    p_one = float(stats.chi2.sf(lr_one, 1))
    p_log = float(stats.chi2.sf(lr_log, 1))

    rounded = _round_lambda(float(lmbda), ci)
    interpretation = (
        f"'{series.name}': λ̂={round(float(lmbda), 3)} "
        f"(95% CI [{round(ci[0], 3)}, {round(ci[1], 3)}]) → {_describe_power(rounded)}. "
        + ("No transform is rejected" if p_one < 0.05 else "No transform is not rejected")
        + f" (LR={round(lr_one, 3)}, p={round(p_one, 4)})."
    )

    return BoxCoxEstimate(
        column=str(series.name),
        n_used=int(len(positive)),
        n_non_positive_dropped=n_dropped,
        lambda_mle=round(float(lmbda), 4),
        ci_lower=round(ci[0], 4),
        ci_upper=round(ci[1], 4),
        lambda_rounded=rounded,
        lr_stat_no_transform=round(lr_one, 4),
        p_no_transform=round(p_one, 6),
        lr_stat_log=round(lr_log, 4),
        p_log=round(p_log, 6),
        interpretation=interpretation,
    )


def _profile_log_likelihood(lmbda: float, y: np.ndarray, X: pd.DataFrame, gm: float) -> float:
    """-n/2 · log(RSS(λ)/n) of the geometric-mean-normalized Box-Cox response."""
    if abs(lmbda) < 1e-12:
        z = gm * np.log(y)
    else:
        # the -1 shift is absorbed by the intercept
        z = gm * (y / gm) ** lmbda / lmbda
    rss = float(OLS(z, X).fit().ssr)
    return -len(y) / 2 * np.log(rss / len(y))


def profile_response_lambda(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
    grid: np.ndarray | None = None,
    bounds: tuple[float, float] = BOXCOX_SEARCH_BOUNDS,
) -> ResponseProfile:
    """
    Profile log-likelihood of the response power given the predictors.
    Uses the geometric-mean-normalized Box-Cox so residual sums of
    squares are comparable across λ: ll(λ) = -n/2 · log(RSS(λ)/n).

    λ̂ is maximised over `bounds` with a bounded Brent search; the 95% CI
    ends where ll has dropped by χ²₁(0.95)/2. When λ̂ or a CI end sits on
    a bound, at_bound is set and a warning logged. `grid` only sets the
    curve kept for plotting; by default it is widened to cover the CI.
    """
    data = df[[response] + predictors].dropna()
    data = data[data[response] > 0]
    y = data[response].to_numpy(dtype=float)
    if len(y) <= len(predictors) + 1:
        raise ValueError("Too few positive response values to profile the Box-Cox power.")

    X = add_constant(data[predictors], has_constant="add")
    gm = float(np.exp(np.mean(np.log(y))))
    lo, hi = bounds

    def ll(lmbda: float) -> float:
        return _profile_log_likelihood(lmbda, y, X, gm)

    best = optimize.minimize_scalar(
        lambda l: -ll(l), bounds=bounds, method="bounded", options={"xatol": 1e-5},
    )
    lambda_hat, ll_max = float(best.x), -float(best.fun)
    for edge in (lo, hi):
        if ll(edge) > ll_max:
            lambda_hat, ll_max = edge, ll(edge)

    cutoff = ll_max - _CHI2_95_HALF
    ci_lower = lo if ll(lo) >= cutoff else optimize.brentq(lambda l: ll(l) - cutoff, lo, lambda_hat)
    ci_upper = hi if ll(hi) >= cutoff else optimize.brentq(lambda l: ll(l) - cutoff, lambda_hat, hi)

    at_bound = min(lambda_hat - lo, hi - lambda_hat, ci_lower - lo, hi - ci_upper) < 1e-3
    if at_bound:
        logger.warning(
            "Box-Cox profile for '%s' reaches the search bounds [%s, %s]: λ̂=%.3f, CI [%.3f, %.3f]",
            response, lo, hi, lambda_hat, ci_lower, ci_upper,
        )

    if grid is None:
        start, stop, num = BOXCOX_PROFILE_GRID
        grid = np.linspace(
            max(lo, min(start, ci_lower - 0.25)), min(hi, max(stop, ci_upper + 0.25)), num,
        )
    grid = np.union1d(np.asarray(grid, dtype=float), [lambda_hat])

    return ResponseProfile(
        response=response,
        lambda_hat=round(lambda_hat, 4),
        ci_lower=round(float(ci_lower), 4),
        ci_upper=round(float(ci_upper), 4),
        search_lower=lo,
        search_upper=hi,
        at_bound=at_bound,
        grid=[round(float(g), 4) for g in grid],
        log_likelihood=[round(ll(float(g)), 4) for g in grid],
    )


# ─────────────────────────────────────────────
# APPLICATION
# ─────────────────────────────────────────────

def apply_boxcox(
    df: pd.DataFrame,
    powers: dict[str, float],
) -> tuple[pd.DataFrame, list[AppliedTransform]]:
    """
    Transforms each column with its power. Rows with a non-positive value
    in any transformed column must already be removed.
    """
    df = df.copy()
    applied: list[AppliedTransform] = []

    for col, lmbda in powers.items():
        series = df[col]
        if (series <= 0).any():
            raise ValueError(f"Column '{col}' has non-positive values; filter them before transforming.")
        applied.append(AppliedTransform(
            column=col,
            transform_type="log" if lmbda == 0 else "boxcox",
            lmbda=float(lmbda),
            original_min=round(float(series.min()), 4),
            original_max=round(float(series.max()), 4),
            note=f"{_describe_power(lmbda)} (λ={lmbda}).",
        ))
        df[col] = boxcox_values(series.to_numpy(), lmbda)

    return df, applied


def run_power_transform(
    df: pd.DataFrame,
    response: str,
    predictors: list[str],
    requested_columns: list[str],
) -> tuple[pd.DataFrame, TransformOutput]:
    """
    Estimates and applies Box-Cox powers for the requested columns that
    are part of the current model. Rows with a non-positive value in any
    of those columns are dropped first so every transform is defined.
    For the response, the regression-conditional profile estimate takes
    precedence over the marginal one when picking the rounded power.
    """
    model_columns = [response] + predictors
    columns = [c for c in requested_columns if c in model_columns]
    skipped = [c for c in requested_columns if c not in model_columns]

    positive = (df[columns] > 0).all(axis=1) if columns else pd.Series(True, index=df.index)
    rows_dropped = int((~positive).sum())
    data = df[positive]
    if rows_dropped:
        logger.info("Dropped %d row(s) with non-positive values before Box-Cox", rows_dropped)

    estimates: list[BoxCoxEstimate] = []
    powers: dict[str, float] = {}
    for col in columns:
        try:
            est = estimate_boxcox(data[col])
        except ValueError as e:
            logger.warning("Skipping Box-Cox for '%s': %s", col, e)
            skipped.append(col)
            continue
        estimates.append(est)
        powers[col] = est.lambda_rounded

    profile = None
    if response in powers:
        profile = profile_response_lambda(data, response, predictors)
        powers[response] = _round_lambda(profile.lambda_hat, (profile.ci_lower, profile.ci_upper))

    # A power of exactly 1 is a shift only
    powers = {c: p for c, p in powers.items() if p != 1.0}
    transformed, applied = apply_boxcox(data, powers)

    lines = [f"Box-Cox powers estimated for {len(estimates)} column(s)."]
    for est in estimates:
        lines.append(est.interpretation)
    if profile is not None:
        lines.append(
            f"Profile likelihood for '{response}' given the predictors: λ̂={profile.lambda_hat} "
            f"(95% CI [{profile.ci_lower}, {profile.ci_upper}])."
        )
        if profile.at_bound:
            lines.append(
                f"The profile likelihood reaches the search bounds [{profile.search_lower}, "
                f"{profile.search_upper}]; the power of '{response}' is poorly determined."
            )
    if applied:
        lines.append("Applied: " + ", ".join(f"'{t.column}' {t.note}" for t in applied))
    else:
        lines.append("No column needed a transform.")
    if rows_dropped:
        lines.append(f"{rows_dropped} row(s) with non-positive values were excluded.")

    return transformed, TransformOutput(
        estimates=estimates,
        response_profile=profile,
        applied=applied,
        rows_dropped_non_positive=rows_dropped,
        skipped_columns=skipped,
        summary_message="\n".join(lines),
    )
