"""
FILE: core/plot_engine.py
---------------------------
Figures for the salinity report.
No LangChain or LLM dependencies.

Every function writes one PNG into output_dir and returns its path.
The Agg backend is selected so figures render without a display.
"""

import logging
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pandas.plotting import scatter_matrix
from scipy import stats

from core.diagnostics_engine import influence_of
from Schemas.collinearity import CollinearityOutput
from Schemas.selection import ModelComparison
from Schemas.transform import ResponseProfile
from constants.analysis import COLUMN_LABELS

logger = logging.getLogger(__name__)

DPI = 120


def _save(fig, output_dir: str, filename: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)
    fig.tight_layout()
    fig.savefig(path, dpi=DPI)
    plt.close(fig)
    logger.debug("Saved figure %s", path)
    return path


def _label(column: str) -> str:
    return COLUMN_LABELS.get(column, column)


def _slug(name: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in name.lower()).strip("_")


# ─────────────────────────────────────────────
# EXPLORATORY
# ─────────────────────────────────────────────

def plot_scatter_matrix(
    df: pd.DataFrame,
    columns: list[str],
    output_dir: str,
    filename: str = "scatter_matrix.png",
) -> str:
    """Pairwise scatter plots with histograms on the diagonal."""
    data = df[columns].dropna()
    size = max(6, 1.6 * len(columns))
    axes = scatter_matrix(data, figsize=(size, size), alpha=0.3, s=6, diagonal="hist", hist_kwds={"bins": 30})
    fig = np.atleast_1d(axes).ravel()[0].get_figure()
    for ax in np.atleast_1d(axes).ravel():
        ax.xaxis.label.set_rotation(30)
        ax.yaxis.label.set_rotation(0)
        ax.yaxis.label.set_ha("right")
    fig.suptitle(f"Pairwise relationships (n={len(data)})")
    return _save(fig, output_dir, filename)


# ─────────────────────────────────────────────
# RESIDUAL DIAGNOSTICS
# ─────────────────────────────────────────────

def plot_residual_diagnostics(
    results,
    model_name: str,
    output_dir: str,
) -> str:
    """
    Four-panel residual plot:
      residuals vs fitted, normal Q-Q, scale-location,
      standardized residuals vs leverage with Cook's 0.5 / 1 contours.
    """
    influence = influence_of(results)
    fitted = np.asarray(results.fittedvalues)
    resid = np.asarray(results.wresid)
    std_resid = np.asarray(influence.resid_studentized_internal)
    leverage = np.asarray(influence.hat_matrix_diag)
    p = int(results.df_model) + 1

    fig, axes = plt.subplots(2, 2, figsize=(11, 9))

    # ── Residuals vs fitted ──
    ax = axes[0, 0]
    ax.scatter(fitted, resid, s=8, alpha=0.5)
    ax.axhline(0, color="grey", linestyle="--", linewidth=1)
    order = np.argsort(fitted)
    window = max(5, len(fitted) // 20)
    smooth = pd.Series(resid[order]).rolling(window, center=True, min_periods=1).mean()
    ax.plot(fitted[order], smooth, color="red", linewidth=1)
    ax.set_xlabel("Fitted values")
    ax.set_ylabel("Residuals")
    ax.set_title("Residuals vs Fitted")

    # ── Normal Q-Q ──
    ax = axes[0, 1]
    stats.probplot(std_resid, dist="norm", plot=ax)
    ax.get_lines()[0].set_markersize(3)
    ax.set_title("Normal Q-Q")
    ax.set_ylabel("Standardized residuals")

    # ── Scale-location ──
    ax = axes[1, 0]
    ax.scatter(fitted, np.sqrt(np.abs(std_resid)), s=8, alpha=0.5)
    ax.set_xlabel("Fitted values")
    ax.set_ylabel("√|Standardized residuals|")
    ax.set_title("Scale-Location")

    # ── Residuals vs leverage ──
    ax = axes[1, 1]
    ax.scatter(leverage, std_resid, s=8, alpha=0.5)
    ax.axhline(0, color="grey", linestyle="--", linewidth=1)
    h = np.linspace(max(leverage.min(), 1e-4), min(leverage.max() * 1.05, 0.999), 100)
    for level, style in ((0.5, "--"), (1.0, ":")):
        bound = np.sqrt(level * p * (1 - h) / h)
        ax.plot(h, bound, color="red", linestyle=style, linewidth=1, label=f"Cook's D = {level}")
        ax.plot(h, -bound, color="red", linestyle=style, linewidth=1)
    lim = max(np.abs(std_resid).max() * 1.1, 3.5)
    ax.set_ylim(-lim, lim)
    ax.set_xlabel("Leverage")
    ax.set_ylabel("Standardized residuals")
    ax.set_title("Residuals vs Leverage")
    ax.legend(loc="lower right", fontsize=8)

    fig.suptitle(f"Residual diagnostics — {model_name}")
    return _save(fig, output_dir, f"residuals_{_slug(model_name)}.png")


# ─────────────────────────────────────────────
# BOX-COX
# ─────────────────────────────────────────────

def plot_boxcox_profile(
    profile: ResponseProfile,
    output_dir: str,
    filename: str = "boxcox_profile.png",
) -> str:
    """Profile log-likelihood of the response power with its 95% CI."""
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(profile.grid, profile.log_likelihood, color="tab:blue")
    ax.axvline(profile.lambda_hat, color="red", linestyle="--", label=f"λ̂ = {profile.lambda_hat}")
    ax.axvspan(profile.ci_lower, profile.ci_upper, color="tab:blue", alpha=0.15, label="95% CI")
    ax.set_xlabel("λ")
    ax.set_ylabel("Profile log-likelihood")
    ax.set_title(f"Box-Cox profile for {_label(profile.response)}")
    ax.legend()
    return _save(fig, output_dir, filename)


# ─────────────────────────────────────────────
# COLLINEARITY
# ─────────────────────────────────────────────

def plot_vif(
    collinearity: CollinearityOutput,
    output_dir: str,
    filename: str = "vif.png",
) -> str:
    """VIF of each predictor before and after pruning, log scale."""
    initial = {s.variable: s.vif for s in collinearity.initial_scores}
    final = {s.variable: s.vif for s in collinearity.final_scores}
    names = list(initial)
    cap = 1e4

    def _finite(v: float) -> float:
        return cap if not np.isfinite(v) else min(v, cap)

    x = np.arange(len(names))
    fig, ax = plt.subplots(figsize=(max(6, 1.2 * len(names)), 5))
    ax.bar(x - 0.2, [_finite(initial[n]) for n in names], width=0.4, label="Full model")
    ax.bar(x + 0.2, [_finite(final[n]) if n in final else np.nan for n in names], width=0.4, label="After pruning")
    ax.axhline(collinearity.threshold, color="red", linestyle="--", label=f"Threshold = {collinearity.threshold}")
    ax.set_yscale("log")
    ax.set_xticks(x)
    ax.set_xticklabels([_label(n) for n in names], rotation=30, ha="right")
    ax.set_ylabel("VIF")
    ax.set_title("Variance inflation factors")
    ax.legend()
    return _save(fig, output_dir, filename)


# ─────────────────────────────────────────────
# MODEL COMPARISON
# ─────────────────────────────────────────────

def plot_model_comparison(
    comparison: ModelComparison,
    output_dir: str,
    filename: str = "model_comparison.png",
) -> str:
    """Adjusted R² and holdout RMSE for every model in the sequence."""
    names = [r.name for r in comparison.rows]
    adj = [r.adj_r_squared or 0.0 for r in comparison.rows]
    holdout = [r.holdout_rmse if r.holdout_rmse is not None else np.nan for r in comparison.rows]
    colors = ["tab:green" if n == comparison.recommended_model else "tab:blue" for n in names]

    fig, axes = plt.subplots(1, 2, figsize=(max(10, 1.5 * len(names)), 5))
    x = np.arange(len(names))

    axes[0].bar(x, adj, color=colors)
    axes[0].set_title("Adjusted R² (in-sample, own response scale)")
    axes[0].set_ylim(0, 1.05)

    axes[1].bar(x, holdout, color=colors)
    axes[1].set_title("Holdout RMSE (salinity scale)")
    if np.all(np.isnan(holdout)):
        axes[1].text(0.5, 0.5, "No holdout sample", ha="center", va="center", transform=axes[1].transAxes)

    for ax in axes:
        ax.set_xticks(x)
        ax.set_xticklabels(names, rotation=30, ha="right")

    fig.suptitle("Model comparison")
    return _save(fig, output_dir, filename)
