"""
FILE: core/collinearity_engine.py
-----------------------------------
Variance inflation factors and iterative pruning of collinear predictors.
No LangChain or LLM dependencies.

In the bottle data temperature, density and oxygen are physically linked
(sigma-theta is essentially a function of temperature and salinity), so
the full model is expected to show VIFs well above 10.
"""

import logging

import numpy as np
import pandas as pd
from statsmodels.stats.outliers_influence import variance_inflation_factor
from statsmodels.tools import add_constant

from Schemas.collinearity import CollinearityOutput, PruningRound, VIFScore

logger = logging.getLogger(__name__)


def compute_vif(
    df: pd.DataFrame,
    predictors: list[str],
    threshold: float = float("inf"),
) -> list[VIFScore]:
    """
    VIF per predictor on the constant-augmented design.
    The constant's own VIF is not reported. A predictor that is an exact
    linear combination of the others gets VIF = inf.
    """
    if not predictors:
        return []
    if len(predictors) == 1:
        return [VIFScore(variable=predictors[0], vif=1.0, exceeds_threshold=1.0 >= threshold)]

    X = add_constant(df[predictors].dropna(), has_constant="add")
    exog = X.to_numpy(dtype=float)

    scores: list[VIFScore] = []
    with np.errstate(divide="ignore", invalid="ignore"):
        for i, col in enumerate(X.columns):
            if col == "const":
                continue
            vif = float(variance_inflation_factor(exog, i))
            if not np.isfinite(vif) or vif < 0:
                vif = float("inf")
            scores.append(VIFScore(
                variable=col,
                vif=vif if vif == float("inf") else round(vif, 4),
                exceeds_threshold=vif >= threshold,
            ))
    return scores


def prune_by_vif(
    df: pd.DataFrame,
    predictors: list[str],
    threshold: float,
) -> CollinearityOutput:
    """
    Repeatedly drops the predictor with the highest VIF while that VIF is
    at or above the threshold. Stops when all VIFs are below the threshold
    or a single predictor is left.
    """
    remaining = list(predictors)
    dropped: list[str] = []
    rounds: list[PruningRound] = []

    while True:
        scores = compute_vif(df, remaining, threshold)
        worst = max(scores, key=lambda s: s.vif) if scores else None

        if worst is None or worst.vif < threshold or len(remaining) <= 1:
            rounds.append(PruningRound(round_number=len(rounds) + 1, scores=scores))
            break

        rounds.append(PruningRound(round_number=len(rounds) + 1, scores=scores, dropped=worst.variable))
        logger.info("Dropping '%s' (VIF=%s >= %s)", worst.variable, worst.vif, threshold)
        remaining.remove(worst.variable)
        dropped.append(worst.variable)

    has_multicollinearity = any(s.exceeds_threshold for s in rounds[0].scores)

    lines = []
    initial = ", ".join(f"{s.variable}={_fmt_vif(s.vif)}" for s in rounds[0].scores)
    lines.append(f"Initial VIFs: {initial}.")
    if dropped:
        lines.append(
            f"Multicollinearity detected (VIF >= {threshold}). "
            f"Dropped in order: {', '.join(dropped)}."
        )
        final = ", ".join(f"{s.variable}={_fmt_vif(s.vif)}" for s in rounds[-1].scores)
        lines.append(f"Final VIFs: {final}.")
    else:
        lines.append(f"All VIFs below {threshold}; no predictor removed.")

    return CollinearityOutput(
        threshold=threshold,
        initial_predictors=list(predictors),
        retained_predictors=remaining,
        dropped_predictors=dropped,
        rounds=rounds,
        has_multicollinearity=has_multicollinearity,
        summary_message=" ".join(lines),
    )


def _fmt_vif(vif: float) -> str:
    return "inf" if vif == float("inf") else f"{vif:.2f}"
