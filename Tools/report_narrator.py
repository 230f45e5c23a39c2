"""
FILE: Tools/report_narrator.py
--------------------------------
LangChain tools exposed to the Report Narrator ReAct agent.
The agent reads the finished analysis through these tools and
writes the interpretation section; it never recomputes anything.
"""

import json

from langchain_core.tools import tool


# ─────────────────────────────────────────────
# SESSION STORE
# ─────────────────────────────────────────────

_narrator_store: dict = {
    "report_output":     None,
    "comparison_output": None,
    "diagnostics":       None,
    "model_fits":        None,
}


def init_narrator_store(
    report_output: dict,
    comparison_output: dict,
    diagnostics: dict[str, dict],
    model_fits: list[dict],
) -> None:
    """Called by run_report_narrator() before invoking the agent."""
    _narrator_store["report_output"]     = report_output
    _narrator_store["comparison_output"] = comparison_output
    _narrator_store["diagnostics"]       = diagnostics
    _narrator_store["model_fits"]        = model_fits


def get_narrator_store() -> dict:
    return _narrator_store


# ─────────────────────────────────────────────
# TOOLS
# ─────────────────────────────────────────────

@tool
def get_analysis_summary() -> str:
    """
    Returns the dataset summary, the narrative of every pipeline stage
    (collinearity, predictor selection, power transform, influence, weighting)
    and the deterministic conclusions.
    Call this first to understand what happened.
    """
    report = _narrator_store.get("report_output") or {}
    if not report:
        return "ERROR: No analysis available."
    return json.dumps({
        "dataset":           report.get("dataset_summary"),
        "collinearity":      report.get("collinearity_summary"),
        "selection":         report.get("selection_summary"),
        "power_transform":   report.get("transform_summary"),
        "influence":         report.get("influence_summary"),
        "weighted":          report.get("weighted_summary"),
        "recommended_model": report.get("recommended_model"),
        "conclusions":       report.get("conclusions", []),
        "caveats":           report.get("caveats", []),
    }, indent=2)


@tool
def get_model_comparison() -> str:
    """
    Returns every fitted model with its coefficients, fit statistics and
    holdout RMSE (on the salinity scale), plus the recommended model and why.
    """
    comparison = _narrator_store.get("comparison_output") or {}
    fits = _narrator_store.get("model_fits") or []
    return json.dumps({
        "recommended_model":     comparison.get("recommended_model"),
        "recommendation_reason": comparison.get("recommendation_reason"),
        "nested_tests":          comparison.get("nested_tests", []),
        "models": [
            {
                "name":          f.get("name"),
                "kind":          f.get("kind"),
                "formula":       f.get("formula"),
                "response_lambda": f.get("response_lambda"),
                "r_squared":     f.get("r_squared"),
                "adj_r_squared": f.get("adj_r_squared"),
                "holdout_rmse":  f.get("holdout_rmse"),
                "coefficients": [
                    {"variable": c.get("variable"), "estimate": c.get("estimate"),
                     "p_value": c.get("p_value")}
                    for c in f.get("coefficients", [])
                ],
            }
            for f in fits
        ],
    }, indent=2)


@tool
def get_diagnostics(model_name: str) -> str:
    """
    Returns the residual checks (normality, homoscedasticity, autocorrelation,
    linearity, influential points) for one model by name.

    Args:
        model_name: One of the model names returned by get_model_comparison.
    """
    diagnostics = _narrator_store.get("diagnostics") or {}
    diag = diagnostics.get(model_name)
    if diag is None:
        return f"ERROR: No diagnostics for '{model_name}'. Available: {list(diagnostics)}"
    return json.dumps({
        "model_name": model_name,
        "checks": [
            {"name": r.get("name"), "status": r.get("status"), "reason": r.get("plain_reason")}
            for r in diag.get("results", [])
        ],
    }, indent=2)


# ─────────────────────────────────────────────
# EXPORTED TOOL LIST
# ─────────────────────────────────────────────

REPORT_NARRATOR_TOOLS = [
    get_analysis_summary,
    get_model_comparison,
    get_diagnostics,
]
