"""
FILE: core/final_report_engine.py
-----------------------------------
Pure logic for assembling the final report from all upstream stage outputs.
No LangChain or LLM dependencies.

Responsibilities:
  1. Collects outputs from every stage of the pipeline
  2. Assembles structured report sections (one narrative per stage)
  3. Builds caveats from checks that still fail on the recommended model
  4. Generates the markdown report
  5. Writes report.md and report.json into the output directory
"""

import json
import logging
import os
from enum import Enum

from Schemas.final_report import FinalReportOutput
from Utils.diagnostics_registry import REMEDY_REGISTRY
from constants.analysis import COLUMN_LABELS

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _label(column: str) -> str:
    return COLUMN_LABELS.get(column, column)


def _fmt(value, digits: int = 4) -> str:
    if value is None:
        return "-"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float):
        return f"{value:.{digits + 2}g}"
    return str(value)


def _markdown_table(headers: list[str], rows: list[list]) -> str:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("---" for _ in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_fmt(v) for v in row) + " |")
    return "\n".join(lines)


def _fit_by_name(model_fits: list[dict], name: str | None) -> dict:
    for fit in model_fits:
        if fit.get("name") == name:
            return fit
    return {}


def _failed_checks(diagnostics: dict) -> list[str]:
    return [r.get("name") for r in diagnostics.get("results", []) if r.get("status") == "failed"]


# ─────────────────────────────────────────────
# SECTION BUILDERS
# ─────────────────────────────────────────────

def _build_dataset_summary(
    load_output: dict,
    preprocessor_output: dict,
) -> str:
    summary = (
        f"Bottle file '{load_output.get('bottle_path', '?')}' ({load_output.get('bottle_rows', '?')} rows) "
        f"joined to cast file '{load_output.get('cast_path', '?')}' ({load_output.get('cast_rows', '?')} rows) "
        f"on '{load_output.get('join_key', '?')}': {load_output.get('merged_rows', '?')} merged rows."
    )
    unmatched = load_output.get("unmatched_bottle_rows", 0)
    if unmatched:
        summary += f" {unmatched} bottle row(s) had no matching cast."

    dropped = preprocessor_output.get("rows_dropped_total", 0)
    final_rows = preprocessor_output.get("final_shape", [None])[0]
    if dropped:
        summary += f" Cleaning removed {dropped} row(s), leaving {final_rows}."
    changes = preprocessor_output.get("changes_summary", [])
    if changes:
        summary += f" Cleaning applied: {'; '.join(changes[:4])}"
        if len(changes) > 4:
            summary += f" (and {len(changes) - 4} more)."
    summary += (
        f" Models were fitted on a random sample of {preprocessor_output.get('sample_size', '?')} rows"
        f" (seed {preprocessor_output.get('random_state')})"
    )
    holdout = preprocessor_output.get("holdout_size", 0)
    summary += f" and scored on {holdout} disjoint holdout rows." if holdout else " with no holdout sample."
    return summary


def _build_descriptive_table(profiler_output: dict) -> str:
    rows = [
        [
            c.get("column"), c.get("mean"), c.get("std"), c.get("min"), c.get("median"),
            c.get("max"), c.get("skewness"), c.get("missing_pct"),
        ]
        for c in profiler_output.get("columns", [])
    ]
    if not rows:
        return ""
    return _markdown_table(
        ["Column", "Mean", "SD", "Min", "Median", "Max", "Skew", "Missing %"], rows,
    )


def _build_collinearity_summary(collinearity_output: dict, profiler_output: dict) -> str:
    if not collinearity_output:
        return "Collinearity was not assessed."
    text = collinearity_output.get("summary_message", "")
    pairs = profiler_output.get("high_correlation_pairs", [])
    if pairs:
        listed = ", ".join(f"{p['column_a']}/{p['column_b']} (r={p['r']})" for p in pairs[:4])
        text += f" Strongly correlated predictor pairs in the sample: {listed}."
    return text


def _build_transform_summary(transform_output: dict) -> str:
    if not transform_output:
        return "No power transform was estimated."
    return transform_output.get("summary_message", "")


def _build_influence_summary(influence_output: dict) -> str:
    if not influence_output:
        return "Influence measures were not computed."
    summary = influence_output.get("summary") or {}
    text = (
        f"On '{influence_output.get('source_model')}': leverage threshold "
        f"2p/n = {summary.get('leverage_threshold')} ({summary.get('high_leverage_count', 0)} row(s) above), "
        f"|standardized residual| > {summary.get('std_resid_threshold')} for "
        f"{summary.get('outlier_count', 0)} row(s), Cook's D > 4/n for "
        f"{summary.get('influential_count', 0)} row(s). "
        f"Largest leverage {summary.get('max_leverage')}, largest |r| {summary.get('max_abs_std_resid')}, "
        f"largest Cook's D {summary.get('max_cooks_d')}."
    )
    trimmed = influence_output.get("rows_trimmed", 0)
    if trimmed:
        text += f" {trimmed} row(s) were trimmed and the model refitted as '{influence_output.get('model_name')}'."
    else:
        text += " No row met the trimming rule."
    return text


def _build_comparison_table(comparison_output: dict) -> str:
    rows = [
        [
            r.get("name"), r.get("kind"), r.get("response_scale"), r.get("n_observations"),
            r.get("n_predictors"), r.get("r_squared"), r.get("adj_r_squared"), r.get("aic"),
            r.get("rmse"), r.get("holdout_rmse"),
            ", ".join(r.get("diagnostics_failed", [])) or "-",
        ]
        for r in comparison_output.get("rows", [])
    ]
    if not rows:
        return ""
    table = _markdown_table(
        ["Model", "Kind", "Response", "n", "k", "R²", "Adj. R²", "AIC", "RMSE", "Holdout RMSE", "Failed checks"],
        rows,
    )
    tests = comparison_output.get("nested_tests", [])
    if tests:
        table += "\n\nNested F tests:\n"
        for t in tests:
            if not t.get("df_diff"):
                continue
            verdict = "reduced model adequate" if t.get("reduced_adequate") else "dropped terms matter"
            table += (
                f"\n- '{t['reduced_model']}' within '{t['full_model']}': "
                f"F={t.get('f_statistic')}, df={t.get('df_diff')}, p={t.get('p_value')} ({verdict})."
            )
    return table


def _build_diagnostics_section(diag: dict) -> str:
    rows = [
        [r.get("name"), r.get("test_used") or "-", r.get("statistic"), r.get("p_value"), r.get("status")]
        for r in diag.get("results", [])
    ]
    return _markdown_table(["Check", "Test", "Statistic", "p", "Status"], rows)


def _build_caveats(
    recommended_model: str | None,
    diagnostics: dict,
    collinearity_output: dict,
    load_output: dict,
    preprocessor_output: dict,
) -> list[str]:
    caveats: list[str] = []

    # ── Checks still failing on the recommended model ──
    if recommended_model:
        for check in _failed_checks(diagnostics.get(recommended_model, {})):
            remedies = REMEDY_REGISTRY.get(check, [])
            tried = "; ".join(r["description"] for r in remedies)
            caveats.append(f"'{check}' still fails on '{recommended_model}'. {tried}".strip())

    if collinearity_output.get("dropped_predictors"):
        caveats.append(
            "Dropped collinear predictors ("
            + ", ".join(collinearity_output["dropped_predictors"])
            + ") are still related to salinity; their effect is absorbed by the retained ones."
        )

    for w in load_output.get("warnings", []):
        caveats.append(f"Data note: {w}")
    for w in preprocessor_output.get("warnings", []):
        caveats.append(f"Data note: {w}")
    return caveats


def _build_conclusions(
    model_fits: list[dict],
    comparison_output: dict,
    collinearity_output: dict,
    transform_output: dict,
    weighted_output: dict,
) -> list[str]:
    conclusions: list[str] = []

    if model_fits:
        first = model_fits[0]
        conclusions.append(
            f"The full OLS model explains {round((first.get('r_squared') or 0) * 100, 1)}% of the "
            f"variance in salinity (adjusted R² {first.get('adj_r_squared')})."
        )

    if collinearity_output.get("dropped_predictors"):
        conclusions.append(
            f"Multicollinearity was material: {', '.join(collinearity_output['dropped_predictors'])} "
            f"removed at VIF ≥ {collinearity_output.get('threshold')}."
        )

    applied = transform_output.get("applied", []) if transform_output else []
    if applied:
        conclusions.append(
            "Box-Cox transforms applied: "
            + ", ".join(f"{t['column']} (λ={t['lmbda']})" for t in applied) + "."
        )

    if weighted_output:
        conclusions.append(weighted_output.get("summary_message", ""))

    recommended = comparison_output.get("recommended_model")
    if recommended:
        best = _fit_by_name(model_fits, recommended)
        slopes = [c for c in best.get("coefficients", []) if c.get("variable") != "const"]
        if slopes:
            strongest = max(slopes, key=lambda c: abs(c.get("t_statistic") or 0.0))
            direction = "increases" if strongest["estimate"] > 0 else "decreases"
            conclusions.append(
                f"In '{recommended}', salinity {direction} with {_label(strongest['variable'])} "
                f"(coefficient {strongest['estimate']}, t={strongest.get('t_statistic')}), "
                f"the strongest predictor."
            )
        conclusions.append(f"Recommended model: '{recommended}'. {comparison_output.get('recommendation_reason', '')}")
    return [c for c in conclusions if c]


# ─────────────────────────────────────────────
# MARKDOWN BUILDER
# ─────────────────────────────────────────────

def _build_markdown(report: FinalReportOutput, output_dir: str | None = None) -> str:
    def _fig(path: str) -> str:
        return os.path.relpath(path, output_dir) if output_dir else path

    lines = []

    lines.append(f"# {report.title}")
    lines.append("")
    lines.append("---")
    lines.append("")

    lines.append("## Dataset & Preparation")
    lines.append(report.dataset_summary)
    lines.append("")
    if report.descriptive_table:
        lines.append(report.descriptive_table)
        lines.append("")

    lines.append("## Collinearity")
    lines.append(report.collinearity_summary)
    lines.append("")

    lines.append("## Predictor Selection")
    lines.append(report.selection_summary)
    lines.append("")

    lines.append("## Power Transform")
    lines.append(report.transform_summary)
    lines.append("")

    lines.append("## Influential Observations")
    lines.append(report.influence_summary)
    lines.append("")

    lines.append("## Weighted Least Squares")
    lines.append(report.weighted_summary)
    lines.append("")

    lines.append("## Model Comparison")
    lines.append(report.comparison_table)
    lines.append("")

    if report.diagnostics_sections:
        lines.append("## Residual Diagnostics")
        for name, section in report.diagnostics_sections.items():
            lines.append(f"### {name}")
            lines.append(section)
            lines.append("")

    lines.append("## Conclusions")
    for c in report.conclusions:
        lines.append(f"- {c}")
    lines.append("")

    if report.interpretation:
        lines.append("## Interpretation")
        lines.append(report.interpretation)
        lines.append("")

    if report.caveats:
        lines.append("## Caveats")
        for c in report.caveats:
            lines.append(f"- {c}")
        lines.append("")

    if report.figures:
        lines.append("## Figures")
        for caption, path in report.figures.items():
            lines.append(f"![{caption}]({_fig(path)})")
            lines.append("")

    lines.append("---")
    lines.append("*Report generated by Salinostat*")

    return "\n".join(lines)


# ─────────────────────────────────────────────
# MAIN — ASSEMBLE REPORT
# ─────────────────────────────────────────────

def assemble_report(
    load_output: dict,
    profiler_output: dict,
    preprocessor_output: dict,
    collinearity_output: dict,
    selection_output: dict,
    transform_output: dict,
    influence_output: dict,
    weighted_output: dict,
    model_fits: list[dict],
    diagnostics: dict[str, dict],
    comparison_output: dict,
    figures: dict[str, str] | None = None,
    interpretation: str = "",
    output_dir: str | None = None,
) -> FinalReportOutput:
    """
    Assembles all stage outputs into a structured FinalReportOutput.
    The interpretation field is written by the narrator agent (not computed here).
    markdown_path / json_path are filled in by write_report().
    """
    collinearity_output = collinearity_output or {}
    weighted_output = weighted_output or {}
    recommended = comparison_output.get("recommended_model")

    report = FinalReportOutput(
        title="Salinity Regression Report: CalCOFI bottle/cast data",
        dataset_summary=_build_dataset_summary(load_output, preprocessor_output),
        descriptive_table=_build_descriptive_table(profiler_output),
        collinearity_summary=_build_collinearity_summary(collinearity_output, profiler_output),
        selection_summary=(selection_output or {}).get("summary_message", "Predictor selection was not run."),
        transform_summary=_build_transform_summary(transform_output),
        influence_summary=_build_influence_summary(influence_output),
        weighted_summary=weighted_output.get("summary_message", "Weighted least squares was not fitted."),
        comparison_table=_build_comparison_table(comparison_output),
        diagnostics_sections={
            name: _build_diagnostics_section(diag) for name, diag in diagnostics.items()
        },
        recommended_model=recommended,
        conclusions=_build_conclusions(
            model_fits, comparison_output, collinearity_output, transform_output, weighted_output,
        ),
        interpretation=interpretation,
        caveats=_build_caveats(
            recommended, diagnostics, collinearity_output, load_output, preprocessor_output,
        ),
        figures=figures or {},
    )

    report.markdown_report = _build_markdown(report, output_dir)
    return report


def write_report(report: FinalReportOutput, output_dir: str) -> FinalReportOutput:
    """Writes report.md and report.json into output_dir and records their paths."""
    os.makedirs(output_dir, exist_ok=True)
    markdown_path = os.path.join(output_dir, "report.md")
    json_path = os.path.join(output_dir, "report.json")

    report = report.model_copy(update={"markdown_path": markdown_path, "json_path": json_path})

    with open(markdown_path, "w", encoding="utf-8") as f:
        f.write(report.markdown_report)
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(report.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    logger.info("Report written to %s", markdown_path)
    return report
