"""
FILE: main.py
--------------
LangGraph orchestrator for Salinostat.
Wires every analysis stage into a StateGraph. Each stage calls the pure
engines in core/ and stores their pydantic outputs (dumped to dicts) in
the state; any stage that raises sets fatal_error and the graph ends.

Pipeline flow:
  load_data          bottle + cast CSVs, inner join on the cast counter
      ↓
  profiler           descriptive statistics, correlations
      ↓
  preprocessor       numeric coercion, listwise deletion, plausibility,
      ↓              fitting sample + disjoint holdout
  full_model         OLS on every predictor
      ↓
  collinearity       VIF pruning → pruned_ols (if anything dropped)
      ↓
  selection          backward elimination → selected_ols (if anything dropped)
      ↓
  power_transform    Box-Cox → boxcox_ols (if any power ≠ 1)
      ↓
  influence          leverage / standardized residuals → trimmed_ols
      ↓
  weighted           WLS with estimated variance weights
      ↓
  comparison         table, nested F tests, recommended model
      ↓
  final_report       markdown + JSON (+ optional LLM interpretation)
      ↓ [END]

State:
  SalinostatState TypedDict — all pipeline outputs stored as optional fields.
  Fitted statsmodels results objects travel in fitted_results, keyed by
  model name, so later stages can reuse them without refitting.
"""

import argparse
import functools
import logging
import os
import sys
from typing import TypedDict, Any

from langgraph.graph import StateGraph, END

from Schemas.config import AnalysisConfig, load_config
from Schemas.regression import ModelFit, WeightedOutput
from constants.analysis import SELECTION_METHODS

# ── Engines ──
from core.loader_engine       import load_dataset
from core.profiler_engine     import profile_dataframe
from core.preprocessor_engine import preprocess_dataframe, sample_rows
from core.regression_engine   import fit_ols, fit_wls, estimate_variance_weights, predict_holdout
from core.diagnostics_engine  import compute_influence, run_model_diagnostics
from core.collinearity_engine import prune_by_vif
from core.selection_engine    import backward_eliminate, nested_f_test, compare_models
from core.transform_engine    import run_power_transform
from core.plot_engine         import (
    plot_scatter_matrix,
    plot_residual_diagnostics,
    plot_boxcox_profile,
    plot_vif,
    plot_model_comparison,
)
from core.final_report_engine import assemble_report, write_report

# ── Optional narrator ──
from Agents.report_narrator   import run_report_narrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ─────────────────────────────────────────────
# STATE SCHEMA
# TypedDict — all fields optional, populated as pipeline progresses
# ─────────────────────────────────────────────

class SalinostatState(TypedDict, total=False):
    # ── Inputs ──
    config:               dict            # AnalysisConfig dump

    # ── Working data ──
    merged_df:            Any             # pd.DataFrame (after the join)
    train_df:             Any             # pd.DataFrame (cleaned fitting sample)
    holdout_df:           Any             # pd.DataFrame (cleaned, disjoint from train_df)
    model_df:             Any             # pd.DataFrame the current model was fitted on

    # ── Stage outputs ──
    load_output:          dict
    profiler_output:      dict
    preprocessor_output:  dict
    collinearity_output:  dict | None
    selection_output:     dict | None
    transform_output:     dict | None
    influence_output:     dict | None
    weighted_output:      dict | None
    comparison_output:    dict
    report_output:        dict

    # ── Model sequence ──
    model_fits:           list            # ModelFit dumps, in fitting order
    fitted_results:       dict            # {model name: statsmodels results}
    diagnostics:          dict            # {model name: DiagnosticsOutput dump}
    nested_tests:         list            # NestedTest dumps
    current_model:        str
    current_predictors:   list
    transformed_columns:  dict            # {column: lambda} applied to model_df

    figures:              dict            # {caption: png path}

    # ── Routing flags ──
    fatal_error:          str | None      # set if pipeline must stop


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _config(state: SalinostatState) -> AnalysisConfig:
    return AnalysisConfig(**state["config"])


def _figure_dir(config: AnalysisConfig) -> str:
    return os.path.join(config.output_dir, "figures")


def _stage(name: str):
    """Logs the stage and turns any raised error into fatal_error."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(state: SalinostatState) -> SalinostatState:
            logger.info("Stage '%s' started", name)
            try:
                update = fn(state)
            except Exception as e:
                logger.exception("Stage '%s' failed", name)
                return {**state, "fatal_error": f"{name}: {e}"}
            logger.info("Stage '%s' finished", name)
            return {**state, **update}
        return wrapper
    return decorator


def _record_model(
    state: SalinostatState,
    fit: ModelFit,
    results,
    config: AnalysisConfig,
) -> dict:
    """
    Scores a new fit on the holdout, runs its residual checks and plot,
    and returns the state updates that make it the current model.
    """
    rmse, r2, n = predict_holdout(
        results, state.get("holdout_df"), config.response, fit.predictors, fit.transformed_columns,
    )
    fit = fit.model_copy(update={"holdout_rmse": rmse, "holdout_r_squared": r2, "holdout_n": n})

    diagnostics = run_model_diagnostics(results, fit.name, config)
    figure = plot_residual_diagnostics(results, fit.name, _figure_dir(config))
    diagnostics = diagnostics.model_copy(update={"figure_path": figure})

    return {
        "model_fits":         state.get("model_fits", []) + [fit.model_dump(mode="json")],
        "fitted_results":     {**state.get("fitted_results", {}), fit.name: results},
        "diagnostics":        {**state.get("diagnostics", {}), fit.name: diagnostics.model_dump(mode="json")},
        "figures":            {**state.get("figures", {}), f"Residual diagnostics — {fit.name}": figure},
        "current_model":      fit.name,
        "current_predictors": list(fit.predictors),
    }


def _nested(state: SalinostatState, update: dict, reduced: str, full: str, alpha: float) -> list:
    results = update["fitted_results"]
    test = nested_f_test(results[reduced], results[full], reduced, full, alpha)
    return state.get("nested_tests", []) + [test.model_dump(mode="json")]


# ─────────────────────────────────────────────
# NODE FUNCTIONS
# Each node runs one stage and updates state.
# ─────────────────────────────────────────────

@_stage("load_data")
def node_load_data(state: SalinostatState) -> dict:
    """Reads both files and joins them."""
    config = _config(state)
    merged, load_output = load_dataset(config)
    update = {"merged_df": merged, "load_output": load_output.model_dump(mode="json")}
    if merged.empty:
        update["fatal_error"] = (
            f"No bottle row matched a cast on '{config.join_key}' — nothing to analyse."
        )
    return update


@_stage("profiler")
def node_profiler(state: SalinostatState) -> dict:
    """Describes the analysis columns of the merged table."""
    config = _config(state)
    profile = profile_dataframe(state["merged_df"], config.analysis_columns, config.predictors)
    for w in profile.warnings:
        logger.info("Profiler: %s", w)
    return {"profiler_output": profile.model_dump(mode="json")}


@_stage("preprocessor")
def node_preprocessor(state: SalinostatState) -> dict:
    """Cleans the merged table, then draws the fitting and holdout samples."""
    config = _config(state)
    cleaned, output = preprocess_dataframe(state["merged_df"], config)
    if output.fatal_error:
        return {"preprocessor_output": output.model_dump(mode="json"), "fatal_error": output.fatal_error}

    train, holdout, warnings = sample_rows(
        cleaned, config.sample_size, config.holdout_size, config.random_state,
        positive_columns=config.boxcox_columns,
    )
    output = output.model_copy(update={
        "sample_size":  len(train),
        "holdout_size": len(holdout),
        "random_state": config.random_state,
        "warnings":     output.warnings + warnings,
    })

    figure = plot_scatter_matrix(train, config.analysis_columns, _figure_dir(config))
    return {
        "preprocessor_output": output.model_dump(mode="json"),
        "train_df":            train,
        "holdout_df":          holdout,
        "model_df":            train,
        "transformed_columns": {},
        "figures":             {**state.get("figures", {}), "Pairwise scatter matrix": figure},
    }


@_stage("full_model")
def node_full_model(state: SalinostatState) -> dict:
    """OLS of salinity on every predictor."""
    config = _config(state)
    fit, results = fit_ols(
        state["model_df"], config.response, config.predictors, "full_ols", alpha=config.alpha,
    )
    return _record_model(state, fit, results, config)


@_stage("collinearity")
def node_collinearity(state: SalinostatState) -> dict:
    """Prunes predictors by VIF and refits if anything was dropped."""
    config = _config(state)
    output = prune_by_vif(state["model_df"], state["current_predictors"], config.vif_threshold)
    figure = plot_vif(output, _figure_dir(config))
    output = output.model_copy(update={"figure_path": figure})

    update = {
        "collinearity_output": output.model_dump(mode="json"),
        "figures": {**state.get("figures", {}), "Variance inflation factors": figure},
    }
    if output.dropped_predictors:
        previous = state["current_model"]
        fit, results = fit_ols(
            state["model_df"], config.response, output.retained_predictors, "pruned_ols", alpha=config.alpha,
        )
        update.update(_record_model({**state, **update}, fit, results, config))
        update["nested_tests"] = _nested(state, update, "pruned_ols", previous, config.alpha)
    return update


@_stage("selection")
def node_selection(state: SalinostatState) -> dict:
    """Backward elimination on the current predictors."""
    config = _config(state)
    output = backward_eliminate(
        state["model_df"], config.response, state["current_predictors"],
        method=config.selection_method, alpha=config.alpha,
    )
    update = {"selection_output": output.model_dump(mode="json")}
    if output.steps:
        previous = state["current_model"]
        fit, results = fit_ols(
            state["model_df"], config.response, output.selected_predictors, "selected_ols", alpha=config.alpha,
        )
        update.update(_record_model(state, fit, results, config))
        update["nested_tests"] = _nested(state, update, "selected_ols", previous, config.alpha)
    return update


@_stage("power_transform")
def node_power_transform(state: SalinostatState) -> dict:
    """Estimates Box-Cox powers and refits on the transformed data."""
    config = _config(state)
    try:
        transformed, output = run_power_transform(
            state["model_df"], config.response, state["current_predictors"], config.boxcox_columns,
        )
    except ValueError as e:
        logger.warning("Box-Cox stage skipped: %s", e)
        return {"transform_output": {"summary_message": f"Box-Cox transform skipped: {e}"}}

    update: dict = {}
    figures = dict(state.get("figures", {}))
    if output.response_profile is not None:
        figure = plot_boxcox_profile(output.response_profile, _figure_dir(config))
        output = output.model_copy(update={"figure_path": figure})
        figures["Box-Cox profile likelihood"] = figure
    update["figures"] = figures
    update["transform_output"] = output.model_dump(mode="json")

    if output.applied:
        lambdas = output.lambdas()
        fit, results = fit_ols(
            transformed, config.response, state["current_predictors"], "boxcox_ols",
            transformed_columns=lambdas, alpha=config.alpha,
        )
        update.update(_record_model({**state, **update}, fit, results, config))
        update["model_df"] = transformed
        update["transformed_columns"] = lambdas
    return update


@_stage("influence")
def node_influence(state: SalinostatState) -> dict:
    """Flags leverage points and outliers on the current model, then trims and refits."""
    config = _config(state)
    source = state["current_model"]
    summary = compute_influence(
        state["fitted_results"][source], config.std_resid_threshold, config.leverage_multiplier,
    )
    trim = summary.trim_indices
    model_df = state["model_df"]
    min_rows = len(state["current_predictors"]) + 2

    influence_output = {
        "source_model": source,
        "model_name":   None,
        "rows_trimmed": 0,
        "summary":      summary.model_dump(mode="json"),
    }
    update: dict = {"influence_output": influence_output}

    if trim and len(model_df) - len(trim) >= min_rows:
        trimmed = model_df.drop(index=trim)
        fit, results = fit_ols(
            trimmed, config.response, state["current_predictors"], "trimmed_ols",
            transformed_columns=state.get("transformed_columns") or None, alpha=config.alpha,
        )
        update.update(_record_model(state, fit, results, config))
        update["model_df"] = trimmed
        influence_output.update({"model_name": "trimmed_ols", "rows_trimmed": len(trim)})
        logger.info("Trimmed %d row(s) flagged on '%s'", len(trim), source)
    elif trim:
        logger.warning("Trimming %d row(s) would leave too few to fit; skipped", len(trim))
    return update


@_stage("weighted")
def node_weighted(state: SalinostatState) -> dict:
    """WLS on the current data, weights from the current OLS fit's residual spread."""
    config = _config(state)
    source = state["current_model"]
    weights = estimate_variance_weights(state["fitted_results"][source])
    fit, results = fit_wls(
        state["model_df"], config.response, state["current_predictors"], weights, "wls",
        transformed_columns=state.get("transformed_columns") or None, alpha=config.alpha,
    )
    update = _record_model(state, fit, results, config)

    before = _check_status(state["diagnostics"].get(source, {}), "homoscedasticity")
    after = _check_status(update["diagnostics"]["wls"], "homoscedasticity")
    w_min, w_max = float(weights.min()), float(weights.max())
    output = WeightedOutput(
        source_model=source,
        model_name="wls",
        n_observations=fit.n_observations,
        weight_min=round(w_min, 6),
        weight_max=round(w_max, 6),
        weight_ratio=round(w_max / w_min, 4),
        heteroscedasticity_before=before,
        heteroscedasticity_after=after,
        summary_message=(
            f"WLS refit of '{source}' with weights 1/ŝd², ŝd from regressing |residuals| on fitted "
            f"values (weights span a factor of {round(w_max / w_min, 2)}). Breusch-Pagan: "
            f"{before or 'n/a'} on '{source}', {after or 'n/a'} on the weighted fit."
        ),
    )
    update["weighted_output"] = output.model_dump(mode="json")
    return update


def _check_status(diagnostics: dict, name: str) -> str | None:
    for r in diagnostics.get("results", []):
        if r.get("name") == name:
            return r.get("status")
    return None


@_stage("comparison")
def node_comparison(state: SalinostatState) -> dict:
    """Compares every fitted model and picks the recommended one."""
    config = _config(state)
    fits = [ModelFit(**d) for d in state.get("model_fits", [])]
    failed = {
        name: [r["name"] for r in diag.get("results", []) if r.get("status") == "failed"]
        for name, diag in state.get("diagnostics", {}).items()
    }
    comparison = compare_models(fits, state.get("nested_tests"), failed)
    figure = plot_model_comparison(comparison, _figure_dir(config))
    comparison = comparison.model_copy(update={"figure_path": figure})
    logger.info("Recommended model: %s", comparison.recommended_model)
    return {
        "comparison_output": comparison.model_dump(mode="json"),
        "figures": {**state.get("figures", {}), "Model comparison": figure},
    }


@_stage("final_report")
def node_final_report(state: SalinostatState) -> dict:
    """Assembles the report, optionally narrates it, and writes it to disk."""
    config = _config(state)
    sections = dict(
        load_output=state["load_output"],
        profiler_output=state["profiler_output"],
        preprocessor_output=state["preprocessor_output"],
        collinearity_output=state.get("collinearity_output"),
        selection_output=state.get("selection_output"),
        transform_output=state.get("transform_output"),
        influence_output=state.get("influence_output"),
        weighted_output=state.get("weighted_output"),
        model_fits=state.get("model_fits", []),
        diagnostics=state.get("diagnostics", {}),
        comparison_output=state["comparison_output"],
        figures=state.get("figures", {}),
        output_dir=config.output_dir,
    )
    report = assemble_report(**sections)

    if config.narrate:
        interpretation = run_report_narrator(
            report_output=report.model_dump(mode="json"),
            comparison_output=state["comparison_output"],
            diagnostics=state.get("diagnostics", {}),
            model_fits=state.get("model_fits", []),
            llm_model=config.llm_model,
        )
        if interpretation:
            report = assemble_report(**sections, interpretation=interpretation)

    report = write_report(report, config.output_dir)
    return {"report_output": report.model_dump(mode="json")}


# ─────────────────────────────────────────────
# CONDITIONAL EDGE FUNCTIONS
# ─────────────────────────────────────────────

def _route_to(next_node: str):
    def route(state: SalinostatState) -> str:
        if state.get("fatal_error"):
            return END
        return next_node
    route.__name__ = f"route_to_{next_node}"
    return route


# ─────────────────────────────────────────────
# GRAPH CONSTRUCTION
# ─────────────────────────────────────────────

PIPELINE: list[tuple[str, Any]] = [
    ("load_data",       node_load_data),
    ("profiler",        node_profiler),
    ("preprocessor",    node_preprocessor),
    ("full_model",      node_full_model),
    ("collinearity",    node_collinearity),
    ("selection",       node_selection),
    ("power_transform", node_power_transform),
    ("influence",       node_influence),
    ("weighted",        node_weighted),
    ("comparison",      node_comparison),
    ("final_report",    node_final_report),
]


def build_graph():
    """Builds and compiles the Salinostat LangGraph pipeline."""
    builder = StateGraph(SalinostatState)

    # ── Register nodes ──
    for name, fn in PIPELINE:
        builder.add_node(name, fn)

    # ── Entry point ──
    builder.set_entry_point(PIPELINE[0][0])

    # ── Conditional edges: next stage, or END on fatal_error ──
    for (name, _), (next_name, _) in zip(PIPELINE, PIPELINE[1:]):
        builder.add_conditional_edges(name, _route_to(next_name), [next_name, END])

    # ── Terminal edge ──
    builder.add_edge(PIPELINE[-1][0], END)

    return builder.compile()


# ─────────────────────────────────────────────
# PUBLIC ENTRY POINT
# ─────────────────────────────────────────────

def run_salinostat(config: AnalysisConfig) -> dict[str, Any]:
    """
    Runs the full pipeline for one configuration.

    Returns:
        Final state dict after the pipeline completes.
        Key fields:
          - report_output:     FinalReportOutput dict (markdown + file paths)
          - comparison_output: ModelComparison dict
          - fatal_error:       Set if the pipeline stopped early
    """
    graph = build_graph()
    initial_state: SalinostatState = {
        "config":         config.model_dump(),
        "model_fits":     [],
        "fitted_results": {},
        "diagnostics":    {},
        "nested_tests":   [],
        "figures":        {},
        "fatal_error":    None,
    }
    return graph.invoke(initial_state)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )
    # matplotlib's font manager is chatty at DEBUG
    logging.getLogger("matplotlib").setLevel(logging.WARNING)


# ─────────────────────────────────────────────
# CLI RUNNER
# Usage: python main.py bottle.csv cast.csv [options]
# ─────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="salinostat",
        description="Regression report for seawater salinity from CalCOFI bottle/cast CSVs.",
    )
    parser.add_argument("bottle_csv", help="bottle observations CSV")
    parser.add_argument("cast_csv", help="cast metadata CSV")
    parser.add_argument("--config", default=None, help="TOML file with analysis settings")
    parser.add_argument("--sample-size", type=int, default=None, help="rows used to fit models")
    parser.add_argument("--holdout-size", type=int, default=None, help="disjoint rows for scoring (0 disables)")
    parser.add_argument("--seed", type=int, default=None, help="random seed for sampling")
    parser.add_argument("--output-dir", default=None, help="directory for report and figures")
    parser.add_argument("--selection", choices=SELECTION_METHODS, default=None, help="backward elimination criterion")
    parser.add_argument("--narrate", action="store_true", default=None, help="add an LLM-written interpretation")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING, ...")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(
            args.config,
            bottle_path=args.bottle_csv,
            cast_path=args.cast_csv,
            sample_size=args.sample_size,
            holdout_size=args.holdout_size,
            random_state=args.seed,
            output_dir=args.output_dir,
            selection_method=args.selection,
            narrate=args.narrate,
        )
    except (ValueError, OSError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    state = run_salinostat(config)

    if state.get("fatal_error"):
        logger.error("Pipeline stopped: %s", state["fatal_error"])
        return 1

    report = state.get("report_output", {})
    print(f"Recommended model: {report.get('recommended_model')}")
    print(f"Report saved to: {report.get('markdown_path')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
