"""
FILE: core/preprocessor_engine.py
-----------------------------------
Cleaning and sampling for the merged bottle/cast table.
No LangChain or LLM dependencies.

Responsibilities:
  1. Keep only the analysis columns, coerce them to float
  2. Listwise deletion of rows with a missing value in any analysis column
     (regression variables are never imputed — an imputed salinity would
     be fitted as if it were observed)
  3. Drop physically implausible readings (VALID_RANGES)
  4. Draw the model-fitting sample and a disjoint holdout sample

Cleaning runs before sampling so the requested sample size is honoured.
"""

import logging

import pandas as pd

from Schemas.config import AnalysisConfig
from Schemas.preprocessor import PreprocessorOutput, ColumnCleaningLog
from constants.preprocessor import MIN_ROWS_PER_PREDICTOR, VALID_RANGES

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# HELPER — COERCE TO NUMERIC
# ─────────────────────────────────────────────

def _coerce_numeric_columns(
    df: pd.DataFrame,
    columns: list[str],
    logs: dict[str, ColumnCleaningLog],
) -> pd.DataFrame:
    df = df[columns].copy()
    for col in columns:
        before_nan = int(df[col].isna().sum())
        if not pd.api.types.is_numeric_dtype(df[col]):
            df[col] = pd.to_numeric(df[col], errors="coerce")
        df[col] = df[col].astype(float)
        logs[col].values_coerced_to_nan = int(df[col].isna().sum()) - before_nan
        logs[col].missing_count = int(df[col].isna().sum())
        logs[col].final_dtype = str(df[col].dtype)
    return df


# ─────────────────────────────────────────────
# HELPER — PLAUSIBILITY RANGES
# ─────────────────────────────────────────────

def _drop_out_of_range(
    df: pd.DataFrame,
    logs: dict[str, ColumnCleaningLog],
) -> tuple[pd.DataFrame, int]:
    keep = pd.Series(True, index=df.index)
    for col in df.columns:
        bounds = VALID_RANGES.get(col)
        if bounds is None:
            continue
        lower, upper = bounds
        bad = (df[col] < lower) | (df[col] > upper)
        logs[col].out_of_range_count = int(bad.sum())
        logs[col].valid_range = bounds
        keep &= ~bad
    return df[keep], int((~keep).sum())


# ─────────────────────────────────────────────
# MAIN — CLEAN
# ─────────────────────────────────────────────

def preprocess_dataframe(
    df: pd.DataFrame,
    config: AnalysisConfig,
) -> tuple[pd.DataFrame, PreprocessorOutput]:
    """
    Cleans the merged table down to complete, plausible rows of the
    analysis columns.

    Returns:
        cleaned_df:          The cleaned DataFrame (original row labels kept)
        preprocessor_output: Structured summary of all changes made
    """
    columns = config.analysis_columns
    missing_cols = [c for c in columns if c not in df.columns]
    if missing_cols:
        raise ValueError(f"Analysis column(s) {missing_cols} not present after the merge.")

    original_shape = df.shape
    logs = {c: ColumnCleaningLog(column=c, original_dtype=str(df[c].dtype)) for c in columns}
    changes_summary: list[str] = []
    warnings: list[str] = []

    # ── STEP 1: Keep analysis columns, coerce to float ──
    df = _coerce_numeric_columns(df, columns, logs)
    for log in logs.values():
        if log.values_coerced_to_nan:
            changes_summary.append(
                f"'{log.column}': {log.values_coerced_to_nan} non-numeric value(s) treated as missing."
            )

    # ── STEP 2: Listwise deletion ──
    before = len(df)
    df = df.dropna(subset=columns)
    rows_dropped_missing = before - len(df)
    if rows_dropped_missing:
        worst = max(logs.values(), key=lambda l: l.missing_count)
        changes_summary.append(
            f"Dropped {rows_dropped_missing} row(s) with a missing value in any analysis column "
            f"(most missing: '{worst.column}', {worst.missing_count} row(s))."
        )

    # ── STEP 3: Plausibility ──
    df, rows_dropped_range = _drop_out_of_range(df, logs)
    if rows_dropped_range:
        offenders = [f"'{l.column}' ({l.out_of_range_count})" for l in logs.values() if l.out_of_range_count]
        changes_summary.append(
            f"Dropped {rows_dropped_range} row(s) with implausible readings: {', '.join(offenders)}."
        )

    logger.info(
        "Cleaning kept %d of %d rows (%d missing, %d out of range)",
        len(df), original_shape[0], rows_dropped_missing, rows_dropped_range,
    )

    # ── Fatal: not enough rows to fit the full model ──
    fatal_error = None
    min_rows = MIN_ROWS_PER_PREDICTOR * len(config.predictors)
    if len(df) < min_rows:
        fatal_error = (
            f"Only {len(df)} complete row(s) remain after cleaning; at least {min_rows} "
            f"are needed to fit {len(config.predictors)} predictor(s)."
        )

    return df, PreprocessorOutput(
        original_shape=original_shape,
        final_shape=df.shape,
        rows_dropped_missing=rows_dropped_missing,
        rows_dropped_out_of_range=rows_dropped_range,
        rows_dropped_total=original_shape[0] - len(df),
        column_logs=list(logs.values()),
        fatal_error=fatal_error,
        changes_summary=changes_summary,
        warnings=warnings,
    )


# ─────────────────────────────────────────────
# MAIN — SAMPLE
# ─────────────────────────────────────────────

def sample_rows(
    df: pd.DataFrame,
    sample_size: int,
    holdout_size: int,
    random_state: int,
    positive_columns: list[str] | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame, list[str]]:
    """
    Draws the fitting sample and a disjoint holdout sample.
    Deterministic for a given random_state.

    If fewer rows exist than requested, all rows go to the fitting sample
    first and the holdout shrinks to whatever is left (possibly nothing).

    Holdout rows are drawn only from rows strictly positive in every
    `positive_columns` column, so models fitted on Box-Cox transformed
    data are scored on the same rows as the raw-scale models.

    Returns:
        train, holdout, warnings
    """
    warnings: list[str] = []

    if len(df) <= sample_size:
        if len(df) < sample_size:
            warnings.append(
                f"Requested a sample of {sample_size} rows but only {len(df)} are available; "
                f"all rows are used for fitting."
            )
        train = df.sample(frac=1.0, random_state=random_state)
        holdout = df.iloc[0:0]
    else:
        train = df.sample(n=sample_size, random_state=random_state)
        remaining = df.drop(index=train.index)
        columns = [c for c in (positive_columns or []) if c in remaining.columns]
        if columns and holdout_size > 0:
            eligible = (remaining[columns] > 0).all(axis=1)
            if not eligible.all():
                warnings.append(
                    f"{int((~eligible).sum())} row(s) with non-positive values in {columns} "
                    f"are not eligible for the holdout."
                )
            remaining = remaining[eligible]
        n_holdout = min(holdout_size, len(remaining))
        if n_holdout < holdout_size:
            warnings.append(
                f"Holdout reduced from {holdout_size} to {n_holdout} row(s) — not enough data left."
            )
        holdout = remaining.sample(n=n_holdout, random_state=random_state) if n_holdout else remaining.iloc[0:0]

    if holdout_size > 0 and holdout.empty:
        warnings.append("No holdout rows — out-of-sample scoring is skipped.")

    logger.info("Sampled %d fitting rows and %d holdout rows", len(train), len(holdout))
    return train.sort_index(), holdout.sort_index(), warnings
