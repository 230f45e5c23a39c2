"""
FILE: core/loader_engine.py
-----------------------------
Reads the bottle and cast tables and joins them on the cast counter.
No LangChain or LLM dependencies.

Only the columns the analysis needs are read — the full bottle file
is several hundred MB with ~70 columns. Each analysis column is taken
from the bottle file when present there, otherwise from the cast file.
"""

import logging
import os

import pandas as pd

from Schemas.config import AnalysisConfig
from Schemas.loader import LoadOutput

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _read_header(path: str) -> list[str]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Data file not found: '{path}'")
    return list(pd.read_csv(path, nrows=0, encoding_errors="replace").columns)


def _assign_columns(
    config: AnalysisConfig,
    bottle_header: list[str],
    cast_header: list[str],
) -> tuple[list[str], list[str]]:
    """Splits the analysis columns between the two files."""
    for path, header in ((config.bottle_path, bottle_header), (config.cast_path, cast_header)):
        if config.join_key not in header:
            raise ValueError(f"Join key '{config.join_key}' not found in '{path}'.")

    bottle_cols: list[str] = []
    cast_cols: list[str] = []
    missing: list[str] = []
    for col in config.analysis_columns:
        if col in bottle_header:
            bottle_cols.append(col)
        elif col in cast_header:
            cast_cols.append(col)
        else:
            missing.append(col)

    if missing:
        raise ValueError(
            f"Column(s) {missing} found in neither '{config.bottle_path}' "
            f"nor '{config.cast_path}'."
        )
    return [config.join_key] + bottle_cols, [config.join_key] + cast_cols


# ─────────────────────────────────────────────
# PUBLIC
# ─────────────────────────────────────────────

def load_tables(config: AnalysisConfig) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Reads the bottle and cast files, restricted to the columns in use."""
    bottle_cols, cast_cols = _assign_columns(
        config,
        _read_header(config.bottle_path),
        _read_header(config.cast_path),
    )
    bottle_df = pd.read_csv(
        config.bottle_path, usecols=bottle_cols, low_memory=False, encoding_errors="replace"
    )
    cast_df = pd.read_csv(
        config.cast_path, usecols=cast_cols, low_memory=False, encoding_errors="replace"
    )
    logger.info(
        "Read %d bottle rows from %s and %d cast rows from %s",
        len(bottle_df), config.bottle_path, len(cast_df), config.cast_path,
    )
    return bottle_df, cast_df


def merge_tables(
    bottle_df: pd.DataFrame,
    cast_df: pd.DataFrame,
    join_key: str,
) -> pd.DataFrame:
    """
    Inner join of bottle observations onto their cast.
    Each bottle belongs to exactly one cast, so the join is validated
    many-to-one; duplicate cast keys raise pandas.errors.MergeError.
    Cast columns that also exist in the bottle table are dropped from
    the cast side so no _x/_y suffixes appear.
    """
    for name, df in (("bottle", bottle_df), ("cast", cast_df)):
        if join_key not in df.columns:
            raise ValueError(f"Join key '{join_key}' missing from {name} table.")

    overlap = [c for c in cast_df.columns if c in bottle_df.columns and c != join_key]
    if overlap:
        logger.debug("Dropping overlapping cast columns before merge: %s", overlap)
        cast_df = cast_df.drop(columns=overlap)

    return bottle_df.merge(cast_df, on=join_key, how="inner", validate="many_to_one")


def load_dataset(config: AnalysisConfig) -> tuple[pd.DataFrame, LoadOutput]:
    """Loads both files, merges them and reports what happened."""
    bottle_df, cast_df = load_tables(config)
    merged = merge_tables(bottle_df, cast_df, config.join_key)

    unmatched = len(bottle_df) - len(merged)
    warnings: list[str] = []
    if unmatched:
        warnings.append(
            f"{unmatched} bottle row(s) had no matching cast on '{config.join_key}' "
            f"and were dropped by the join."
        )
    if merged.empty:
        warnings.append("The join produced no rows.")

    return merged, LoadOutput(
        bottle_path=config.bottle_path,
        cast_path=config.cast_path,
        join_key=config.join_key,
        bottle_rows=len(bottle_df),
        cast_rows=len(cast_df),
        merged_rows=len(merged),
        unmatched_bottle_rows=unmatched,
        columns=list(merged.columns),
        warnings=warnings,
    )
