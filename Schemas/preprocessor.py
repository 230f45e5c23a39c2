"""
FILE: Schemas/preprocessor.py
-------------------------------
Pydantic output schema for the cleaning and sampling stage.
"""

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────
# PER-COLUMN ACTION LOG
# Records exactly what was done to each column.
# ─────────────────────────────────────────────

class ColumnCleaningLog(BaseModel):
    column: str
    values_coerced_to_nan: int = 0          # non-numeric strings turned into NaN
    missing_count: int = 0                  # NaN after coercion
    out_of_range_count: int = 0             # outside the plausible physical range
    valid_range: tuple[float, float] | None = None
    original_dtype: str | None = None
    final_dtype: str | None = None


# ─────────────────────────────────────────────
# MAIN OUTPUT SCHEMA
# ─────────────────────────────────────────────

class PreprocessorOutput(BaseModel):
    # ── Shape changes ──
    original_shape: tuple[int, int]
    final_shape: tuple[int, int]
    rows_dropped_missing: int = 0
    rows_dropped_out_of_range: int = 0
    rows_dropped_total: int = 0

    # ── Per-column log ──
    column_logs: list[ColumnCleaningLog] = Field(default_factory=list)

    # ── Sampling ──
    sample_size: int = 0                    # rows used to fit models
    holdout_size: int = 0                   # disjoint rows kept for out-of-sample scoring
    random_state: int | None = None

    fatal_error: str | None = None          # set if too few rows survive cleaning

    # ── Summary for report ──
    changes_summary: list[str] = Field(default_factory=list)   # plain English change log
    warnings: list[str] = Field(default_factory=list)          # non-fatal concerns
