"""
FILE: Schemas/data_profiler_schema.py
---------------------------------------
Pydantic output schemas for the profiling stage.
ProfilerOutput feeds the descriptive table and the collinearity
narrative of the final report.
"""

from pydantic import BaseModel, Field


class ContinuousColumnProfile(BaseModel):
    column: str
    dtype: str
    missing_count: int
    missing_pct: float
    missing_severity: str                        # "low" | "moderate" | "high"
    mean: float | None = None
    median: float | None = None
    std: float | None = None
    min: float | None = None
    max: float | None = None
    q1: float | None = None
    q3: float | None = None
    skewness: float | None = None
    skewness_interpretation: str | None = None  # "symmetric" | "moderate skew" | "high skew"
    kurtosis: float | None = None
    anomaly_count: int = 0
    anomaly_pct: float = 0.0
    non_positive_count: int = 0                  # values <= 0 (matters for Box-Cox)


class CorrelatedPair(BaseModel):
    column_a: str
    column_b: str
    r: float


class ProfilerOutput(BaseModel):
    n_rows: int
    n_cols: int
    total_missing_cells: int
    total_missing_pct: float
    columns: list[ContinuousColumnProfile] = Field(default_factory=list)
    correlation_matrix: dict[str, dict[str, float]] = Field(default_factory=dict)
    high_correlation_pairs: list[CorrelatedPair] = Field(default_factory=list)
    unresolvable_columns: list[str] = Field(default_factory=list)  # all-empty or non-numeric
    warnings: list[str] = Field(default_factory=list)
