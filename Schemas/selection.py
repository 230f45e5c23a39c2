"""
FILE: Schemas/selection.py
----------------------------
Backward elimination steps, nested-model F tests and the
side-by-side model comparison table.
"""

from pydantic import BaseModel, Field


class EliminationStep(BaseModel):
    step: int
    removed: str
    criterion: str                          # "pvalue" | "aic"
    value: float                            # p-value of removed term, or AIC after removal
    remaining: list[str] = Field(default_factory=list)


class SelectionOutput(BaseModel):
    method: str
    alpha: float
    initial_predictors: list[str] = Field(default_factory=list)
    selected_predictors: list[str] = Field(default_factory=list)
    steps: list[EliminationStep] = Field(default_factory=list)
    summary_message: str = ""


class NestedTest(BaseModel):
    reduced_model: str
    full_model: str
    df_diff: float
    f_statistic: float | None = None
    p_value: float | None = None
    reduced_adequate: bool = True           # True if dropping the extra terms is not significant


class ComparisonRow(BaseModel):
    name: str
    kind: str
    response_scale: str
    n_observations: int
    n_predictors: int
    r_squared: float | None = None
    adj_r_squared: float | None = None
    aic: float | None = None
    bic: float | None = None
    rmse: float | None = None
    holdout_rmse: float | None = None
    diagnostics_failed: list[str] = Field(default_factory=list)


class ModelComparison(BaseModel):
    rows: list[ComparisonRow] = Field(default_factory=list)
    nested_tests: list[NestedTest] = Field(default_factory=list)
    recommended_model: str | None = None
    recommendation_reason: str = ""
    figure_path: str | None = None
