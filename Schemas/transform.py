"""
FILE: Schemas/transform.py
----------------------------
Box-Cox power estimates and the log of transforms applied to the data.
"""

from pydantic import BaseModel, Field


class BoxCoxEstimate(BaseModel):
    column: str
    n_used: int
    n_non_positive_dropped: int = 0

    lambda_mle: float
    ci_lower: float | None = None
    ci_upper: float | None = None
    lambda_rounded: float                   # the power actually applied

    # ── Likelihood-ratio tests ──
    lr_stat_no_transform: float | None = None   # H0: lambda = 1
    p_no_transform: float | None = None
    lr_stat_log: float | None = None            # H0: lambda = 0
    p_log: float | None = None

    interpretation: str = ""


class ResponseProfile(BaseModel):
    """Profile log-likelihood of the response power given the predictors."""
    response: str
    lambda_hat: float
    ci_lower: float | None = None
    ci_upper: float | None = None
    search_lower: float | None = None      # bounds the MLE was searched over
    search_upper: float | None = None
    at_bound: bool = False                  # λ̂ or a CI end sits on a search bound
    grid: list[float] = Field(default_factory=list)
    log_likelihood: list[float] = Field(default_factory=list)


class AppliedTransform(BaseModel):
    column: str
    transform_type: str = "boxcox"          # "boxcox" | "log"
    lmbda: float
    original_min: float | None = None
    original_max: float | None = None
    note: str = ""


class TransformOutput(BaseModel):
    estimates: list[BoxCoxEstimate] = Field(default_factory=list)
    response_profile: ResponseProfile | None = None
    applied: list[AppliedTransform] = Field(default_factory=list)
    rows_dropped_non_positive: int = 0
    skipped_columns: list[str] = Field(default_factory=list)   # requested but not transformable
    figure_path: str | None = None
    summary_message: str = ""

    def lambdas(self) -> dict[str, float]:
        return {t.column: t.lmbda for t in self.applied}
