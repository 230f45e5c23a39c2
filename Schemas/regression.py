"""
FILE: Schemas/regression.py
-----------------------------
Pydantic output schemas for fitted regression models.
One ModelFit per model in the sequence (full OLS, VIF-reduced,
selected, Box-Cox, trimmed, WLS). The statsmodels results object
itself is kept out of these schemas and travels separately.
"""

from pydantic import BaseModel, Field
from enum import Enum


# ─────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────

class ModelKind(str, Enum):
    OLS = "ols"
    WLS = "wls"


# ─────────────────────────────────────────────
# REGRESSION COEFFICIENT
# ─────────────────────────────────────────────

class Coefficient(BaseModel):
    variable:    str
    estimate:    float
    std_error:   float | None = None
    t_statistic: float | None = None
    p_value:     float | None = None
    ci_lower:    float | None = None    # 95% confidence interval lower bound
    ci_upper:    float | None = None    # 95% confidence interval upper bound


# ─────────────────────────────────────────────
# FITTED MODEL SUMMARY
# ─────────────────────────────────────────────

class ModelFit(BaseModel):
    name:       str                     # e.g. "full_ols", "boxcox"
    kind:       ModelKind
    response:   str
    predictors: list[str] = Field(default_factory=list)
    formula:    str = ""

    coefficients: list[Coefficient] = Field(default_factory=list)

    # ── Model fit ──
    n_observations: int
    r_squared:      float | None = None
    adj_r_squared:  float | None = None
    f_statistic:    float | None = None
    f_p_value:      float | None = None
    aic:            float | None = None
    bic:            float | None = None
    rmse:           float | None = None

    # ── Transform of the response, if any (Box-Cox lambda) ──
    response_lambda: float | None = None
    transformed_columns: dict[str, float] = Field(default_factory=dict)   # {column: lambda}

    # ── Out-of-sample, on the original salinity scale ──
    holdout_rmse: float | None = None
    holdout_r_squared: float | None = None
    holdout_n: int = 0

    interpretation: str = ""

    @property
    def response_scale(self) -> str:
        return "raw" if self.response_lambda is None else f"box-cox({self.response_lambda})"


# ─────────────────────────────────────────────
# WEIGHTED STAGE
# ─────────────────────────────────────────────

class WeightedOutput(BaseModel):
    source_model: str                   # OLS fit the variance weights were estimated from
    model_name: str
    n_observations: int
    weight_min: float
    weight_max: float
    weight_ratio: float                 # max / min — how uneven the weighting is

    heteroscedasticity_before: str | None = None   # DiagnosticStatus value on the source model
    heteroscedasticity_after: str | None = None    # ... and on the WLS fit
    summary_message: str = ""
