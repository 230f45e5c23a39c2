"""
FILE: Schemas/diagnostics.py
------------------------------
Pydantic output schemas for post-fit model diagnostics:
residual tests (normality, homoscedasticity, autocorrelation,
linearity) and the influence summary (leverage, standardized
residuals, Cook's distance).
"""

from pydantic import BaseModel, Field
from enum import Enum


# ─────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────

class DiagnosticStatus(str, Enum):
    PASSED  = "passed"   # assumption met
    FAILED  = "failed"   # assumption violated
    WARNING = "warning"  # borderline or could not be checked


# ─────────────────────────────────────────────
# SINGLE CHECK RESULT
# ─────────────────────────────────────────────

class DiagnosticResult(BaseModel):
    name: str                               # e.g. "normality_of_residuals"
    description: str
    status: DiagnosticStatus

    test_used: str | None = None            # e.g. "Shapiro-Wilk", "Breusch-Pagan"
    statistic: float | None = None
    p_value: float | None = None
    alpha: float | None = None

    plain_reason: str = ""                  # e.g. "p=0.003 < 0.05, normality rejected"


# ─────────────────────────────────────────────
# INFLUENCE
# ─────────────────────────────────────────────

class FlaggedObservation(BaseModel):
    index: int                              # row label in the fitted DataFrame
    leverage: float
    std_resid: float
    cooks_d: float
    reasons: list[str] = Field(default_factory=list)   # "high_leverage" | "outlier" | "influential"


class InfluenceSummary(BaseModel):
    n_observations: int
    n_parameters: int
    leverage_threshold: float
    std_resid_threshold: float
    cooks_threshold: float

    max_leverage: float
    max_abs_std_resid: float
    max_cooks_d: float

    high_leverage_count: int = 0
    outlier_count: int = 0
    influential_count: int = 0

    flagged: list[FlaggedObservation] = Field(default_factory=list)
    trim_indices: list[int] = Field(default_factory=list)   # rows removed by the trimming stage


# ─────────────────────────────────────────────
# MAIN OUTPUT SCHEMA
# ─────────────────────────────────────────────

class DiagnosticsOutput(BaseModel):
    model_name: str

    results: list[DiagnosticResult] = Field(default_factory=list)
    influence: InfluenceSummary | None = None

    total_checks:  int = 0
    passed_count:  int = 0
    failed_count:  int = 0
    warning_count: int = 0
    has_failures:  bool = False

    figure_path: str | None = None
    summary_message: str = ""

    def status_of(self, name: str) -> DiagnosticStatus | None:
        for r in self.results:
            if r.name == name:
                return r.status
        return None
