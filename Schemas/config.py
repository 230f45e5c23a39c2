"""
FILE: Schemas/config.py
-------------------------
Run configuration for a Salinostat analysis.
Defaults live in constants/; a TOML file and CLI flags may override them.
"""

import tomllib

from pydantic import BaseModel, ConfigDict, Field, model_validator

from constants.analysis import (
    JOIN_KEY,
    RESPONSE,
    PREDICTORS,
    BOXCOX_COLUMNS,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_HOLDOUT_SIZE,
    DEFAULT_RANDOM_STATE,
    DEFAULT_ALPHA,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_LLM_MODEL,
    SELECTION_METHODS,
)
from constants.diagnostics import VIF_THRESHOLD, STD_RESID_THRESHOLD, LEVERAGE_MULTIPLIER


class AnalysisConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # ── Inputs ──
    bottle_path: str = "bottle.csv"
    cast_path:   str = "cast.csv"
    join_key:    str = JOIN_KEY

    # ── Variables ──
    response:       str = RESPONSE
    predictors:     list[str] = Field(default_factory=lambda: list(PREDICTORS))
    boxcox_columns: list[str] = Field(default_factory=lambda: list(BOXCOX_COLUMNS))

    # ── Sampling ──
    sample_size:  int = DEFAULT_SAMPLE_SIZE
    holdout_size: int = DEFAULT_HOLDOUT_SIZE      # 0 disables out-of-sample scoring
    random_state: int = DEFAULT_RANDOM_STATE

    # ── Modelling thresholds ──
    alpha:               float = DEFAULT_ALPHA
    vif_threshold:       float = VIF_THRESHOLD
    selection_method:    str   = "pvalue"         # "pvalue" | "aic"
    std_resid_threshold: float = STD_RESID_THRESHOLD
    leverage_multiplier: float = LEVERAGE_MULTIPLIER

    # ── Output ──
    output_dir: str  = DEFAULT_OUTPUT_DIR
    narrate:    bool = False                      # LLM-written interpretation section
    llm_model:  str  = DEFAULT_LLM_MODEL

    @model_validator(mode="after")
    def _check_consistency(self) -> "AnalysisConfig":
        if not self.predictors:
            raise ValueError("At least one predictor is required.")
        if self.response in self.predictors:
            raise ValueError(f"Response '{self.response}' cannot also be a predictor.")
        if len(set(self.predictors)) != len(self.predictors):
            raise ValueError(f"Duplicate predictors in {self.predictors}.")
        if self.sample_size < 10:
            raise ValueError("sample_size must be at least 10.")
        if self.holdout_size < 0:
            raise ValueError("holdout_size cannot be negative.")
        if not 0 < self.alpha < 1:
            raise ValueError("alpha must lie strictly between 0 and 1.")
        if self.selection_method not in SELECTION_METHODS:
            raise ValueError(
                f"selection_method must be one of {SELECTION_METHODS}, "
                f"got '{self.selection_method}'."
            )
        return self

    @property
    def analysis_columns(self) -> list[str]:
        return [self.response] + self.predictors


# ─────────────────────────────────────────────
# LOADING
# ─────────────────────────────────────────────

def load_config(path: str | None = None, **overrides) -> AnalysisConfig:
    """
    Builds the run configuration: defaults, then the optional TOML file,
    then keyword overrides (CLI flags). Overrides that are None are ignored.

    The TOML file holds the AnalysisConfig fields at top level, or under
    an [analysis] table:

        [analysis]
        sample_size = 2000
        selection_method = "aic"

    Unknown keys raise pydantic.ValidationError.
    """
    values: dict = {}
    if path is not None:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        values.update(data.get("analysis", data))

    values.update({k: v for k, v in overrides.items() if v is not None})
    return AnalysisConfig(**values)
