"""
FILE: Schemas/collinearity.py
-------------------------------
Variance inflation factors and the pruning rounds that remove
collinear predictors.
"""

from pydantic import BaseModel, Field


class VIFScore(BaseModel):
    variable: str
    vif: float                              # may be inf for perfect collinearity
    exceeds_threshold: bool = False


class PruningRound(BaseModel):
    round_number: int
    scores: list[VIFScore] = Field(default_factory=list)
    dropped: str | None = None              # None on the final round


class CollinearityOutput(BaseModel):
    threshold: float
    initial_predictors: list[str] = Field(default_factory=list)
    retained_predictors: list[str] = Field(default_factory=list)
    dropped_predictors: list[str] = Field(default_factory=list)
    rounds: list[PruningRound] = Field(default_factory=list)
    has_multicollinearity: bool = False     # True if the initial set had any VIF >= threshold
    figure_path: str | None = None
    summary_message: str = ""

    @property
    def initial_scores(self) -> list[VIFScore]:
        return self.rounds[0].scores if self.rounds else []

    @property
    def final_scores(self) -> list[VIFScore]:
        return self.rounds[-1].scores if self.rounds else []
