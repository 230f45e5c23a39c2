"""
FILE: Schemas/final_report.py
-------------------------------
Pydantic output schema for the final report.
FinalReportOutput carries the complete report content and the
paths of the files written to the output directory.
"""

from pydantic import BaseModel, Field


class FinalReportOutput(BaseModel):
    # ── Report content sections ──
    title:               str = ""
    dataset_summary:     str = ""   # files, join, rows, cleaning, sampling
    descriptive_table:   str = ""   # markdown table of column profiles
    collinearity_summary: str = ""
    selection_summary:   str = ""
    transform_summary:   str = ""
    influence_summary:   str = ""
    weighted_summary:    str = ""
    comparison_table:    str = ""   # markdown table
    diagnostics_sections: dict[str, str] = Field(default_factory=dict)   # {model: markdown}

    # ── Conclusions ──
    recommended_model:   str | None = None
    conclusions:         list[str] = Field(default_factory=list)
    interpretation:      str = ""   # LLM-written, empty unless narrate=True
    caveats:             list[str] = Field(default_factory=list)

    figures:             dict[str, str] = Field(default_factory=dict)   # {caption: path}

    # ── Markdown version ──
    markdown_report:     str = ""

    # ── Written files ──
    markdown_path:       str = ""
    json_path:           str = ""
