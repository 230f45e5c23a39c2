"""
FILE: Schemas/loader.py
-------------------------
Output of the load/merge stage.
"""

from pydantic import BaseModel, Field


class LoadOutput(BaseModel):
    bottle_path: str
    cast_path:   str
    join_key:    str

    bottle_rows: int
    cast_rows:   int
    merged_rows: int
    unmatched_bottle_rows: int = 0      # bottle rows whose cast was not found

    columns: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
